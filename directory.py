# directory.py
#
# Query helpers over a list of NormalizedUser: free-text search, department
# and location filters, sorting, offset pagination, facet lists and CSV
# export. Pure functions; the HTTP layer feeds them the (cached) result of
# DirectoryClient.fetch_all().

import csv
import io
from collections.abc import Iterable, Sequence

from directory_client.normalize import NormalizedUser

SORT_KEYS = ('name', 'department', 'location')
DIRECTIONS = ('asc', 'desc')

CSV_HEADER = [
  'id',
  'displayName',
  'firstName',
  'lastName',
  'email',
  'secondEmail',
  'mobilePhone',
  'department',
  'title',
  'organization',
  'costCenter',
  'city',
  'state',
  'zipCode',
  'countryCode',
  'location',
  'status',
]


def _searchable(user: NormalizedUser) -> str:
  fields = (
    user.display_name,
    user.first_name,
    user.last_name,
    user.email,
    user.title,
    user.department,
    user.location,
  )
  return '\n'.join(f for f in fields if f).casefold()


def search_users(users: Iterable[NormalizedUser], query: str) -> list[NormalizedUser]:
  """Return users whose name, email, title, department or location contains query.

  Matching is a case-insensitive substring test. A blank query returns every
  user.
  """
  needle = query.strip().casefold()
  if not needle:
    return list(users)
  return [u for u in users if needle in _searchable(u)]


def filter_users(
  users: Iterable[NormalizedUser],
  departments: Iterable[str] = (),
  location: str | None = None,
) -> list[NormalizedUser]:
  """Keep users in any of `departments` (empty = all) and at `location` (None = all)."""
  wanted = {d for d in departments if d}
  return [
    u
    for u in users
    if (not wanted or u.department in wanted) and (not location or u.location == location)
  ]


def sort_users(users: Iterable[NormalizedUser], sort: str = 'name', direction: str = 'asc') -> list[NormalizedUser]:
  """Sort by display name, department or location, case-insensitively.

  Users without a value for the sort field go last in either direction. Ties
  are broken by display name (ascending).

  Raises ValueError for an unknown sort key or direction.
  """
  if sort not in SORT_KEYS:
    raise ValueError(f'Unknown sort {sort!r}; use one of {", ".join(SORT_KEYS)}')
  if direction not in DIRECTIONS:
    raise ValueError(f'Unknown direction {direction!r}; use asc or desc')

  by_name = sorted(users, key=lambda u: u.display_name.casefold())
  if sort == 'name':
    return by_name[::-1] if direction == 'desc' else by_name

  def value(u: NormalizedUser) -> str | None:
    return u.department if sort == 'department' else u.location

  present = [u for u in by_name if value(u)]
  missing = [u for u in by_name if not value(u)]
  # Stable sort (also with reverse=True), so name order breaks ties.
  present.sort(key=lambda u: (value(u) or '').casefold(), reverse=direction == 'desc')
  return present + missing


def paginate(users: Sequence[NormalizedUser], offset: int, limit: int) -> tuple[list[NormalizedUser], int | None]:
  """Return (slice, next_offset); next_offset is None on the last slice."""
  offset = max(offset, 0)
  limit = max(limit, 1)
  end = offset + limit
  return list(users[offset:end]), end if end < len(users) else None


def _facet(values: Iterable[str | None]) -> list[str]:
  return sorted({v for v in values if v}, key=lambda v: (v.casefold(), v))


def list_departments(users: Iterable[NormalizedUser]) -> list[str]:
  """Return the distinct non-empty departments, sorted."""
  return _facet(u.department for u in users)


def list_locations(users: Iterable[NormalizedUser]) -> list[str]:
  """Return the distinct non-empty locations, sorted."""
  return _facet(u.location for u in users)


def users_to_csv(users: Iterable[NormalizedUser]) -> str:
  """Render users as CSV with a header row; None becomes an empty cell."""
  buf = io.StringIO()
  writer = csv.writer(buf, lineterminator='\n')
  writer.writerow(CSV_HEADER)
  for user in users:
    row = user.to_dict()
    writer.writerow(['' if row[col] is None else row[col] for col in CSV_HEADER])
  return buf.getvalue()
