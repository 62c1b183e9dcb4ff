# directory_client/normalize.py
#
# Maps raw Okta user objects onto the NormalizedUser shape served by the
# directory.
#
# normalize_user() is total: whatever the upstream sends (missing profile,
# nulls, numbers where strings were expected, even a non-object) comes back
# as a NormalizedUser with defaulted fields instead of an exception, so one
# odd record never fails a whole page.

from dataclasses import dataclass
from typing import Any

_UNKNOWN_NAME = 'Unknown'


@dataclass(frozen=True)
class NormalizedUser:
  # Optional fields are None or a non-empty, trimmed string. id, status and
  # the name fields are always strings ('' when absent); display_name is
  # never empty.
  id: str
  status: str
  first_name: str
  last_name: str
  display_name: str
  email: str | None = None
  second_email: str | None = None
  mobile_phone: str | None = None
  department: str | None = None
  title: str | None = None
  organization: str | None = None
  cost_center: str | None = None
  city: str | None = None
  state: str | None = None
  zip_code: str | None = None
  country_code: str | None = None
  manager_id: str | None = None
  location: str | None = None

  def to_dict(self) -> dict[str, str | None]:
    """Return the camelCase JSON shape consumed by the web UI."""
    return {
      'id': self.id,
      'status': self.status,
      'firstName': self.first_name,
      'lastName': self.last_name,
      'displayName': self.display_name,
      'email': self.email,
      'secondEmail': self.second_email,
      'mobilePhone': self.mobile_phone,
      'department': self.department,
      'title': self.title,
      'organization': self.organization,
      'costCenter': self.cost_center,
      'city': self.city,
      'state': self.state,
      'zipCode': self.zip_code,
      'countryCode': self.country_code,
      'managerId': self.manager_id,
      'location': self.location,
    }


def _clean(value: Any) -> str | None:
  """Trim a profile value; None and empty-after-trim both become None."""
  if value is None:
    return None
  text = value.strip() if isinstance(value, str) else str(value).strip()
  return text or None


def _name(value: Any) -> str:
  return _clean(value) or ''


def derive_location(profile: dict[str, Any]) -> str | None:
  """Build the display location from city and country code.

  'London' + 'gb' → 'London, GB'; city only → city; country only → 'GB';
  neither → None.
  """
  city = _clean(profile.get('city'))
  country = _clean(profile.get('countryCode'))
  if city and country:
    return f'{city}, {country.upper()}'
  if city:
    return city
  if country:
    return country.upper()
  return None


def _display_name(profile: dict[str, Any], first_name: str, last_name: str) -> str:
  return (
    _name(profile.get('displayName'))
    or f'{first_name} {last_name}'.strip()
    or first_name
    or last_name
    or _UNKNOWN_NAME
  )


def normalize_user(raw: Any) -> NormalizedUser:
  """Normalize one raw Okta user object."""
  if not isinstance(raw, dict):
    raw = {}
  profile = raw.get('profile')
  if not isinstance(profile, dict):
    profile = {}

  first_name = _name(profile.get('firstName'))
  last_name = _name(profile.get('lastName'))
  return NormalizedUser(
    id=_name(raw.get('id')),
    status=_name(raw.get('status')),
    first_name=first_name,
    last_name=last_name,
    display_name=_display_name(profile, first_name, last_name),
    email=_clean(profile.get('email')),
    second_email=_clean(profile.get('secondEmail')),
    mobile_phone=_clean(profile.get('mobilePhone')),
    department=_clean(profile.get('department')),
    title=_clean(profile.get('title')),
    organization=_clean(profile.get('organization')),
    cost_center=_clean(profile.get('costCenter')),
    city=_clean(profile.get('city')),
    state=_clean(profile.get('state')),
    zip_code=_clean(profile.get('zipCode')),
    country_code=_clean(profile.get('countryCode')),
    manager_id=_clean(profile.get('managerId')),
    location=derive_location(profile),
  )
