# directory_client/client.py
#
# Okta directory client.
#
# Composes the fetch/retry helpers, the Link-header cursor decoder, the
# record normalizer and an injected MemoCache into three read operations:
#
#   fetch_one(id)             one user, None when Okta answers 404
#   fetch_page(cursor, limit) one page of users plus the next cursor
#   fetch_all()               every user, following cursors to the end
#
# Each is cached for `ttl` seconds under a key built from its arguments, so a
# warm fetch_all() makes no upstream calls at all. Pages are walked strictly
# in sequence since each request needs the previous page's cursor.
#
# Required config.toml keys ([okta], or the matching environment variables):
#   org_url: Okta org base URL, e.g. https://example.okta.com (OKTA_ORG_URL)
#   api_token: Okta API token, read-only admin is enough (OKTA_API_TOKEN)
#
# Optional config.toml keys:
#   [okta].timeout: per-attempt timeout in seconds (default 10)
#   [okta].max_attempts: attempts per request including the first (default 4)
#   [okta].page_size: users per page during fetch_all (default 200, max 200)
#   [okta].max_pages: abort fetch_all after this many pages (default: no cap)
#   [cache].ttl: cache lifetime in seconds (default 600)

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urljoin

import requests

from directory_client.cache import MemoCache
from directory_client.http import DEFAULT_TIMEOUT, MAX_ATTEMPTS, fetch_once, fetch_with_retry
from directory_client.normalize import NormalizedUser, normalize_user
from directory_client.pagination import next_cursor
from exceptions import DirectoryConfigError, PaginationLimitExceededError, UpstreamError

CACHE_TTL = 10 * 60  # seconds
MAX_PAGE_SIZE = 200  # Okta's ceiling for /api/v1/users
PING_TIMEOUT = 8.0  # seconds

_USERS_PATH = '/api/v1/users'
_ALL_USERS_KEY = 'users:all'


@dataclass
class Page:
  users: list[NormalizedUser] = field(default_factory=list)
  next_cursor: str | None = None  # None = last page


def _clamp_limit(limit: int) -> int:
  return max(1, min(limit, MAX_PAGE_SIZE))


class DirectoryClient:
  """Cached, retrying reader for the Okta users API."""

  def __init__(
    self,
    org_url: str,
    api_token: str,
    cache: MemoCache,
    *,
    ttl: float = CACHE_TTL,
    timeout: float = DEFAULT_TIMEOUT,
    max_attempts: int = MAX_ATTEMPTS,
    page_size: int = MAX_PAGE_SIZE,
    max_pages: int | None = None,
  ) -> None:
    self.org_url = org_url
    self.api_token = api_token
    self.cache = cache
    self.ttl = ttl
    self.timeout = timeout
    self.max_attempts = max_attempts
    self.page_size = _clamp_limit(page_size)
    self.max_pages = max_pages

  @classmethod
  def from_config(cls, cache: MemoCache) -> 'DirectoryClient':
    """Build a client from the loaded config.toml.

    Missing credentials only produce a warning here; every operation then
    raises DirectoryConfigError so the HTTP layer can answer 500.
    """
    import config as _config_mod

    org_url = _config_mod.get_secret('okta', 'org_url', 'OKTA_ORG_URL')
    api_token = _config_mod.get_secret('okta', 'api_token', 'OKTA_API_TOKEN')
    if not org_url:
      print('Warning: [okta].org_url / OKTA_ORG_URL is not configured. Directory routes will fail.')
    if not api_token:
      print('Warning: [okta].api_token / OKTA_API_TOKEN is not configured. Directory routes will fail.')

    max_pages = _config_mod.get_optional_int('okta', 'max_pages', 0)
    return cls(
      org_url,
      api_token,
      cache,
      ttl=_config_mod.get_optional_float('cache', 'ttl', CACHE_TTL),
      timeout=_config_mod.get_optional_float('okta', 'timeout', DEFAULT_TIMEOUT),
      max_attempts=_config_mod.get_optional_int('okta', 'max_attempts', MAX_ATTEMPTS),
      page_size=_config_mod.get_optional_int('okta', 'page_size', MAX_PAGE_SIZE),
      max_pages=max_pages if max_pages > 0 else None,
    )

  # --- Requests ---

  def _url(self, path: str) -> str:
    if not self.org_url or not self.api_token:
      raise DirectoryConfigError('Okta client not configured: set [okta].org_url and [okta].api_token')
    return urljoin(self.org_url, path)

  def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response:
    return fetch_with_retry(
      self._url(path),
      self.api_token,
      params=params,
      timeout=self.timeout,
      max_attempts=self.max_attempts,
    )

  @staticmethod
  def _json(r: requests.Response) -> Any:
    try:
      return r.json()
    except ValueError:
      raise UpstreamError('Okta returned a body that is not valid JSON', status_code=r.status_code) from None

  def _load_page(self, cursor: str | None, limit: int) -> Page:
    params: dict[str, Any] = {'limit': limit}
    if cursor:
      params['after'] = cursor
    r = self._get(_USERS_PATH, params)
    data = self._json(r)
    if not isinstance(data, list):
      raise UpstreamError('Okta users response is not a list', status_code=r.status_code)
    return Page(
      users=[normalize_user(item) for item in data],
      next_cursor=next_cursor(r.headers.get('Link')),
    )

  def _load_all(self) -> list[NormalizedUser]:
    users: list[NormalizedUser] = []
    cursor: str | None = None
    pages = 0
    while True:
      if self.max_pages is not None and pages >= self.max_pages:
        raise PaginationLimitExceededError(f'Okta pagination exceeded {self.max_pages} page(s)')
      page = self._load_page(cursor, self.page_size)
      pages += 1
      users.extend(page.users)
      if page.next_cursor is None:
        return users
      cursor = page.next_cursor

  # --- Operations ---

  def fetch_one(self, user_id: str) -> NormalizedUser | None:
    """Return the user with the given Okta id, or None if Okta answers 404.

    A miss is not cached; asking again for the same id goes back upstream.
    """

    def load() -> NormalizedUser:
      r = self._get(f'{_USERS_PATH}/{quote(user_id, safe="")}')
      return normalize_user(self._json(r))

    try:
      return self.cache.get_or_compute(f'user:{user_id}', self.ttl, load)
    except UpstreamError as e:
      if e.status_code == 404:
        return None
      raise

  def fetch_page(self, cursor: str | None = None, limit: int = MAX_PAGE_SIZE) -> Page:
    """Return one page of users starting at cursor (None = first page)."""
    limit = _clamp_limit(limit)
    key = f'users:{cursor or "start"}:{limit}'
    return self.cache.get_or_compute(key, self.ttl, lambda: self._load_page(cursor, limit))

  def fetch_all(self) -> list[NormalizedUser]:
    """Return every user in the org, in upstream page order.

    Follows next cursors until a page comes back without one. There is no
    page cap unless max_pages is set, in which case
    PaginationLimitExceededError is raised instead of fetching more.
    """
    return self.cache.get_or_compute(_ALL_USERS_KEY, self.ttl, self._load_all)

  def refresh_all(self) -> list[NormalizedUser]:
    """Reload every user from Okta and replace the cached fetch_all result."""
    users = self._load_all()
    self.cache.store(_ALL_USERS_KEY, users, self.ttl)
    return users

  def ping(self) -> dict[str, Any]:
    """Probe the users endpoint once, uncached and without retries.

    Returns {'ok', 'status', 'sample'} where sample is the number of users
    returned (0 or 1) or None when the body is not a JSON list. Raises
    DirectoryConfigError, UpstreamTimeoutError or UpstreamError like the other
    operations.
    """
    r = fetch_once(self._url(_USERS_PATH), self.api_token, params={'limit': 1}, timeout=PING_TIMEOUT)
    try:
      body = r.json()
    except ValueError:
      body = None
    return {
      'ok': r.ok,
      'status': r.status_code,
      'sample': len(body) if isinstance(body, list) else None,
    }

  def clear_cache(self) -> None:
    """Forget every cached lookup; the next call of each kind hits Okta."""
    self.cache.clear()
