# server.py
#
# HTTP front end for the organization directory.
#
# Serves the JSON routes the web UI calls (user search and listing, single
# user lookup, department and location facets, CSV export, an Okta
# connectivity probe) on top of one shared DirectoryClient and its MemoCache.
# Requests are handled on a thread per connection; the cache is shared
# across them and is not locked.
#
# Every upstream failure other than "user not found" is answered with a
# generic error body so raw Okta responses never reach the browser. Each
# request logs one JSON line with method, path, status and duration.
#
# Optional config.toml keys:
#   [server].bind: bind address (default 127.0.0.1)
#   [server].port: port (default 8080)
#   [server].allow_cache_clear: expose POST /api/cache/clear (default false)
#   [cache].warm_interval: seconds between background reloads of the
#     full user list (default 0 = disabled)

import json
import time
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from apscheduler.schedulers.background import BackgroundScheduler

import config as _config_mod
import directory
from directory_client.cache import MemoCache
from directory_client.client import DirectoryClient
from directory_client.http import user_agent
from exceptions import DirectoryConfigError, UpstreamError, UpstreamTimeoutError

DEFAULT_PAGE_LIMIT = 25
MAX_PAGE_LIMIT = 100
_MAX_USER_ID_LEN = 200


class BadRequestError(ValueError):
  """Raised while parsing query parameters; answered with a 400."""


def _int_param(params: dict[str, list[str]], name: str, default: int) -> int:
  raw = params.get(name, [''])[0].strip()
  if not raw:
    return default
  try:
    return int(raw)
  except ValueError:
    raise BadRequestError(f'{name} must be an integer') from None


def _query_users(client: DirectoryClient, params: dict[str, list[str]]) -> list[Any]:
  """Apply search, filters and sort from the query string to fetch_all()."""
  sort = params.get('sort', ['name'])[0] or 'name'
  direction = params.get('direction', ['asc'])[0] or 'asc'
  if sort not in directory.SORT_KEYS:
    raise BadRequestError(f'Unknown sort {sort!r}')
  if direction not in directory.DIRECTIONS:
    raise BadRequestError(f'Unknown direction {direction!r}')

  users = client.fetch_all()
  users = directory.search_users(users, params.get('query', [''])[0])
  users = directory.filter_users(
    users,
    departments=params.get('department', []),
    location=params.get('location', [''])[0] or None,
  )
  return directory.sort_users(users, sort, direction)


def _log_request(method: str, path: str, status: int, started_at: float) -> None:
  print(
    json.dumps(
      {
        'method': method,
        'path': path,
        'status': status,
        'durationMs': round((time.monotonic() - started_at) * 1000),
      }
    )
  )


def _make_handler(client: DirectoryClient, allow_cache_clear: bool = False) -> type:
  """Return a BaseHTTPRequestHandler subclass bound to the given client."""

  class _DirectoryHandler(BaseHTTPRequestHandler):
    _client: DirectoryClient = client
    _allow_cache_clear: bool = allow_cache_clear

    def do_GET(self) -> None:  # noqa: N802
      started_at = time.monotonic()
      parsed = urlparse(self.path)
      params = parse_qs(parsed.query)
      status = self._dispatch_get(parsed.path.rstrip('/'), params)
      _log_request('GET', parsed.path, status, started_at)

    def do_POST(self) -> None:  # noqa: N802
      started_at = time.monotonic()
      path = urlparse(self.path).path.rstrip('/')
      if path == '/api/cache/clear' and self._allow_cache_clear:
        self._client.clear_cache()
        print('Cache cleared')
        status = self._json(200, {'cleared': True})
      else:
        status = self._json(404, {'error': 'Not found'})
      _log_request('POST', path, status, started_at)

    # --- Routing ---

    def _dispatch_get(self, path: str, params: dict[str, list[str]]) -> int:
      try:
        if path == '/api/users':
          return self._list_users(params)
        if path.startswith('/api/users/'):
          return self._get_user(unquote(path[len('/api/users/') :]))
        if path == '/api/departments':
          return self._json(200, {'departments': directory.list_departments(self._client.fetch_all())})
        if path == '/api/locations':
          return self._json(200, {'locations': directory.list_locations(self._client.fetch_all())})
        if path == '/api/export.csv':
          return self._export_csv(params)
        if path == '/api/okta/ping':
          return self._ping()
        return self._json(404, {'error': 'Not found'})
      except BadRequestError as e:
        return self._json(400, {'error': str(e)})
      except DirectoryConfigError as e:
        print(f'Directory error on {path}: {e}')
        return self._json(500, {'error': 'Directory is not configured'})
      except UpstreamTimeoutError as e:
        print(f'Directory error on {path}: {e}')
        return self._json(504, {'error': 'Upstream unavailable'})
      except UpstreamError as e:
        print(f'Directory error on {path}: {e}')
        return self._json(502, {'error': 'Upstream unavailable'})

    # --- Routes ---

    def _list_users(self, params: dict[str, list[str]]) -> int:
      limit = max(1, min(_int_param(params, 'limit', DEFAULT_PAGE_LIMIT), MAX_PAGE_LIMIT))
      offset = max(0, _int_param(params, 'cursor', 0))
      users = _query_users(self._client, params)
      page, next_offset = directory.paginate(users, offset, limit)
      return self._json(
        200,
        {
          'total': len(users),
          'users': [u.to_dict() for u in page],
          'nextCursor': next_offset,
          'limit': limit,
        },
      )

    def _get_user(self, user_id: str) -> int:
      if not user_id or len(user_id) > _MAX_USER_ID_LEN or '/' in user_id:
        return self._json(400, {'error': 'Invalid user id'})
      user = self._client.fetch_one(user_id)
      if user is None:
        return self._json(404, {'error': 'User not found'})
      return self._json(200, user.to_dict())

    def _export_csv(self, params: dict[str, list[str]]) -> int:
      body = directory.users_to_csv(_query_users(self._client, params)).encode()
      self.send_response(200)
      self.send_header('Content-Type', 'text/csv; charset=utf-8')
      self.send_header('Content-Disposition', 'attachment; filename="directory.csv"')
      self.send_header('Content-Length', str(len(body)))
      self.send_header('Cache-Control', 'no-store')
      self.end_headers()
      self.wfile.write(body)
      return 200

    def _ping(self) -> int:
      try:
        result = self._client.ping()
      except DirectoryConfigError:
        return self._json(500, {'ok': False, 'error': 'Missing configuration'})
      except UpstreamTimeoutError:
        return self._json(504, {'ok': False, 'error': 'timeout'})
      except UpstreamError as e:
        print(f'Okta ping failed: {e}')
        return self._json(504, {'ok': False, 'error': 'Upstream unavailable'})
      return self._json(200, result)

    # --- Responses ---

    def _json(self, code: int, payload: Any) -> int:
      body = json.dumps(payload).encode()
      self.send_response(code)
      self.send_header('Content-Type', 'application/json')
      self.send_header('Content-Length', str(len(body)))
      self.send_header('Cache-Control', 'no-store')
      self.end_headers()
      self.wfile.write(body)
      return code

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
      pass  # replaced by the JSON line from _log_request

  return _DirectoryHandler


# --- Cache Warm-up ---


def _refresh_job(client: DirectoryClient) -> None:
  try:
    users = client.refresh_all()
  except (DirectoryConfigError, UpstreamError) as e:
    # The previous snapshot keeps serving until its TTL runs out.
    print(f'Warning: directory refresh failed: {e}')
    return
  print(f'Directory refreshed: {len(users)} user(s)')


def start_cache_warmer(client: DirectoryClient, interval: float) -> BackgroundScheduler:
  """Reload the full user list every `interval` seconds in the background.

  The first run happens immediately so the cache is warm before the first
  request arrives.
  """
  scheduler = BackgroundScheduler()
  scheduler.add_job(
    _refresh_job,
    trigger='interval',
    args=[client],
    seconds=interval,
    id='directory.refresh',
    next_run_time=datetime.now().astimezone(),
    max_instances=1,
    coalesce=True,
  )
  scheduler.start()
  print(f'Cache warm-up scheduled every {interval:g}s')
  return scheduler


# --- Startup ---


def _preflight(client: DirectoryClient) -> None:
  """Probe Okta once at startup; problems are warnings, not fatal."""
  try:
    result = client.ping()
  except (DirectoryConfigError, UpstreamError) as e:
    print(f'Warning: Okta preflight failed: {e}')
    return
  if not result['ok']:
    print(f'Warning: Okta preflight returned HTTP {result["status"]}')


def main() -> None:
  _config_mod.load_config()

  try:
    port = _config_mod.get_optional_int('server', 'port', 8080)
  except ValueError:
    port_raw = _config_mod.get_optional('server', 'port', '8080')
    print(f'Warning: invalid server port {port_raw!r}, defaulting to 8080')
    port = 8080
  bind = _config_mod.get_optional('server', 'bind', '127.0.0.1')
  allow_cache_clear = _config_mod.get_optional_bool('server', 'allow_cache_clear')
  warm_interval = _config_mod.get_optional_float('cache', 'warm_interval', 0)

  cache = MemoCache()
  client = DirectoryClient.from_config(cache)
  print(
    f'Starting {user_agent()}: cache ttl {client.ttl:g}s, '
    f'max pages {client.max_pages or "unbounded"}'
  )
  _preflight(client)

  scheduler = start_cache_warmer(client, warm_interval) if warm_interval > 0 else None

  server = ThreadingHTTPServer((bind, port), _make_handler(client, allow_cache_clear))
  print(f'Directory listening on {bind}:{port}')
  try:
    server.serve_forever()
  except KeyboardInterrupt:
    pass
  finally:
    server.server_close()
    if scheduler is not None:
      scheduler.shutdown()


if __name__ == '__main__':
  main()
