# directory_client/http.py
#
# Shared HTTP utilities for the Okta client.
#
# fetch_once: a single authenticated GET with a hard timeout.
# fetch_with_retry: wraps fetch_once with backoff on rate limiting (429),
# server errors (5xx) and timeouts.
# backoff_delay: the one place that turns an attempt number and an optional
# Retry-After header into a wait time.

import importlib.metadata
import math
import random
import time
from typing import Any

import requests

from exceptions import UpstreamError, UpstreamTimeoutError

DEFAULT_TIMEOUT = 10.0  # seconds, per attempt
MAX_ATTEMPTS = 4  # one initial attempt + three retries

_BASE_DELAY = 0.5  # seconds
_MAX_JITTER = 0.2  # seconds
_MAX_DELAY = 5.0  # seconds
_MAX_RETRY_AFTER = 60.0  # seconds

# Cached User-Agent string; None = not yet resolved.
_ua_cache: str | None = None


def user_agent() -> str:
  """Return the User-Agent string sent with every Okta request.

  Resolves the installed package version once per process and falls back to
  'dev' when running from a source checkout without installed metadata.
  """
  global _ua_cache
  if _ua_cache is None:
    try:
      version = importlib.metadata.version('org-directory')
    except importlib.metadata.PackageNotFoundError:
      version = 'dev'
    _ua_cache = f'org-directory/{version}'
  return _ua_cache


def is_retryable_status(status_code: int) -> bool:
  """Return True for statuses worth retrying: 429 and any 5xx."""
  return status_code == 429 or status_code >= 500


def backoff_delay(attempt: int, retry_after: str | None = None) -> float:
  """Return how many seconds to wait before retrying after `attempt`.

  A positive, finite numeric Retry-After value (seconds) is honoured, capped
  at _MAX_RETRY_AFTER. Otherwise
  the delay is exponential from _BASE_DELAY (0.5s, 1s, 2s, ...) plus up to
  _MAX_JITTER of random jitter, capped at _MAX_DELAY. Non-numeric Retry-After
  values (HTTP dates) fall back to the exponential schedule.
  """
  if retry_after:
    try:
      parsed = float(retry_after)
    except ValueError:
      parsed = 0.0
    if math.isfinite(parsed) and parsed > 0:
      return min(parsed, _MAX_RETRY_AFTER)
  base = _BASE_DELAY * 2**attempt
  jitter = random.uniform(0, _MAX_JITTER)  # nosec S311: not a security context
  return min(base + jitter, _MAX_DELAY)


def fetch_once(
  url: str,
  token: str,
  *,
  params: dict[str, Any] | None = None,
  timeout: float = DEFAULT_TIMEOUT,
) -> requests.Response:
  """Send one authenticated GET to the Okta API.

  Returns the response whatever its status code; status handling belongs to
  the caller. Raises UpstreamTimeoutError if the request times out and
  UpstreamError (status_code=None) for any other transport failure.
  """
  headers = {
    'Accept': 'application/json',
    'Authorization': f'SSWS {token}',
    'User-Agent': user_agent(),
  }
  try:
    return requests.request('GET', url, headers=headers, params=params, timeout=timeout)
  except requests.Timeout as e:
    raise UpstreamTimeoutError(f'Okta request timed out after {timeout}s') from e
  except requests.RequestException as e:
    raise UpstreamError(f'Okta request failed: {e}') from e


def fetch_with_retry(
  url: str,
  token: str,
  *,
  params: dict[str, Any] | None = None,
  timeout: float = DEFAULT_TIMEOUT,
  max_attempts: int = MAX_ATTEMPTS,
) -> requests.Response:
  """Send an authenticated GET, retrying on transient failures.

  Retries on 429, 5xx responses and timeouts, waiting backoff_delay() between
  attempts. Any other non-2xx status raises UpstreamError immediately, as do
  non-timeout transport failures. Once max_attempts is used up the last error
  propagates: UpstreamError carrying the final status, or the final
  UpstreamTimeoutError.
  """
  for attempt in range(max_attempts):
    last_attempt = attempt == max_attempts - 1
    try:
      r = fetch_once(url, token, params=params, timeout=timeout)
    except UpstreamTimeoutError:
      if last_attempt:
        raise
      delay = backoff_delay(attempt)
      print(f'Okta: request timed out, retrying in {delay:.2f}s (attempt {attempt + 1}/{max_attempts})')
      time.sleep(delay)
      continue

    if is_retryable_status(r.status_code) and not last_attempt:
      delay = backoff_delay(attempt, r.headers.get('Retry-After'))
      print(f'Okta: HTTP {r.status_code}, retrying in {delay:.2f}s (attempt {attempt + 1}/{max_attempts})')
      time.sleep(delay)
      continue

    if not r.ok:
      raise UpstreamError(f'Okta request failed with status {r.status_code}', status_code=r.status_code)
    return r

  raise ValueError(f'max_attempts must be at least 1, got {max_attempts}')
