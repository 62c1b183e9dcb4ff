# exceptions.py
#
# Shared exception types used across server.py, directory.py and
# directory_client/.
#
# Kept in a standalone module so that the client package can import directly
# without going through `server`, which avoids the dual-module identity
# problem that arises when server.py runs as __main__.


class DirectoryConfigError(Exception):
  """Raised when the Okta org URL or API token is not configured.

  Fatal for the request: route handlers answer with a 500 rather than
  reaching out to the upstream.
  """


class UpstreamError(Exception):
  """Raised when the Okta API answers with a failure or cannot be reached.

  status_code carries the HTTP status of the last observed response, or None
  when no response was received (connection refused, DNS failure, ...).
  Callers branch on status_code, never on the message text.
  """

  def __init__(self, message: str, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
  """Raised when a request to the Okta API exceeds its timeout."""


class PaginationLimitExceededError(UpstreamError):
  """Raised when a fetch-all walk would follow more pages than allowed."""
