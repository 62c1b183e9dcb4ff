# directory_client/pagination.py
#
# Cursor decoding for Okta's Link-header pagination.
#
# Okta advertises the next page as
#   Link: <https://org.okta.com/api/v1/users?after=00u1abc&limit=200>; rel="next"
# The cursor is opaque: it is pulled out of the URL and handed back verbatim
# as the `after` parameter of the next request.

from urllib.parse import parse_qs, urlparse

import requests


def next_cursor(link_header: str | None) -> str | None:
  """Return the cursor from the rel="next" link, or None on the last page.

  Reads the `after` query parameter, falling back to `cursor`. Links without
  either parameter are skipped.
  """
  if not link_header:
    return None
  for link in requests.utils.parse_header_links(link_header):
    if 'next' not in link.get('rel', '').split():
      continue
    query = parse_qs(urlparse(link.get('url', '')).query)
    cursor = (query.get('after') or query.get('cursor') or [''])[0]
    if cursor:
      return cursor
  return None
