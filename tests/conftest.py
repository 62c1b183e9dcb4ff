import os
from typing import Generator

import pytest

import config as _cfg
import directory_client.http as http_mod


@pytest.fixture(autouse=True)
def reset_module_state() -> Generator[None, None, None]:
  """Start every test with an empty config and an unresolved User-Agent."""
  original = _cfg._config
  _cfg._config = {}
  http_mod._ua_cache = None
  yield
  _cfg._config = original
  http_mod._ua_cache = None


@pytest.fixture
def require_env(request: pytest.FixtureRequest) -> None:
  """Skip the test if any env vars listed in @pytest.mark.require_env are unset."""
  marker = request.node.get_closest_marker('require_env')
  if marker is None:
    return
  for var in marker.args:
    if not os.environ.get(var, '').strip():
      pytest.skip(f'{var!r} not set')
