import os
from pathlib import Path

import pytest

# Credentials the live Okta tests need, mapped to the config.toml key each
# one stands in for.
_OKTA_VARS: dict[str, str] = {
  'OKTA_ORG_URL': '[okta].org_url',
  'OKTA_API_TOKEN': '[okta].api_token',
}

_ENV_FILE = Path(__file__).resolve().parents[2] / '.env'

# (nodeid, reason) for every live test skipped this session.
_skipped: list[tuple[str, str]] = []


def _parse_env_line(line: str) -> tuple[str, str] | None:
  """Parse one `KEY=value` line from a .env file; None for blanks and comments.

  Accepts an optional leading `export `, and strips matching quotes or a
  trailing ` # comment` from the value.
  """
  line = line.strip()
  if not line or line.startswith('#'):
    return None
  line = line.removeprefix('export ').lstrip()
  key, sep, value = line.partition('=')
  key = key.strip()
  if not sep or not key:
    return None
  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
    return key, value[1:-1]
  return key, value.split(' #', 1)[0].rstrip()


def _okta_env_from_file() -> dict[str, str]:
  if not _ENV_FILE.is_file():
    return {}
  pairs = (_parse_env_line(line) for line in _ENV_FILE.read_text().splitlines())
  return {key: value for key, value in filter(None, pairs) if key in _OKTA_VARS}


# Real environment variables (CI secrets) win over the .env file.
_from_file = {key: value for key, value in _okta_env_from_file().items() if key not in os.environ}
os.environ.update(_from_file)


@pytest.fixture(scope='session', autouse=True)
def _okta_credentials_report() -> None:
  """Show where each Okta credential came from before the live tests run."""
  print('\nOkta credentials:')
  for var, config_key in _OKTA_VARS.items():
    if var in _from_file:
      source = f'from {_ENV_FILE.name}'
    elif os.environ.get(var, '').strip():
      source = 'from environment'
    else:
      source = 'MISSING'
    print(f'  {var} ({config_key}): {source}')
  print()


def pytest_runtest_logreport(report: pytest.TestReport) -> None:
  if report.skipped and report.when in ('setup', 'call'):
    reason = report.longrepr[-1] if isinstance(report.longrepr, tuple) else str(report.longrepr)
    _skipped.append((report.nodeid, reason))


def pytest_terminal_summary(terminalreporter: pytest.TerminalReporter) -> None:
  if not _skipped:
    return
  terminalreporter.section('skipped live Okta tests')
  for nodeid, reason in _skipped:
    terminalreporter.write_line(f'{nodeid}: {reason}')


def pytest_sessionfinish(session: pytest.Session, exitstatus: int | pytest.ExitCode) -> None:
  """Fail an otherwise green run when live tests were skipped for lack of credentials."""
  if exitstatus == pytest.ExitCode.OK and _skipped:
    session.exitstatus = pytest.ExitCode.NO_TESTS_COLLECTED
