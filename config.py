# config.py
#
# TOML configuration loader.
#
# Call load_config() once at startup (e.g. from main()). All other functions
# read from the module-level cache and may be called from any thread.
#
# Client modules import config inside their functions so they can be
# imported in tests without a real config file present.

import os
import sys
import tomllib
from pathlib import Path

_CONFIG_PATH = Path('config.toml')
_EXAMPLE_PATH = Path('config.example.toml')

_config: dict = {}


def load_config() -> None:
  """Load config.toml from the current working directory.

  Exits with a clear message if the file is missing. Lets
  tomllib.TOMLDecodeError propagate on parse errors.
  """
  global _config
  if not _CONFIG_PATH.exists():
    print(
      f'Error: config.toml not found. Copy {_EXAMPLE_PATH} to config.toml and fill in your values.',
      file=sys.stderr,
    )
    raise SystemExit(1)
  with open(_CONFIG_PATH, 'rb') as f:
    _config = tomllib.load(f)


def get(section: str, key: str) -> str:
  """Return a required string config value.

  Raises ValueError with a descriptive message if the section or key is
  missing, or if the value is an empty string.
  """
  value = _config.get(section, {}).get(key)
  if not value:
    raise ValueError(f'Missing required config key [{section}].{key} in config.toml')
  return str(value)


def has_section(section: str) -> bool:
  """Return True if the given top-level section exists in the loaded config."""
  return section in _config


def get_optional(section: str, key: str, default: str = '') -> str:
  """Return an optional string config value, or default if absent."""
  value = _config.get(section, {}).get(key)
  if value is None:
    return default
  return str(value)


def get_secret(section: str, key: str, env_var: str) -> str:
  """Return a credential, preferring the environment over config.toml.

  Lets container deployments inject OKTA_ORG_URL / OKTA_API_TOKEN without
  writing them to disk. Returns '' when neither source has a value; callers
  decide whether that is fatal.
  """
  from_env = os.environ.get(env_var, '').strip()
  if from_env:
    return from_env
  return get_optional(section, key).strip()


def get_optional_int(section: str, key: str, default: int) -> int:
  """Return an optional integer config value, or default if absent.

  Raises ValueError naming the key if the value is present but not an
  integer (TOML booleans are rejected too).
  """
  value = _config.get(section, {}).get(key)
  if value is None:
    return default
  if isinstance(value, bool) or not isinstance(value, (int, str)):
    raise ValueError(f'[{section}].{key} must be an integer, got {value!r}')
  try:
    return int(value)
  except ValueError:
    raise ValueError(f'[{section}].{key} must be an integer, got {value!r}') from None


def get_optional_float(section: str, key: str, default: float) -> float:
  """Return an optional numeric config value (int or float), or default."""
  value = _config.get(section, {}).get(key)
  if value is None:
    return default
  if isinstance(value, bool):
    raise ValueError(f'[{section}].{key} must be a number, got {value!r}')
  try:
    return float(value)
  except (TypeError, ValueError):
    raise ValueError(f'[{section}].{key} must be a number, got {value!r}') from None


def get_optional_bool(section: str, key: str, default: bool = False) -> bool:
  """Return an optional boolean config value, or default if absent.

  Uses the raw TOML value rather than casting through str, so TOML booleans
  (e.g. `allow_cache_clear = true`) are returned as Python bools correctly.
  """
  value = _config.get(section, {}).get(key)
  if value is None:
    return default
  return bool(value)
