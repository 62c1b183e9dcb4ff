from unittest.mock import MagicMock

import pytest

from directory_client.cache import CacheEntry, MemoCache


class _Clock:
  """Manually advanced stand-in for time.monotonic."""

  def __init__(self, now: float = 1000.0) -> None:
    self.now = now

  def __call__(self) -> float:
    return self.now


# --- CacheEntry ---


def test_cache_entry_valid_before_deadline() -> None:
  assert CacheEntry('v', expires_at=10.0).is_valid(9.99)


def test_cache_entry_invalid_at_deadline() -> None:
  assert not CacheEntry('v', expires_at=10.0).is_valid(10.0)


# --- MemoCache ---


def test_get_or_compute_calls_supplier_once_within_ttl() -> None:
  clock = _Clock()
  cache = MemoCache(clock)
  supplier = MagicMock(return_value=['ada'])

  first = cache.get_or_compute('users:all', 60, supplier)
  clock.now += 59
  second = cache.get_or_compute('users:all', 60, supplier)

  assert first == second == ['ada']
  supplier.assert_called_once()


def test_get_or_compute_recomputes_after_expiry() -> None:
  clock = _Clock()
  cache = MemoCache(clock)
  supplier = MagicMock(side_effect=['old', 'new'])

  assert cache.get_or_compute('k', 60, supplier) == 'old'
  clock.now += 60
  assert cache.get_or_compute('k', 60, supplier) == 'new'
  assert supplier.call_count == 2


def test_deadline_measured_from_before_supplier_runs() -> None:
  clock = _Clock()
  cache = MemoCache(clock)

  def slow() -> str:
    clock.now += 30
    return 'value'

  cache.get_or_compute('k', 60, slow)
  clock.now += 30  # 60s after the call started
  supplier = MagicMock(return_value='fresh')
  assert cache.get_or_compute('k', 60, supplier) == 'fresh'


def test_keys_are_independent() -> None:
  cache = MemoCache(_Clock())
  assert cache.get_or_compute('user:1', 60, lambda: 'one') == 'one'
  assert cache.get_or_compute('user:2', 60, lambda: 'two') == 'two'
  assert len(cache) == 2


def test_failing_supplier_caches_nothing() -> None:
  cache = MemoCache(_Clock())
  with pytest.raises(RuntimeError):
    cache.get_or_compute('k', 60, MagicMock(side_effect=RuntimeError('boom')))
  assert len(cache) == 0
  assert cache.get_or_compute('k', 60, lambda: 'recovered') == 'recovered'


def test_failure_after_expiry_keeps_stale_entry_unserved() -> None:
  clock = _Clock()
  cache = MemoCache(clock)
  cache.get_or_compute('k', 60, lambda: 'old')
  clock.now += 120
  with pytest.raises(RuntimeError):
    cache.get_or_compute('k', 60, MagicMock(side_effect=RuntimeError('boom')))
  # Still physically stored, never served once expired.
  assert len(cache) == 1
  assert cache.get_or_compute('k', 60, lambda: 'new') == 'new'


def test_none_is_a_cacheable_value() -> None:
  cache = MemoCache(_Clock())
  supplier = MagicMock(return_value=None)
  cache.get_or_compute('k', 60, supplier)
  cache.get_or_compute('k', 60, supplier)
  supplier.assert_called_once()


def test_store_overwrites_live_entry() -> None:
  cache = MemoCache(_Clock())
  cache.get_or_compute('k', 60, lambda: 'old')
  cache.store('k', 'new', 60)
  assert cache.get_or_compute('k', 60, lambda: 'unused') == 'new'


def test_clear_drops_everything() -> None:
  cache = MemoCache(_Clock())
  cache.get_or_compute('a', 60, lambda: 1)
  cache.get_or_compute('b', 60, lambda: 2)
  cache.clear()
  assert len(cache) == 0
  supplier = MagicMock(return_value=3)
  assert cache.get_or_compute('a', 60, supplier) == 3
  supplier.assert_called_once()


def test_default_clock_is_monotonic(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr('directory_client.cache.time.monotonic', lambda: 5.0)
  cache = MemoCache()
  cache.store('k', 'v', 10)
  assert cache._entries['k'].expires_at == 15.0
