# directory_client/cache.py
#
# Time-based memo cache for Okta lookups.
#
# One MemoCache is created at service startup and handed to the
# DirectoryClient, which is the only writer. Entries expire lazily: an entry
# past its deadline is ignored on read and overwritten on the next successful
# compute, but nothing sweeps the store in the background.

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar('T')


@dataclass
class CacheEntry:
  """A cached value and the monotonic deadline after which it is stale."""

  value: Any
  expires_at: float

  def is_valid(self, now: float) -> bool:
    """Return True if the entry can still be served at `now`."""
    return now < self.expires_at


class MemoCache:
  """Key → value cache with a per-call TTL (seconds).

  Not locked: two threads missing the same key at once both run their
  supplier, and the later result wins.
  """

  def __init__(self, clock: Callable[[], float] | None = None) -> None:
    self._clock = clock or time.monotonic
    self._entries: dict[str, CacheEntry] = {}

  def __len__(self) -> int:
    return len(self._entries)

  def get_or_compute(self, key: str, ttl: float, supplier: Callable[[], T]) -> T:
    """Return the live value for key, or compute, store and return it.

    The deadline is measured from before the supplier runs. If the supplier
    raises, nothing is stored and the exception propagates.
    """
    now = self._clock()
    entry = self._entries.get(key)
    if entry is not None and entry.is_valid(now):
      return entry.value
    value = supplier()
    self._entries[key] = CacheEntry(value, now + ttl)
    return value

  def store(self, key: str, value: Any, ttl: float) -> None:
    """Overwrite the entry for key with a fresh value."""
    self._entries[key] = CacheEntry(value, self._clock() + ttl)

  def clear(self) -> None:
    """Drop every entry."""
    self._entries.clear()
