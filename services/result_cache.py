"""In-process, size- and age-bounded cache of screening results."""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from models.classification import ClassificationResult

LOGGER = logging.getLogger(__name__)

FINGERPRINT_SAMPLE_CHARS = 1000
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
	if value == 0:
		return "0"
	sign = "-" if value < 0 else ""
	value = abs(value)
	digits = []
	while value:
		value, rem = divmod(value, 36)
		digits.append(_BASE36[rem])
	return sign + "".join(reversed(digits))


def fingerprint(b64_payload: str, sample_chars: int = FINGERPRINT_SAMPLE_CHARS) -> str:
	"""Return a cheap, non-cryptographic fingerprint of a base64 image.

	A 31-multiplier rolling hash over the first `sample_chars` characters,
	wrapped to a signed 32-bit integer and rendered in base 36. Collisions are
	possible; the fingerprint is only a cache key.
	"""
	h = 0
	for ch in b64_payload[:sample_chars]:
		h = (h * 31 + ord(ch)) & 0xFFFFFFFF
	if h >= 0x80000000:
		h -= 0x100000000
	return _to_base36(h)


@dataclass
class CacheEntry:
	"""A cached result and when it was stored."""

	result: ClassificationResult
	created_at: float
	fingerprint: str


class ResultCache:
	"""Memoize classification results by image fingerprint.

	Eviction is insertion-order FIFO: when full, the oldest inserted entry is
	dropped; reads do not refresh an entry. Entries older than `ttl_seconds`
	are misses and are removed when touched. All operations hold a lock so the
	cache may be shared across threads.
	"""

	def __init__(
		self,
		capacity: int = 100,
		ttl_seconds: float = 24 * 60 * 60,
		clock: Callable[[], float] = time.time,
	) -> None:
		if capacity < 1:
			raise ValueError("Cache capacity must be at least 1.")
		self.capacity = capacity
		self.ttl_seconds = ttl_seconds
		self._clock = clock
		self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
		self._lock = threading.Lock()

	def _expired(self, entry: CacheEntry, now: float) -> bool:
		return now - entry.created_at >= self.ttl_seconds

	def get(self, key: str) -> Optional[ClassificationResult]:
		"""Return a copy of the cached result for `key`, or None on miss or expiry."""
		with self._lock:
			entry = self._entries.get(key)
			if entry is None:
				return None
			if self._expired(entry, self._clock()):
				del self._entries[key]
				LOGGER.debug("Cache entry %s expired", key)
				return None
			return copy.deepcopy(entry.result)

	def put(self, key: str, result: ClassificationResult) -> None:
		"""Store `result` under `key`, evicting the oldest entry when full."""
		with self._lock:
			if key in self._entries:
				del self._entries[key]
			elif len(self._entries) >= self.capacity:
				evicted, _ = self._entries.popitem(last=False)
				LOGGER.debug("Cache full, evicted %s", evicted)
			self._entries[key] = CacheEntry(
				result=copy.deepcopy(result),
				created_at=self._clock(),
				fingerprint=key,
			)

	def prune(self) -> int:
		"""Drop every expired entry and return how many were removed."""
		with self._lock:
			now = self._clock()
			stale = [k for k, e in self._entries.items() if self._expired(e, now)]
			for key in stale:
				del self._entries[key]
			return len(stale)

	def clear(self) -> None:
		with self._lock:
			self._entries.clear()

	def __contains__(self, key: object) -> bool:
		with self._lock:
			entry = self._entries.get(key)  # type: ignore[arg-type]
			return entry is not None and not self._expired(entry, self._clock())

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)
