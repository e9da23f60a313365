"""
Content cache - string key/value store with a fixed capacity model.

Sizes are estimated the way a browser estimates localStorage usage: two bytes
per UTF-16 code unit of key plus value. Eviction only runs inside ``set``.
"""

from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import SessionLocal
from .models import CacheEntry
from .schemas import StorageInfo
from .settings import settings

logger = logging.getLogger(__name__)

_TRAILING_NUMBER = re.compile(r"-(\d+)$")


class CacheQuotaExceeded(Exception):
	"""Raised when a write would push usage above the total capacity."""


def estimate_size(key: str, value: str) -> int:
	# UTF-16 code units, so characters outside the BMP count as 4 bytes
	return len((key + value).encode("utf-16-le"))


def recency_rank(key: str) -> int:
	"""Trailing ``-<timestamp>`` of a key, or 0 (oldest) when there is none."""
	match = _TRAILING_NUMBER.search(key)
	return int(match.group(1)) if match else 0


class CacheService:
	def __init__(
		self,
		session_factory: Callable[[], Session] = SessionLocal,
		*,
		total_bytes: Optional[int] = None,
		max_item_bytes: Optional[int] = None,
		eviction_threshold: Optional[float] = None,
	) -> None:
		self._session_factory = session_factory
		self.total_bytes = total_bytes or settings.cache_total_bytes
		self.max_item_bytes = max_item_bytes or settings.cache_max_item_bytes
		self.eviction_threshold = eviction_threshold or settings.cache_eviction_threshold

	@property
	def threshold_bytes(self) -> float:
		return self.total_bytes * self.eviction_threshold

	def get(self, key: str) -> Optional[str]:
		db = self._session_factory()
		try:
			row = db.get(CacheEntry, key)
			return row.value if row is not None else None
		except SQLAlchemyError as e:
			logger.error("Error retrieving item with key %s from cache: %s", key, e)
			return None
		finally:
			db.close()

	def set(self, key: str, value: str) -> bool:
		size = estimate_size(key, value)
		if size > self.max_item_bytes:
			logger.warning(
				"Refusing to cache %s: %d bytes exceeds the %d byte item limit",
				key, size, self.max_item_bytes,
			)
			return False
		if self._used_bytes() > self.threshold_bytes:
			self._evict(incoming=size)
		try:
			self._write(key, value, size)
			return True
		except CacheQuotaExceeded:
			logger.warning("Cache quota exceeded while writing %s; evicting and retrying once", key)
			self._evict(incoming=size)
			try:
				self._write(key, value, size)
				return True
			except (CacheQuotaExceeded, SQLAlchemyError) as e:
				logger.error("Error setting item with key %s in cache after eviction: %s", key, e)
				return False
		except SQLAlchemyError as e:
			logger.error("Error setting item with key %s in cache: %s", key, e)
			return False

	def remove(self, key: str) -> bool:
		db = self._session_factory()
		try:
			row = db.get(CacheEntry, key)
			if row is not None:
				db.delete(row)
				db.commit()
			return True
		except SQLAlchemyError as e:
			db.rollback()
			logger.error("Error removing item with key %s from cache: %s", key, e)
			return False
		finally:
			db.close()

	def clear(self) -> bool:
		db = self._session_factory()
		try:
			db.query(CacheEntry).delete()
			db.commit()
			return True
		except SQLAlchemyError as e:
			db.rollback()
			logger.error("Error clearing cache: %s", e)
			return False
		finally:
			db.close()

	def has_item(self, key: str) -> bool:
		return self.get(key) is not None

	def get_keys_by_prefix(self, prefix: str) -> List[str]:
		db = self._session_factory()
		try:
			# startswith() escapes LIKE wildcards so prompts containing % or _ match literally
			rows = (
				db.query(CacheEntry.key)
				.filter(CacheEntry.key.startswith(prefix, autoescape=True))
				.all()
			)
			return [r[0] for r in rows]
		except SQLAlchemyError as e:
			logger.error("Error listing cache keys with prefix %s: %s", prefix, e)
			return []
		finally:
			db.close()

	def clear_by_prefix(self, prefix: str) -> int:
		keys = self.get_keys_by_prefix(prefix)
		removed = 0
		for key in keys:
			if self.remove(key):
				removed += 1
		return removed

	def get_storage_info(self) -> StorageInfo:
		used = self._used_bytes()
		return StorageInfo(
			used_bytes=used,
			total_bytes=self.total_bytes,
			percentage_used=(used / self.total_bytes) * 100 if self.total_bytes else 0.0,
		)

	def _used_bytes(self) -> int:
		db = self._session_factory()
		try:
			return int(db.query(func.coalesce(func.sum(CacheEntry.size_bytes), 0)).scalar() or 0)
		except SQLAlchemyError as e:
			logger.error("Error measuring cache usage: %s", e)
			return 0
		finally:
			db.close()

	def _write(self, key: str, value: str, size: int) -> None:
		db = self._session_factory()
		try:
			row = db.get(CacheEntry, key)
			previous = row.size_bytes if row is not None else 0
			used = int(db.query(func.coalesce(func.sum(CacheEntry.size_bytes), 0)).scalar() or 0)
			if used - previous + size > self.total_bytes:
				raise CacheQuotaExceeded(f"writing {key} needs {size} bytes, {self.total_bytes - used + previous} free")
			if row is None:
				row = CacheEntry(key=key, value=value, size_bytes=size)
				db.add(row)
			else:
				row.value = value
				row.size_bytes = size
				row.updated_at = datetime.utcnow()
			db.commit()
		except SQLAlchemyError:
			db.rollback()
			raise
		finally:
			db.close()

	def _evict(self, incoming: int = 0) -> int:
		"""Delete oldest entries until usage plus ``incoming`` fits under the threshold."""
		db = self._session_factory()
		removed = 0
		try:
			rows: List[Tuple[str, int, datetime]] = (
				db.query(CacheEntry.key, CacheEntry.size_bytes, CacheEntry.updated_at).all()
			)
			projected = sum(r[1] for r in rows) + incoming
			if projected <= self.threshold_bytes:
				return 0
			ordered = sorted(rows, key=lambda r: (recency_rank(r[0]), r[2] or datetime.min))
			doomed: List[str] = []
			for key, size, _ in ordered:
				if projected <= self.threshold_bytes:
					break
				doomed.append(key)
				projected -= size
			if doomed:
				db.query(CacheEntry).filter(CacheEntry.key.in_(doomed)).delete(synchronize_session=False)
				db.commit()
				removed = len(doomed)
			logger.info("Evicted %d cache entries; projected usage %d bytes", removed, projected)
			return removed
		except SQLAlchemyError as e:
			db.rollback()
			logger.error("Error evicting cache entries: %s", e)
			return removed
		finally:
			db.close()
