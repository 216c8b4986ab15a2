"""Time-to-live memoization on top of the plain key-value store.

The store has no native expiry, so each value is wrapped in a JSON envelope
``{"value": ..., "expires_at": <ms since epoch>}``. Entries are only expired
lazily when read. Store failures never reach the caller: a failed read is a
miss and a failed write is logged and dropped.
"""
import json
import logging
import time
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import db

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
KNOWN_KANJI_TTL_MS = 3 * DAY_MS


def now_ms() -> int:
    return int(time.time() * 1000)


class TTLCache:
    def __init__(self, store: Any = db, clock: Callable[[], int] = now_ms):
        # `store` needs get_value/set_value/delete_value; the db module qualifies
        self.store = store
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.store.get_value(key)
        except SQLAlchemyError as e:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, e)
            return None
        if raw is None:
            logger.debug("Cache miss: %s", key)
            return None
        try:
            entry = json.loads(raw)
            expires_at = int(entry["expires_at"])
            value = entry["value"]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Cache entry %s is unreadable, treating as miss: %s", key, e)
            return None
        if self.clock() >= expires_at:
            logger.debug("Cache expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return value

    def put(self, key: str, value: Any, ttl_ms: int) -> None:
        entry = {"value": value, "expires_at": self.clock() + ttl_ms}
        try:
            self.store.set_value(key, json.dumps(entry, ensure_ascii=False))
        except SQLAlchemyError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def invalidate(self, key: str) -> None:
        try:
            self.store.delete_value(key)
        except SQLAlchemyError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    def expires_at(self, key: str) -> Optional[int]:
        """Raw expiry of an entry regardless of whether it is still fresh."""
        try:
            raw = self.store.get_value(key)
            return int(json.loads(raw)["expires_at"]) if raw else None
        except (SQLAlchemyError, ValueError, TypeError, KeyError):
            return None
