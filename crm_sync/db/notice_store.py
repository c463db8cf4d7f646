"""
Admin notice store — which export notices are currently shown.

Notices are plain names (see core.constants.export NOTICE_*). Adding a
notice that is already shown, or deleting one that is not, is a no-op.
"""
import logging
import threading
from typing import List, Set

import redis

logger = logging.getLogger(__name__)

REDIS_KEY = "crm_sync:notices"


class NoticeStore:

    def possibly_add(self, notice: str) -> bool:
        """Show ``notice``. Returns True if it was not shown before."""
        raise NotImplementedError

    def possibly_delete(self, notice: str) -> bool:
        """Hide ``notice``. Returns True if it was shown before."""
        raise NotImplementedError

    def active(self) -> List[str]:
        raise NotImplementedError


class RedisNoticeStore(NoticeStore):

    def __init__(self, redis_client: redis.Redis, key: str = REDIS_KEY):
        self._redis = redis_client
        self._key = key

    def possibly_add(self, notice: str) -> bool:
        added = bool(self._redis.sadd(self._key, notice))
        if added:
            logger.info(f"Notice added: {notice}")
        return added

    def possibly_delete(self, notice: str) -> bool:
        removed = bool(self._redis.srem(self._key, notice))
        if removed:
            logger.info(f"Notice removed: {notice}")
        return removed

    def active(self) -> List[str]:
        members = self._redis.smembers(self._key) or set()
        return sorted(m.decode("utf-8") if isinstance(m, bytes) else m for m in members)


class InMemoryNoticeStore(NoticeStore):

    def __init__(self) -> None:
        self._notices: Set[str] = set()
        self._lock = threading.Lock()

    def possibly_add(self, notice: str) -> bool:
        with self._lock:
            if notice in self._notices:
                return False
            self._notices.add(notice)
        logger.info(f"Notice added: {notice}")
        return True

    def possibly_delete(self, notice: str) -> bool:
        with self._lock:
            if notice not in self._notices:
                return False
            self._notices.discard(notice)
        logger.info(f"Notice removed: {notice}")
        return True

    def active(self) -> List[str]:
        with self._lock:
            return sorted(self._notices)
