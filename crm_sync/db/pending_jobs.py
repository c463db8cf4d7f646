"""
Pending job registry — Redis-based dedup of deferred jobs.

A job identity is (hook, args signature). Claiming an identity with
SET NX EX marks the job as pending; the job releases it when it starts
running so later changes schedule a fresh job. The TTL bounds the
scheduling window in case a job is lost before it runs.
Version: 1.0.0
"""
import hashlib
import json
import logging
import threading
import time
from typing import Any, Dict, Tuple

import redis

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "crm_sync:pending_job"
DEFAULT_TTL = 3600


def compute_args_signature(args: Dict[str, Any]) -> str:
    """Deterministic hash of job arguments."""
    normalized = json.dumps(args, sort_keys=True, default=str)
    return hashlib.md5(normalized.encode()).hexdigest()


class PendingJobRegistry:
    """Tracks which job identities currently have a pending job."""

    def claim(self, hook: str, args: Dict[str, Any], force: bool = False) -> bool:
        """Mark (hook, args) as pending. Returns False if already pending and not forced."""
        raise NotImplementedError

    def release(self, hook: str, args: Dict[str, Any]) -> None:
        raise NotImplementedError

    def is_pending(self, hook: str, args: Dict[str, Any]) -> bool:
        raise NotImplementedError


class RedisPendingJobRegistry(PendingJobRegistry):

    def __init__(self, redis_client: redis.Redis, ttl: int = DEFAULT_TTL, key_prefix: str = REDIS_KEY_PREFIX):
        self._redis = redis_client
        self._ttl = ttl
        self._key_prefix = key_prefix

    def _key(self, hook: str, args: Dict[str, Any]) -> str:
        return f"{self._key_prefix}:{hook}:{compute_args_signature(args)}"

    def claim(self, hook: str, args: Dict[str, Any], force: bool = False) -> bool:
        key = self._key(hook, args)
        if force:
            self._redis.set(key, 1, ex=self._ttl)
            logger.debug(f"Pending job FORCED: hook={hook}, args={args}")
            return True

        acquired = self._redis.set(key, 1, nx=True, ex=self._ttl)
        if not acquired:
            logger.debug(f"Pending job EXISTS: hook={hook}, args={args}, skipping")
        return bool(acquired)

    def release(self, hook: str, args: Dict[str, Any]) -> None:
        self._redis.delete(self._key(hook, args))

    def is_pending(self, hook: str, args: Dict[str, Any]) -> bool:
        return bool(self._redis.exists(self._key(hook, args)))


class InMemoryPendingJobRegistry(PendingJobRegistry):

    def __init__(self, ttl: int = DEFAULT_TTL, clock=time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._expiry: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def _identity(self, hook: str, args: Dict[str, Any]) -> Tuple[str, str]:
        return hook, compute_args_signature(args)

    def _alive(self, identity: Tuple[str, str]) -> bool:
        expires_at = self._expiry.get(identity)
        if expires_at is None:
            return False
        if expires_at <= self._clock():
            del self._expiry[identity]
            return False
        return True

    def claim(self, hook: str, args: Dict[str, Any], force: bool = False) -> bool:
        identity = self._identity(hook, args)
        with self._lock:
            if not force and self._alive(identity):
                return False
            self._expiry[identity] = self._clock() + self._ttl
            return True

    def release(self, hook: str, args: Dict[str, Any]) -> None:
        with self._lock:
            self._expiry.pop(self._identity(hook, args), None)

    def is_pending(self, hook: str, args: Dict[str, Any]) -> bool:
        with self._lock:
            return self._alive(self._identity(hook, args))
