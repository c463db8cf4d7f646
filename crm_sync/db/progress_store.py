"""
Progress store — persisted export state per data type.

Each data type owns one ExportState record. Writes are full-record
compare-and-set operations keyed on the record's ``version`` so concurrent
workers never interleave field-level updates.

Backends:
- RedisProgressStore: JSON record per key, CAS via an atomic Lua script
- InMemoryProgressStore: process-local, for development and tests

Usage:
    store = get_progress_store()
    state = store.get("product")
    store.update("product", lambda s: s.model_copy(update={"offset": 500}))
"""

import logging
import threading
from typing import Callable, Dict, Iterable, Optional

import redis

from crm_sync.core.constants.export import MAX_STATE_UPDATE_ATTEMPTS
from crm_sync.core.exceptions import StateConflictError
from crm_sync.schemas.export import ExportState

logger = logging.getLogger("progress_store")

REDIS_KEY_PREFIX = "crm_sync:export_state"

# Mutators receive a copy of the current state and return the new state,
# or None to leave the record untouched.
StateMutator = Callable[[ExportState], Optional[ExportState]]

# Compare-and-set on the stored record's version.
# ARGV[1] = expected version, ARGV[2] = new JSON record
COMPARE_AND_SET_SCRIPT = """
local current = redis.call('GET', KEYS[1])
local version = 0
if current then
    version = tonumber(cjson.decode(current)['version']) or 0
end
if version ~= tonumber(ARGV[1]) then
    return 0
end
redis.call('SET', KEYS[1], ARGV[2])
return 1
"""


class ProgressStore:
    """Base class with the read-modify-write loop shared by all backends."""

    def get(self, data_type: str) -> ExportState:
        raw = self._load(data_type)
        if raw is None:
            return ExportState(data_type=data_type)
        return ExportState.model_validate_json(raw)

    def get_many(self, data_types: Iterable[str]) -> Dict[str, ExportState]:
        return {data_type: self.get(data_type) for data_type in data_types}

    def compare_and_set(self, expected_version: int, state: ExportState) -> bool:
        """
        Store ``state`` only if the stored record is still at ``expected_version``.

        Args:
            expected_version: Version the caller read before computing ``state``
            state: Full new record (its version should be expected_version + 1)

        Returns:
            True if the write happened, False if another writer got there first
        """
        return self._cas(state.data_type, expected_version, state.model_dump_json())

    def update(self, data_type: str, mutator: StateMutator) -> ExportState:
        """
        Apply ``mutator`` to the current record atomically, retrying on conflict.

        Raises:
            StateConflictError: if every attempt lost the race
        """
        for attempt in range(1, MAX_STATE_UPDATE_ATTEMPTS + 1):
            current = self.get(data_type)
            new_state = mutator(current.model_copy(deep=True))
            if new_state is None:
                return current

            new_state = new_state.model_copy(update={"version": current.version + 1})
            if self.compare_and_set(current.version, new_state):
                return new_state

            logger.debug(
                f"Export state CAS conflict for {data_type} "
                f"(attempt {attempt}/{MAX_STATE_UPDATE_ATTEMPTS})"
            )

        logger.error(f"Giving up export state update for {data_type}")
        raise StateConflictError(data_type, MAX_STATE_UPDATE_ATTEMPTS)

    def _load(self, data_type: str) -> Optional[str]:
        raise NotImplementedError

    def _cas(self, data_type: str, expected_version: int, payload: str) -> bool:
        raise NotImplementedError


class RedisProgressStore(ProgressStore):
    """Export state kept in Redis, one JSON document per data type."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = REDIS_KEY_PREFIX):
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._cas_script = self._redis.register_script(COMPARE_AND_SET_SCRIPT)

    def _key(self, data_type: str) -> str:
        return f"{self._key_prefix}:{data_type}"

    def _load(self, data_type: str) -> Optional[str]:
        raw = self._redis.get(self._key(data_type))
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return raw

    def _cas(self, data_type: str, expected_version: int, payload: str) -> bool:
        result = self._cas_script(keys=[self._key(data_type)], args=[expected_version, payload])
        return bool(int(result))


class InMemoryProgressStore(ProgressStore):
    """Process-local export state."""

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _load(self, data_type: str) -> Optional[str]:
        with self._lock:
            return self._records.get(data_type)

    def _cas(self, data_type: str, expected_version: int, payload: str) -> bool:
        with self._lock:
            raw = self._records.get(data_type)
            version = ExportState.model_validate_json(raw).version if raw else 0
            if version != expected_version:
                return False
            self._records[data_type] = payload
            return True
