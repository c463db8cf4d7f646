"""
Unit tests for the pending job registry and the admin notice store.

Version: 1.0.0
"""
import pytest
from unittest.mock import MagicMock

from crm_sync.db.notice_store import InMemoryNoticeStore, RedisNoticeStore
from crm_sync.db.pending_jobs import (
    InMemoryPendingJobRegistry,
    RedisPendingJobRegistry,
    compute_args_signature,
)


pytestmark = pytest.mark.unit

ARGS = {"data_type": "product", "item_id": "42"}


class TestArgsSignature:

    def test_key_order_does_not_matter(self):
        assert compute_args_signature({"a": 1, "b": 2}) == compute_args_signature({"b": 2, "a": 1})

    def test_different_args_differ(self):
        assert compute_args_signature({"item_id": "1"}) != compute_args_signature({"item_id": "2"})


class TestInMemoryPendingJobRegistry:

    def test_second_claim_is_refused(self):
        registry = InMemoryPendingJobRegistry()
        assert registry.claim("product_sync", ARGS) is True
        assert registry.claim("product_sync", ARGS) is False

    def test_force_claim_always_succeeds(self):
        registry = InMemoryPendingJobRegistry()
        registry.claim("product_sync", ARGS)
        assert registry.claim("product_sync", ARGS, force=True) is True

    def test_release_allows_new_claim(self):
        registry = InMemoryPendingJobRegistry()
        registry.claim("product_sync", ARGS)
        registry.release("product_sync", ARGS)
        assert registry.is_pending("product_sync", ARGS) is False
        assert registry.claim("product_sync", ARGS) is True

    def test_claim_expires_after_ttl(self):
        now = [1000.0]
        registry = InMemoryPendingJobRegistry(ttl=60, clock=lambda: now[0])
        registry.claim("product_sync", ARGS)

        now[0] += 59
        assert registry.is_pending("product_sync", ARGS) is True
        now[0] += 1
        assert registry.is_pending("product_sync", ARGS) is False
        assert registry.claim("product_sync", ARGS) is True

    def test_hooks_are_separate_identities(self):
        registry = InMemoryPendingJobRegistry()
        registry.claim("product_sync", ARGS)
        assert registry.claim("customer_sync", ARGS) is True


class TestRedisPendingJobRegistry:

    def test_claim_uses_set_nx_ex(self):
        redis_client = MagicMock()
        redis_client.set.return_value = True
        registry = RedisPendingJobRegistry(redis_client, ttl=3600)

        assert registry.claim("product_sync", ARGS) is True

        args, kwargs = redis_client.set.call_args
        assert args[0] == f"crm_sync:pending_job:product_sync:{compute_args_signature(ARGS)}"
        assert kwargs == {"nx": True, "ex": 3600}

    def test_claim_refused_when_key_exists(self):
        redis_client = MagicMock()
        redis_client.set.return_value = None
        registry = RedisPendingJobRegistry(redis_client)
        assert registry.claim("product_sync", ARGS) is False

    def test_forced_claim_overwrites(self):
        redis_client = MagicMock()
        registry = RedisPendingJobRegistry(redis_client, ttl=10)

        assert registry.claim("product_sync", ARGS, force=True) is True
        assert redis_client.set.call_args.kwargs == {"ex": 10}

    def test_release_and_is_pending(self):
        redis_client = MagicMock()
        redis_client.exists.return_value = 1
        registry = RedisPendingJobRegistry(redis_client)

        assert registry.is_pending("product_export", {"data_type": "product"}) is True
        registry.release("product_export", {"data_type": "product"})
        redis_client.delete.assert_called_once()


class TestNoticeStores:

    def test_in_memory_add_is_idempotent(self):
        notices = InMemoryNoticeStore()
        assert notices.possibly_add("export_in_progress") is True
        assert notices.possibly_add("export_in_progress") is False
        assert notices.active() == ["export_in_progress"]

    def test_in_memory_delete_missing_is_noop(self):
        notices = InMemoryNoticeStore()
        assert notices.possibly_delete("export_failed") is False
        notices.possibly_add("export_failed")
        assert notices.possibly_delete("export_failed") is True
        assert notices.active() == []

    def test_redis_store_uses_set_commands(self):
        redis_client = MagicMock()
        redis_client.sadd.return_value = 1
        redis_client.srem.return_value = 0
        redis_client.smembers.return_value = {b"export_failed", "export_completed"}
        notices = RedisNoticeStore(redis_client)

        assert notices.possibly_add("export_failed") is True
        assert notices.possibly_delete("export_in_progress") is False
        assert notices.active() == ["export_completed", "export_failed"]
        redis_client.sadd.assert_called_once_with("crm_sync:notices", "export_failed")
