import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor

import pytest
from unittest.mock import MagicMock

from tiercache.core.tiered_cache import MutationHandle, TieredCache
from tiercache.domain.events.cache_events import TierOperationFailed
from tiercache.domain.interfaces.cache import RemoteStore, StoreCapability
from tiercache.domain.models.common import LOCAL_TIER, MISSING, REMOTE_TIER
from tiercache.domain.models.errors import CacheError, PropagationError, RemoteStoreError
from tiercache.infrastructure.cache.bounded_cache import BoundedCache
from tiercache.infrastructure.cache.memory_store import InMemoryStore


@pytest.fixture
def tiered(local_store, remote_store):
    cache = TieredCache(local_store, remote_store, max_workers=2)
    yield cache
    cache.close()


class BlockingStore(RemoteStore):
    """Remote tier whose writes park until released."""

    def __init__(self):
        self.release = threading.Event()
        self.data = {}

    def read(self, key):
        return self.data.get(key, MISSING)

    def write(self, key, value):
        assert self.release.wait(timeout=5)
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def clear(self):
        self.data.clear()


def test_is_substitutable_for_a_single_tier(tiered: TieredCache):
    assert isinstance(tiered, StoreCapability)


def test_read_through_returns_remote_value(tiered: TieredCache, remote_store):
    remote_store.data["K"] = "v"
    assert tiered.read("K") == "v"


def test_remote_hit_not_written_back_by_default(tiered: TieredCache, local_store, remote_store):
    remote_store.data["K"] = "v"
    assert tiered.read("K") == "v"
    assert local_store.read("K") is MISSING
    assert "K" not in local_store.cache


def test_local_value_wins_over_remote(tiered: TieredCache, local_store, remote_store):
    local_store.write("K", "local")
    remote_store.data["K"] = "remote"

    assert tiered.read("K") == "local"
    assert remote_store.reads == 0


def test_miss_on_both_tiers(tiered: TieredCache):
    assert tiered.read("absent") is MISSING


def test_cached_none_is_a_hit(tiered: TieredCache, local_store, remote_store):
    local_store.write("K", None)
    remote_store.data["K"] = "remote"
    assert tiered.read("K") is None


def test_write_back_populates_local_tier(local_store, remote_store):
    remote_store.data["K"] = "v"
    with TieredCache(local_store, remote_store, write_back=True) as cache:
        assert cache.read("K") == "v"
    assert local_store.read("K") == "v"


def test_remote_failure_on_read_propagates(local_store, failing_store):
    with TieredCache(local_store, failing_store) as cache:
        with pytest.raises(RemoteStoreError):
            cache.read("K")


def test_local_hit_skips_failing_remote(local_store, failing_store):
    local_store.write("K", 1)
    with TieredCache(local_store, failing_store) as cache:
        assert cache.read("K") == 1
    assert failing_store.calls == []


def test_write_reaches_both_tiers(tiered: TieredCache, local_store, remote_store):
    handle = tiered.write("K", "v")
    assert isinstance(handle, MutationHandle)
    handle.result(timeout=5)

    assert handle.done()
    assert set(handle.futures) == {LOCAL_TIER, REMOTE_TIER}
    assert local_store.read("K") == "v"
    assert remote_store.data["K"] == "v"


def test_delete_reaches_both_tiers(tiered: TieredCache, local_store, remote_store):
    tiered.write("K", "v").result(timeout=5)
    tiered.delete("K").result(timeout=5)

    assert local_store.read("K") is MISSING
    assert "K" not in remote_store.data
    assert tiered.read("K") is MISSING


def test_clear_reaches_both_tiers(tiered: TieredCache, local_store, remote_store):
    for i in range(3):
        tiered.write(i, i).result(timeout=5)
    handle = tiered.clear()
    handle.result(timeout=5)

    assert handle.key is None
    assert len(local_store) == 0
    assert remote_store.data == {}


def test_write_returns_before_remote_completes(local_store):
    remote = BlockingStore()
    with TieredCache(local_store, remote, max_workers=2) as cache:
        handle = cache.write("K", "v")
        assert not handle.done()

        with pytest.raises(TimeoutError):
            handle.result(timeout=0.05)

        remote.release.set()
        handle.result(timeout=5)
    assert remote.data["K"] == "v"
    assert local_store.read("K") == "v"


def test_remote_write_failure_reported_on_handle(local_store, failing_store):
    with TieredCache(local_store, failing_store) as cache:
        handle = cache.write("K", "v")
        failures = handle.wait(timeout=5)

        assert list(failures) == [REMOTE_TIER]
        with pytest.raises(PropagationError) as excinfo:
            handle.result(timeout=5)
    assert REMOTE_TIER in excinfo.value.failures
    assert excinfo.value.operation == "write"
    # The healthy tier still applied the write.
    assert local_store.read("K") == "v"


def test_failure_listener_notified(local_store, failing_store):
    received = []
    notified = threading.Event()

    def on_failure(event: TierOperationFailed):
        received.append(event)
        notified.set()

    with TieredCache(local_store, failing_store, on_failure=on_failure) as cache:
        cache.delete("K")
        assert notified.wait(timeout=5)

    event = received[0]
    assert event.tier == REMOTE_TIER
    assert event.operation == "delete"
    assert event.key == "K"
    assert isinstance(event.error, RemoteStoreError)
    assert event.error_type == "RemoteStoreError"


def test_ignored_failures_do_not_reach_caller(local_store, failing_store):
    with TieredCache(local_store, failing_store) as cache:
        cache.write("K", "v")
        cache.clear()
    # close() waited for the tasks; nothing was raised here.
    assert sorted(op for op, _ in failing_store.calls) == ["clear", "write"]


def test_injected_executor_left_running(local_store, remote_store):
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        cache = TieredCache(local_store, remote_store, executor=executor)
        cache.write("K", 1).result(timeout=5)
        cache.close()
        assert executor.submit(lambda: 7).result(timeout=5) == 7
    finally:
        executor.shutdown()


def test_operations_after_close_raise(local_store, remote_store):
    cache = TieredCache(local_store, remote_store)
    cache.close()
    cache.close()
    with pytest.raises(CacheError):
        cache.read("K")
    with pytest.raises(CacheError):
        cache.write("K", 1)


def test_cancelled_tiers_fail_the_handle(local_store):
    executor = ThreadPoolExecutor(max_workers=1)
    blocker = BlockingStore()
    cache = TieredCache(local_store, blocker, executor=executor)
    try:
        # The only worker is parked in the remote write; everything after it queues.
        cache.write("A", 1)
        handle = cache.write("K", "v")
        executor.shutdown(wait=False, cancel_futures=True)
        blocker.release.set()

        with pytest.raises(PropagationError) as excinfo:
            handle.result(timeout=5)
    finally:
        blocker.release.set()
        executor.shutdown()
    assert set(excinfo.value.failures) == {REMOTE_TIER, LOCAL_TIER}
    assert all(isinstance(e, CancelledError) for e in excinfo.value.failures.values())
    assert "K" not in blocker.data
    assert local_store.read("K") is MISSING


def test_failed_dispatch_cancels_queued_tier(local_store, remote_store):
    queued = Future()
    executor = MagicMock(spec=Executor)
    executor.submit.side_effect = [queued, RuntimeError("cannot schedule new futures after shutdown")]
    cache = TieredCache(local_store, remote_store, executor=executor)

    with pytest.raises(CacheError) as excinfo:
        cache.write("K", "v")

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert queued.cancelled()
    assert remote_store.data == {}
    assert local_store.read("K") is MISSING


def test_shut_down_injected_executor_raises_cache_error(local_store, remote_store):
    executor = ThreadPoolExecutor(max_workers=1)
    executor.shutdown()
    cache = TieredCache(local_store, remote_store, executor=executor)
    with pytest.raises(CacheError):
        cache.delete("K")
    with pytest.raises(CacheError):
        cache.clear()


def test_rejects_empty_pool(local_store, remote_store):
    with pytest.raises(ValueError):
        TieredCache(local_store, remote_store, max_workers=0)


def test_tiers_are_read_only(tiered: TieredCache, local_store, remote_store):
    assert tiered.local is local_store
    assert tiered.remote is remote_store
    with pytest.raises(AttributeError):
        tiered.local = InMemoryStore(BoundedCache(1))


def test_many_concurrent_writes_converge(remote_store):
    local = InMemoryStore(BoundedCache(1000))
    with TieredCache(local, remote_store, max_workers=8) as cache:
        handles = [cache.write(i, i * i) for i in range(200)]
        for handle in handles:
            handle.result(timeout=10)

    for i in range(200):
        assert local.read(i) == i * i
        assert remote_store.data[i] == i * i


def test_tiered_cache_can_be_a_tier(remote_store):
    inner = TieredCache(InMemoryStore(BoundedCache(2)), remote_store)
    outer_local = MagicMock(spec=StoreCapability)
    outer_local.read.return_value = MISSING
    with TieredCache(outer_local, inner) as outer:
        remote_store.data["K"] = "deep"
        assert outer.read("K") == "deep"
    inner.close()
