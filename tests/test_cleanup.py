"""
Tests for lock-guarded cleanup of expired entries.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from oauthdb.backend.memory import MemoryStorageBackend
from oauthdb.common.cancellation import CancellationToken
from oauthdb.core.config import DatabaseConfig
from oauthdb.core.database import OAuthDatabase
from oauthdb.errors import ContextInvalidatedError
from oauthdb.store.cleanup import CleanupOutcome

from conftest import FailingBackend

STATES_KEY = "test-oauth:states"
TEN_MINUTES_MS = 10 * 60 * 1000


def quick_config(**kwargs):
    """Configuration with millisecond cleanup timing"""
    options = dict(
        name="test-oauth",
        cleanup_delay=timedelta(milliseconds=10),
        cleanup_interval=timedelta(milliseconds=10),
        auto_cleanup=False,
    )
    options.update(kwargs)
    return DatabaseConfig(**options)


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true"""
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout)


class InvalidatedBackend(MemoryStorageBackend):
    """Host storage that was torn down"""

    async def get(self, key):
        raise ContextInvalidatedError("get", key)


class TestLockGuardedCleanup:
    """Cleanup coordination between contexts"""

    @pytest.mark.asyncio
    async def test_only_one_context_sweeps(self, backend, lock_manager, clock):
        """Two contexts racing for the lock sweep once"""
        a = OAuthDatabase(quick_config(), backend, lock_manager, clock=clock)
        b = OAuthDatabase(quick_config(), backend, lock_manager, clock=clock)

        await a.states.set("old", {"verifier": "1"})
        clock.advance(TEN_MINUTES_MS)
        writes = len(backend.sets_for(STATES_KEY))

        results = await asyncio.gather(
            a.states.cleanup.run_once(),
            b.states.cleanup.run_once(),
        )

        outcomes = sorted(result.outcome.value for result in results)
        assert outcomes == [CleanupOutcome.SKIPPED.value, CleanupOutcome.SWEPT.value]
        assert sum(result.removed for result in results) == 1
        assert len(backend.sets_for(STATES_KEY)) == writes + 1
        assert json.loads(backend.snapshot()[STATES_KEY]) == {}

        a.dispose()
        b.dispose()

    @pytest.mark.asyncio
    async def test_lock_name_and_release(self, backend, lock_manager, clock):
        """The lock is named after the record and released after the sweep"""
        database = OAuthDatabase(quick_config(), backend, lock_manager, clock=clock)
        coordinator = database.states.cleanup

        assert coordinator.lock_name == "test-oauth:states:cleanup"

        result = await coordinator.run_once()

        assert result.outcome is CleanupOutcome.SWEPT
        assert not lock_manager.is_held(coordinator.lock_name)
        database.dispose()

    @pytest.mark.asyncio
    async def test_busy_lock_skips_without_io(self, backend, lock_manager, clock):
        """A context that finds the lock taken touches nothing"""
        database = OAuthDatabase(quick_config(), backend, lock_manager, clock=clock)
        coordinator = database.states.cleanup

        async with lock_manager.acquire(coordinator.lock_name) as acquired:
            assert acquired
            result = await coordinator.run_once()

        assert result.outcome is CleanupOutcome.SKIPPED
        assert backend.gets == []
        assert backend.sets == []
        database.dispose()

    @pytest.mark.asyncio
    async def test_unguarded_sweep_without_lock_manager(self, backend, clock):
        """Without a lock service the sweep still runs"""
        database = OAuthDatabase(quick_config(), backend, clock=clock)
        await database.dpop_nonces.set("n", "nonce")
        clock.advance(TEN_MINUTES_MS)

        result = await database.dpop_nonces.cleanup.run_once()

        assert result.outcome is CleanupOutcome.SWEPT
        assert result.removed == 1
        database.dispose()


class TestCleanupCancellation:
    """Disposal stops pending sweeps before they reach the backend"""

    @pytest.mark.asyncio
    async def test_cancelled_during_delay(self, backend, lock_manager, clock):
        """Disposing while the sweep waits aborts it"""
        database = OAuthDatabase(
            quick_config(cleanup_delay=timedelta(seconds=10)), backend, lock_manager, clock=clock
        )
        coordinator = database.states.cleanup

        task = asyncio.create_task(coordinator.run_once())
        await asyncio.sleep(0)
        assert lock_manager.is_held(coordinator.lock_name)

        database.dispose()
        result = await asyncio.wait_for(task, 1.0)

        assert result.outcome is CleanupOutcome.CANCELLED
        assert backend.gets == []
        assert backend.sets == []
        assert not lock_manager.is_held(coordinator.lock_name)

    @pytest.mark.asyncio
    async def test_run_after_dispose(self, backend, clock):
        """A disposed database never sweeps"""
        database = OAuthDatabase(quick_config(), backend, clock=clock)
        database.dispose()

        result = await database.sessions.cleanup.run_once()

        assert result.outcome is CleanupOutcome.CANCELLED
        assert backend.gets == []

    @pytest.mark.asyncio
    async def test_scheduled_task_issues_no_io_after_dispose(self, backend, clock):
        """A background sweep waiting on its delay is dropped on dispose"""
        config = quick_config(auto_cleanup=True, cleanup_delay=timedelta(milliseconds=50))
        database = OAuthDatabase(config, backend, clock=clock)

        await database.states.keys()
        assert database.states.cleanup.scheduled
        reads = len(backend.gets)

        database.dispose()
        await database.close()
        await asyncio.sleep(0.1)

        assert len(backend.gets) == reads
        assert backend.sets == []


class TestBackgroundCleanup:
    """The cleanup task started by a partition's first operation"""

    @pytest.mark.asyncio
    async def test_recurring_sweep(self, backend, lock_manager, clock):
        """Expired entries keep being removed for the database's lifetime"""
        config = quick_config(auto_cleanup=True)
        database = OAuthDatabase(config, backend, lock_manager, clock=clock)

        def stored_keys():
            return set(json.loads(backend.snapshot().get(STATES_KEY, "{}")))

        await database.states.set("first", {"verifier": "1"})
        clock.advance(TEN_MINUTES_MS)
        await wait_until(lambda: "first" not in stored_keys())

        await database.states.set("second", {"verifier": "2"})
        clock.advance(TEN_MINUTES_MS)
        await wait_until(lambda: "second" not in stored_keys())

        await database.close()
        assert database.disposed

    @pytest.mark.asyncio
    async def test_single_shot_sweep(self, backend, clock):
        """With recurring cleanup off the task ends after one sweep"""
        config = quick_config(auto_cleanup=True, recurring_cleanup=False)
        database = OAuthDatabase(config, backend, clock=clock)

        await database.states.set("old", {"verifier": "1"})
        clock.advance(TEN_MINUTES_MS)

        await asyncio.wait_for(database.states.cleanup.wait_closed(), 1.0)

        assert json.loads(backend.snapshot()[STATES_KEY]) == {}
        database.dispose()

    @pytest.mark.asyncio
    async def test_storage_errors_do_not_stop_the_task(self, clock):
        """Failed sweeps are logged and retried on the next interval"""
        backend = FailingBackend()
        database = OAuthDatabase(quick_config(auto_cleanup=True), backend, clock=clock)

        await database.states.keys()
        await wait_until(lambda: backend.get_calls >= 3)

        assert not database.states.cleanup._task.done()
        await database.close()

    @pytest.mark.asyncio
    async def test_invalidated_context_stops_the_task(self, clock):
        """Permanent loss of the host storage ends the cleanup loop"""
        database = OAuthDatabase(quick_config(auto_cleanup=True), InvalidatedBackend(), clock=clock)

        await database.states.keys()
        await asyncio.wait_for(database.states.cleanup.wait_closed(), 1.0)

        assert database.states.cleanup._task.exception() is None
        database.dispose()

    @pytest.mark.asyncio
    async def test_disabled_cleanup_never_schedules(self, backend, clock):
        """auto_cleanup=False leaves sweeping to the caller"""
        database = OAuthDatabase(quick_config(), backend, clock=clock)

        await database.sessions.keys()

        assert not database.sessions.cleanup.scheduled
        database.dispose()


class TestCancellationToken:
    """The shared cancellation signal"""

    @pytest.mark.asyncio
    async def test_sleep_completes(self):
        """sleep() reports a full delay"""
        assert await CancellationToken().sleep(0.01) is True

    @pytest.mark.asyncio
    async def test_sleep_interrupted(self):
        """cancel() wakes a sleeper early"""
        token = CancellationToken()
        sleeper = asyncio.create_task(token.sleep(10))
        await asyncio.sleep(0)

        token.cancel()

        assert await asyncio.wait_for(sleeper, 1.0) is False
        assert await token.sleep(10) is False

    def test_callbacks(self):
        """Callbacks run once; late callbacks run immediately"""
        token = CancellationToken("t")
        calls = []

        def broken():
            raise RuntimeError("boom")

        token.add_callback(broken)
        token.add_callback(lambda: calls.append("a"))
        removed = lambda: calls.append("removed")
        token.add_callback(removed)
        token.remove_callback(removed)

        token.cancel()
        token.cancel()
        assert calls == ["a"]

        token.add_callback(lambda: calls.append("late"))
        assert calls == ["a", "late"]
        assert token.cancelled
