"""
Tests for partition stores: expiry, persistence and failure handling.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from oauthdb.common.cancellation import CancellationToken
from oauthdb.core.database import OAuthDatabase
from oauthdb.errors import ErrorCode, StorageIOError
from oauthdb.store.cleanup import CleanupSettings
from oauthdb.store.partition import PartitionStore
from oauthdb.store.types import Entry, never_expires, fixed_ttl

from conftest import FailingBackend

SESSIONS_KEY = "test-oauth:sessions"
STATES_KEY = "test-oauth:states"


@pytest.fixture
def database(db_config, backend, clock):
    """Database on the recording backend with a simulated clock"""
    db = OAuthDatabase(db_config, backend, clock=clock)
    yield db
    db.dispose()


def make_session(clock, refresh, expires_in=None):
    token = {"type": "DPoP", "access": "at", "refresh": refresh}
    if expires_in is not None:
        token["expires_at"] = clock() + expires_in
    return {"dpopKey": {"kty": "EC"}, "info": {"sub": "did:plc:abc"}, "token": token}


class TestSessionExpiry:
    """Sessions expire with their access token unless refreshable"""

    @pytest.mark.asyncio
    async def test_non_refreshable_session_expires(self, database, clock):
        """A session without refresh token disappears once its token expires"""
        session = make_session(clock, refresh=False, expires_in=1000)

        await database.sessions.set("acct-1", session)
        assert await database.sessions.get("acct-1") == session

        clock.advance(1500)

        assert await database.sessions.get("acct-1") is None
        assert "acct-1" not in await database.sessions.keys()

    @pytest.mark.asyncio
    async def test_refreshable_session_never_expires(self, database, backend, clock):
        """A refreshable session is stored without expiry"""
        session = make_session(clock, refresh=True)

        await database.sessions.set("acct-2", session)

        record = json.loads(backend.snapshot()[SESSIONS_KEY])
        assert record["acct-2"]["expiresAt"] is None

        clock.advance(int(timedelta(days=365).total_seconds() * 1000))

        assert await database.sessions.get("acct-2") == session

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_inclusive(self, database, clock):
        """An entry is gone at exactly its expiry time"""
        await database.states.set("state-1", {"verifier": "v"})

        clock.advance(10 * 60 * 1000 - 1)
        assert await database.states.get("state-1") == {"verifier": "v"}

        clock.advance(1)
        assert await database.states.get("state-1") is None

    @pytest.mark.asyncio
    async def test_expired_get_persists_removal(self, database, backend, clock):
        """Reading an expired entry removes it from the persisted record"""
        await database.dpop_nonces.set("https://pds.example.com", "nonce-1")
        clock.advance(10 * 60 * 1000)

        assert await database.dpop_nonces.get("https://pds.example.com") is None

        record = json.loads(backend.snapshot()["test-oauth:dpopNonces"])
        assert record == {}


class TestPartitionOperations:
    """Basic get/set/delete/keys behaviour"""

    @pytest.mark.asyncio
    async def test_set_persists_whole_record(self, database, backend, clock):
        """Each write stores every entry of the partition"""
        await database.states.set("a", {"verifier": "1"})
        await database.states.set("b", {"verifier": "2"})

        record = json.loads(backend.snapshot()[STATES_KEY])
        assert set(record) == {"a", "b"}
        assert record["a"] == {
            "value": {"verifier": "1"},
            "expiresAt": clock() + 10 * 60 * 1000,
        }

    @pytest.mark.asyncio
    async def test_writes_carry_context_origin(self, database, backend):
        """Persisted writes are tagged with the database's context id"""
        await database.states.set("a", {"verifier": "1"})

        assert backend.sets[-1][2] == database.context_id

    @pytest.mark.asyncio
    async def test_delete_absent_key_does_not_persist(self, database, backend):
        """Deleting a missing key issues no write"""
        await database.sessions.delete("nobody")
        await database.sessions.delete("nobody")

        assert backend.sets_for(SESSIONS_KEY) == []

    @pytest.mark.asyncio
    async def test_delete_present_key(self, database, backend, clock):
        """Deleting an existing key persists the record once"""
        await database.sessions.set("acct", make_session(clock, refresh=True))
        await database.sessions.delete("acct")

        assert len(backend.sets_for(SESSIONS_KEY)) == 2
        assert json.loads(backend.snapshot()[SESSIONS_KEY]) == {}
        assert await database.sessions.get("acct") is None

    @pytest.mark.asyncio
    async def test_keys_include_unswept_expired_entries(self, database, clock):
        """keys() lists entries that expired but were not yet removed"""
        await database.states.set("old", {"verifier": "1"})
        clock.advance(10 * 60 * 1000)

        assert await database.states.keys() == ["old"]

    @pytest.mark.asyncio
    async def test_existing_record_is_loaded(self, db_config, backend, clock):
        """A record written earlier is read on first use"""
        await backend.set(STATES_KEY, json.dumps({
            "s": {"value": {"verifier": "v"}, "expiresAt": clock() + 1000},
        }))
        database = OAuthDatabase(db_config, backend, clock=clock)

        assert await database.states.get("s") == {"verifier": "v"}
        database.dispose()

    @pytest.mark.asyncio
    async def test_bytes_record_is_decoded(self, db_config, backend, clock):
        """Backends may hand back raw bytes"""
        await backend.set(STATES_KEY, json.dumps({
            "s": {"value": "x", "expiresAt": None},
        }).encode("utf-8"))
        database = OAuthDatabase(db_config, backend, clock=clock)

        assert await database.states.get("s") == "x"
        database.dispose()

    @pytest.mark.asyncio
    async def test_record_is_served_from_memory(self, database, backend):
        """Only the first operation reads the backend"""
        await database.states.get("a")
        await database.states.set("a", {"verifier": "1"})
        await database.states.keys()

        assert backend.gets == [STATES_KEY]
        assert database.states.loaded

    @pytest.mark.asyncio
    async def test_concurrent_first_operations_share_one_load(self, database, backend):
        """Operations racing the initial load wait for the same read"""
        results = await asyncio.gather(
            database.states.get("a"),
            database.states.get("b"),
            database.states.keys(),
        )

        assert results == [None, None, []]
        assert backend.gets == [STATES_KEY]

    @pytest.mark.asyncio
    async def test_operations_apply_in_call_order(self, database):
        """A set issued before a get is visible to that get"""
        _, value = await asyncio.gather(
            database.states.set("a", {"verifier": "1"}),
            database.states.get("a"),
        )

        assert value == {"verifier": "1"}

    @pytest.mark.asyncio
    async def test_unencodable_value_is_rejected(self, database, backend):
        """Values that are not JSON data raise and leave the record untouched"""
        with pytest.raises(TypeError):
            await database.states.set("bad", {"verifier": object()})

        assert backend.sets_for(STATES_KEY) == []
        assert await database.states.keys() == []


class TestSweep:
    """Removal of every expired entry at once"""

    @pytest.mark.asyncio
    async def test_sweep_removes_exactly_expired_entries(self, database, backend, clock):
        """Only entries with expiresAt <= now are removed"""
        await database.states.set("old", {"verifier": "1"})
        clock.advance(5 * 60 * 1000)
        await database.states.set("new", {"verifier": "2"})
        clock.advance(5 * 60 * 1000)

        assert sorted(await database.states.keys()) == ["new", "old"]
        writes = len(backend.sets_for(STATES_KEY))

        assert await database.states.sweep_expired() == 1

        assert await database.states.keys() == ["new"]
        assert len(backend.sets_for(STATES_KEY)) == writes + 1

    @pytest.mark.asyncio
    async def test_sweep_of_clean_record_does_not_persist(self, database, backend, clock):
        """Nothing is written when nothing expired"""
        await database.sessions.set("acct", make_session(clock, refresh=True))
        writes = len(backend.sets_for(SESSIONS_KEY))

        assert await database.sessions.sweep_expired() == 0
        assert len(backend.sets_for(SESSIONS_KEY)) == writes


class TestStorageFailures:
    """Backend failures are absorbed by ordinary operations"""

    @pytest.mark.asyncio
    async def test_failed_load_behaves_as_empty(self, db_config, clock):
        """A failing read yields no value and no exception"""
        backend = FailingBackend()
        database = OAuthDatabase(db_config, backend, clock=clock)

        assert await database.sessions.get("acct") is None
        assert await database.sessions.keys() == []
        database.dispose()

    @pytest.mark.asyncio
    async def test_failed_persist_is_dropped(self, db_config, clock):
        """A failing write does not raise"""
        backend = FailingBackend(fail_get=False, fail_set=True)
        database = OAuthDatabase(db_config, backend, clock=clock)

        await database.states.set("s", {"verifier": "v"})

        assert backend.records == {}
        database.dispose()

    @pytest.mark.asyncio
    async def test_failed_load_is_not_cached(self, db_config, clock):
        """The next operation retries the read"""
        backend = FailingBackend(fail_get=True, fail_set=False)
        database = OAuthDatabase(db_config, backend, clock=clock)

        assert await database.states.get("s") is None
        assert not database.states.loaded

        backend.fail_get = False
        backend.records[STATES_KEY] = json.dumps({"s": {"value": "v", "expiresAt": None}})

        assert await database.states.get("s") == "v"
        assert backend.get_calls == 2
        database.dispose()

    @pytest.mark.asyncio
    async def test_sweep_propagates_failures(self, db_config, clock):
        """The sweep surfaces read errors to its caller"""
        database = OAuthDatabase(db_config, FailingBackend(), clock=clock)

        with pytest.raises(StorageIOError):
            await database.states.sweep_expired()
        database.dispose()

    @pytest.mark.asyncio
    async def test_corrupt_record(self, db_config, backend, clock):
        """An undecodable record reads as empty; the sweep reports it"""
        await backend.set(STATES_KEY, "{not json")
        database = OAuthDatabase(db_config, backend, clock=clock)

        assert await database.states.get("s") is None

        with pytest.raises(StorageIOError) as exc_info:
            await database.states.sweep_expired()
        assert exc_info.value.code == ErrorCode.SERIALIZATION_FAILED
        database.dispose()

    @pytest.mark.asyncio
    async def test_non_mapping_record(self, db_config, backend, clock):
        """A record that is not a JSON object is rejected"""
        await backend.set(STATES_KEY, "[1, 2, 3]")
        database = OAuthDatabase(db_config, backend, clock=clock)

        with pytest.raises(StorageIOError):
            await database.states.sweep_expired()
        database.dispose()


class TestStandalonePartition:
    """PartitionStore used without a database"""

    @pytest.mark.asyncio
    async def test_custom_policy(self, backend, clock):
        """Any expiration policy can back a partition"""
        token = CancellationToken("standalone")
        store = PartitionStore(
            name="codes",
            database_name="app",
            backend=backend,
            expires_at=fixed_ttl(100, clock),
            token=token,
            clock=clock,
            cleanup_settings=CleanupSettings(enabled=False),
        )

        await store.set("c", 42)
        assert store.storage_key == "app:codes"
        assert await store.get("c") == 42

        clock.advance(100)
        assert await store.get("c") is None
        token.cancel()

    @pytest.mark.asyncio
    async def test_never_expires_policy(self, backend, clock):
        """Values stored with never_expires survive any delay"""
        token = CancellationToken("standalone")
        store = PartitionStore("keep", "app", backend, never_expires, token, clock=clock,
                               cleanup_settings=CleanupSettings(enabled=False))

        await store.set("k", [1, 2])
        clock.advance(10 ** 12)

        assert await store.get("k") == [1, 2]
        token.cancel()

    def test_entry_expiry(self):
        """Entries with no expiry never expire; others expire at expiresAt"""
        assert not Entry("v").is_expired(10 ** 15)
        assert not Entry("v", expires_at=100).is_expired(99)
        assert Entry("v", expires_at=100).is_expired(100)
        assert Entry.from_dict({"value": "v", "expiresAt": 5}) == Entry("v", 5)
