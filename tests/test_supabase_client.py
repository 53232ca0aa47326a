from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from sportal.storage.supabase_client import OrganizationStore, PersistenceFailure

from factories import NOW


def api_error(message="boom"):
    return APIError({"message": message, "code": "500", "hint": None, "details": None})


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.calls = [("table", table)]

    def __getattr__(self, name):
        if name not in {"select", "eq", "limit", "update"}:
            raise AttributeError(name)

        def builder(*args):
            self.calls.append((name, *args))
            return self

        return builder

    async def execute(self):
        self.client.executed.append(self.calls)
        outcome = self.client.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(data=outcome)


class FakeSupabase:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


ROW = {
    "org_id": 7,
    "org_name": "Ashburton Juniors",
    "user_email": "admin@ashburton.test",
    "playhq_org_id": "club-1",
    "playhq_api_key": "phq-key",
    "playhq_tenant": None,
    "primary_color": "#002B5C",
    "cache_json": None,
    "cache_updated_at": "2026-10-18T03:00:00+00:00",
}


def store_for(client, attempts=3):
    return OrganizationStore(client, table="organizations", write_attempts=attempts, backoff_seconds=0)


@pytest.mark.asyncio
async def test_get_org_by_email_exact_match():
    client = FakeSupabase([ROW])

    org = await store_for(client).get_org_by_email("admin@ashburton.test")

    assert org.org_id == "7"
    assert org.playhq_org_id == "club-1"
    assert org.primary_color == "#002B5C"
    assert org.cache_updated_at.hour == 3
    calls = client.executed[0]
    assert ("eq", "user_email", "admin@ashburton.test") in calls
    assert calls[0] == ("table", "organizations")


@pytest.mark.asyncio
async def test_get_org_by_email_not_found():
    assert await store_for(FakeSupabase([])).get_org_by_email("nobody@x.test") is None


@pytest.mark.asyncio
async def test_get_org_by_email_database_error():
    with pytest.raises(PersistenceFailure):
        await store_for(FakeSupabase(api_error())).get_org_by_email("admin@ashburton.test")


@pytest.mark.asyncio
async def test_get_org_by_email_incomplete_row():
    client = FakeSupabase([{**ROW, "playhq_api_key": None}])

    with pytest.raises(PersistenceFailure, match="is invalid"):
        await store_for(client).get_org_by_email("admin@ashburton.test")


@pytest.mark.asyncio
async def test_update_org_cache_writes_blob_and_timestamp_together():
    client = FakeSupabase([{}])

    ok = await store_for(client).update_org_cache("7", {"seasons": []}, NOW)

    assert ok
    assert len(client.executed) == 1
    calls = client.executed[0]
    assert ("update", {"cache_json": {"seasons": []}, "cache_updated_at": NOW.isoformat()}) in calls
    assert ("eq", "org_id", "7") in calls


@pytest.mark.asyncio
async def test_update_org_cache_retries_transient_errors():
    client = FakeSupabase(api_error(), [{}])

    assert await store_for(client).update_org_cache("7", {}, NOW)
    assert len(client.executed) == 2


@pytest.mark.asyncio
async def test_update_org_cache_gives_up_without_raising():
    client = FakeSupabase(api_error(), api_error(), api_error())

    assert await store_for(client, attempts=3).update_org_cache("7", {}, NOW) is False
    assert len(client.executed) == 3


@pytest.mark.asyncio
async def test_update_org_cache_unexpected_error_is_not_retried():
    client = FakeSupabase(RuntimeError("socket closed"))

    assert await store_for(client).update_org_cache("7", {}, NOW) is False
    assert len(client.executed) == 1
