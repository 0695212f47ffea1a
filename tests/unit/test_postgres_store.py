"""
Tests for PostgresSessionStore with the query helpers patched out.
"""

from unittest.mock import AsyncMock, patch

import pytest
from psycopg.types.json import Jsonb

from app.db.helpers import DatabaseError
from app.features.zoom_webhooks.domain.models import Hop
from app.features.zoom_webhooks.errors import DownstreamStoreFailure
from app.features.zoom_webhooks.repository.postgres_store import (
    SET_HOPS_SQL,
    UPSERT_PARTICIPANT_SQL,
    UPSERT_SESSION_SQL,
    PostgresSessionStore,
)
from tests.helpers import SESSION_KEY, at

MODULE = "app.features.zoom_webhooks.repository.postgres_store"


def test_upsert_sql_never_overwrites_with_null():
    assert "COALESCE(EXCLUDED.started_at, zoom_sessions.started_at)" in UPSERT_SESSION_SQL
    assert "COALESCE(EXCLUDED.ended_at, zoom_sessions.ended_at)" in UPSERT_SESSION_SQL
    assert (
        "COALESCE(EXCLUDED.present_from, zoom_participants.present_from)"
        in UPSERT_PARTICIPANT_SQL
    )
    assert "hops" not in UPSERT_PARTICIPANT_SQL


@pytest.mark.asyncio
async def test_upsert_session_params_follow_column_order():
    store = PostgresSessionStore()
    started = at("2024-03-01T09:00:00Z")

    with patch(f"{MODULE}.execute_query", new=AsyncMock(return_value=1)) as mock_execute:
        await store.upsert_session(SESSION_KEY, {"topic": "Weekly sync", "started_at": started})

    query, params = mock_execute.await_args.args
    assert query == UPSERT_SESSION_SQL
    assert params == (SESSION_KEY, None, "Weekly sync", None, started, None)


@pytest.mark.asyncio
async def test_upsert_session_rejects_unknown_field():
    store = PostgresSessionStore()

    with patch(f"{MODULE}.execute_query", new=AsyncMock()) as mock_execute:
        with pytest.raises(ValueError):
            await store.upsert_session(SESSION_KEY, {"hops": []})

    mock_execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_participant_decodes_hops():
    store = PostgresSessionStore()
    row = {
        "session_key": SESSION_KEY,
        "participant_key": "a@b.com",
        "display_name": "Ada",
        "email": "a@b.com",
        "role": "attendee",
        "present_from": at("2024-03-01T09:00:00Z"),
        "present_to": None,
        "hops": [{"at": "2024-03-01T09:30:00+00:00", "from": "main", "to": "breakout:unknown"}],
    }

    with patch(f"{MODULE}.fetch_one", new=AsyncMock(return_value=row)):
        record = await store.get_participant(SESSION_KEY, "a@b.com")

    assert record.display_name == "Ada"
    assert record.hops == [
        Hop(at=at("2024-03-01T09:30:00Z"), from_room="main", to_room="breakout:unknown")
    ]


@pytest.mark.asyncio
async def test_get_session_missing_row():
    store = PostgresSessionStore()

    with patch(f"{MODULE}.fetch_one", new=AsyncMock(return_value=None)):
        assert await store.get_session(SESSION_KEY) is None


@pytest.mark.asyncio
async def test_get_hops_without_row_is_empty():
    store = PostgresSessionStore()

    with patch(f"{MODULE}.fetch_one", new=AsyncMock(return_value=None)):
        assert await store.get_hops(SESSION_KEY, "a@b.com") == []


@pytest.mark.asyncio
async def test_set_hops_writes_whole_log_as_jsonb():
    store = PostgresSessionStore()
    hops = [Hop(at=at("2024-03-01T09:30:00Z"), from_room="main", to_room="breakout:unknown")]

    with patch(f"{MODULE}.execute_query", new=AsyncMock(return_value=1)) as mock_execute:
        await store.set_hops(SESSION_KEY, "a@b.com", hops)

    query, params = mock_execute.await_args.args
    assert query == SET_HOPS_SQL
    assert params[:2] == (SESSION_KEY, "a@b.com")
    assert isinstance(params[2], Jsonb)
    assert params[2].obj == [hops[0].to_dict()]


@pytest.mark.asyncio
async def test_database_error_becomes_store_failure():
    store = PostgresSessionStore()
    failing = AsyncMock(side_effect=DatabaseError("Query failed: syntax", operation="execute"))

    with patch(f"{MODULE}.execute_query", new=failing):
        with pytest.raises(DownstreamStoreFailure) as exc_info:
            await store.upsert_session(SESSION_KEY, {"topic": "Weekly sync"})

    assert exc_info.value.operation == "upsert_session"
    assert exc_info.value.recoverable is True
    assert failing.await_count == 1
