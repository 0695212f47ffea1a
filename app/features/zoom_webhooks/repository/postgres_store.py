"""
Postgres implementation of the session store.

Upserts use INSERT ... ON CONFLICT with COALESCE(EXCLUDED.col, col) so a
None in an update never overwrites a stored value. Hops live in a jsonb
array on the participant row and are always written back whole.
"""

from typing import Any

from psycopg.types.json import Jsonb

from app.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from app.db.pool import db_pool
from app.features.zoom_webhooks.domain.models import Hop, ParticipantRecord, SessionRecord
from app.features.zoom_webhooks.errors import DownstreamStoreFailure
from app.features.zoom_webhooks.repository.store import (
    PARTICIPANT_FIELDS,
    SESSION_FIELDS,
    compact_fields,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS zoom_sessions (
        session_key TEXT PRIMARY KEY,
        meeting_id TEXT,
        topic TEXT,
        timezone TEXT,
        started_at TIMESTAMPTZ,
        ended_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS zoom_participants (
        session_key TEXT NOT NULL,
        participant_key TEXT NOT NULL,
        display_name TEXT,
        email TEXT,
        role TEXT,
        present_from TIMESTAMPTZ,
        present_to TIMESTAMPTZ,
        hops JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (session_key, participant_key)
    )
    """,
)


def _merge_assignments(table: str, columns: tuple[str, ...]) -> str:
    return ",\n".join(
        f"{column} = COALESCE(EXCLUDED.{column}, {table}.{column})" for column in columns
    )


UPSERT_SESSION_SQL = f"""
    INSERT INTO zoom_sessions (session_key, {", ".join(SESSION_FIELDS)}, updated_at)
    VALUES (%s, {", ".join(["%s"] * len(SESSION_FIELDS))}, NOW())
    ON CONFLICT (session_key)
    DO UPDATE SET
        {_merge_assignments("zoom_sessions", SESSION_FIELDS)},
        updated_at = NOW()
"""

UPSERT_PARTICIPANT_SQL = f"""
    INSERT INTO zoom_participants (
        session_key, participant_key, {", ".join(PARTICIPANT_FIELDS)}, updated_at
    )
    VALUES (%s, %s, {", ".join(["%s"] * len(PARTICIPANT_FIELDS))}, NOW())
    ON CONFLICT (session_key, participant_key)
    DO UPDATE SET
        {_merge_assignments("zoom_participants", PARTICIPANT_FIELDS)},
        updated_at = NOW()
"""

SET_HOPS_SQL = """
    INSERT INTO zoom_participants (session_key, participant_key, hops, updated_at)
    VALUES (%s, %s, %s, NOW())
    ON CONFLICT (session_key, participant_key)
    DO UPDATE SET
        hops = EXCLUDED.hops,
        updated_at = NOW()
"""


def _hops_from_row(value: Any) -> list[Hop]:
    return [Hop.from_dict(item) for item in (value or [])]


class PostgresSessionStore:
    """SessionStore backed by the shared psycopg pool."""

    @staticmethod
    async def ensure_schema() -> None:
        async with db_pool.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await execute_query(statement, connection=conn)
        logger.info("Zoom tracking schema ensured")

    @with_db_retry()
    async def _fetch_one(self, query: str, params: tuple) -> dict[str, Any] | None:
        return await fetch_one(query, params)

    @with_db_retry()
    async def _execute(self, query: str, params: tuple) -> int:
        return await execute_query(query, params)

    async def get_session(self, session_key: str) -> SessionRecord | None:
        query = """
            SELECT session_key, meeting_id, topic, timezone, started_at, ended_at
            FROM zoom_sessions
            WHERE session_key = %s
        """
        try:
            row = await self._fetch_one(query, (session_key,))
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="get_session") from e
        return SessionRecord(**row) if row else None

    async def upsert_session(self, session_key: str, fields: dict[str, Any]) -> None:
        values = compact_fields(fields, SESSION_FIELDS)
        params = (session_key, *(values.get(column) for column in SESSION_FIELDS))
        try:
            await self._execute(UPSERT_SESSION_SQL, params)
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="upsert_session") from e
        logger.debug("Session upserted", session_key=session_key, fields=sorted(values))

    async def get_participant(
        self, session_key: str, participant_key: str
    ) -> ParticipantRecord | None:
        query = """
            SELECT session_key, participant_key, display_name, email, role,
                   present_from, present_to, hops
            FROM zoom_participants
            WHERE session_key = %s AND participant_key = %s
        """
        try:
            row = await self._fetch_one(query, (session_key, participant_key))
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="get_participant") from e
        if not row:
            return None
        row = dict(row)
        row["hops"] = _hops_from_row(row.get("hops"))
        return ParticipantRecord(**row)

    async def upsert_participant(
        self, session_key: str, participant_key: str, fields: dict[str, Any]
    ) -> None:
        values = compact_fields(fields, PARTICIPANT_FIELDS)
        params = (
            session_key,
            participant_key,
            *(values.get(column) for column in PARTICIPANT_FIELDS),
        )
        try:
            await self._execute(UPSERT_PARTICIPANT_SQL, params)
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="upsert_participant") from e
        logger.debug(
            "Participant upserted",
            session_key=session_key,
            participant_key=participant_key,
            fields=sorted(values),
        )

    async def get_hops(self, session_key: str, participant_key: str) -> list[Hop]:
        query = """
            SELECT hops FROM zoom_participants
            WHERE session_key = %s AND participant_key = %s
        """
        try:
            row = await self._fetch_one(query, (session_key, participant_key))
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="get_hops") from e
        return _hops_from_row(row["hops"]) if row else []

    async def set_hops(self, session_key: str, participant_key: str, hops: list[Hop]) -> None:
        payload = Jsonb([hop.to_dict() for hop in hops])
        try:
            await self._execute(SET_HOPS_SQL, (session_key, participant_key, payload))
        except DatabaseError as e:
            raise DownstreamStoreFailure(str(e), operation="set_hops") from e

    async def health_check(self) -> dict[str, Any]:
        return await db_pool.health_check()
