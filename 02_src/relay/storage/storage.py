"""SQLite storage implementation."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import Choice, ChoiceSet, ExpectedInput, TraceEvent, User

_USER_FIELDS = ("active_flow_id", "active_session_id", "last_notified_at")


def _ts(value: datetime) -> str:
    """Serialize a datetime as a sortable UTC ISO string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IStorage(Protocol):
    """Durable storage for per-user relay state (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Users
    async def ensure_user(self, wa_id: str) -> User:
        """Get a user, creating the row on first contact."""
        ...

    async def get_user(self, wa_id: str) -> User | None:
        """Get a user by channel identity."""
        ...

    async def update_user(self, wa_id: str, **fields) -> None:
        """Update flow/session/notification fields of a user."""
        ...

    # Active choices
    async def save_active_choices(self, choice_set: ChoiceSet) -> None:
        """Upsert the choice set of a user."""
        ...

    async def delete_active_choices(self, wa_id: str) -> None:
        """Delete the choice set of a user, if any."""
        ...

    async def load_active_choices(self, now: datetime) -> list[ChoiceSet]:
        """Load all choice sets that expire after ``now``."""
        ...

    # Expected input types
    async def save_expected_input(self, expected: ExpectedInput) -> None:
        """Upsert the expected input type of a user."""
        ...

    async def delete_expected_input(self, wa_id: str) -> None:
        """Delete the expected input type of a user, if any."""
        ...

    async def load_expected_inputs(self, now: datetime) -> list[ExpectedInput]:
        """Load all expected input types that expire after ``now``."""
        ...

    async def delete_expired(self, now: datetime) -> tuple[int, int]:
        """Delete expired choice sets and input types. Returns both counts."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Users
    async def ensure_user(self, wa_id: str) -> User:
        """Get a user, creating the row on first contact."""
        conn = self._require_conn()

        await conn.execute(
            "INSERT OR IGNORE INTO users (wa_id) VALUES (?)",
            (wa_id,),
        )
        await conn.commit()

        user = await self.get_user(wa_id)
        if user is None:
            raise RuntimeError(f"User {wa_id} missing after insert")
        return user

    async def get_user(self, wa_id: str) -> User | None:
        """Get a user by channel identity."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT wa_id, active_flow_id, active_session_id, last_notified_at
            FROM users
            WHERE wa_id = ?
            """,
            (wa_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return User(
            wa_id=row[0],
            active_flow_id=row[1],
            active_session_id=row[2],
            last_notified_at=_parse_ts(row[3]),
        )

    async def update_user(self, wa_id: str, **fields) -> None:
        """Update flow/session/notification fields, creating the user if needed."""
        conn = self._require_conn()

        unknown = set(fields) - set(_USER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        if not fields:
            return

        values = [
            _ts(value) if isinstance(value, datetime) else value
            for value in fields.values()
        ]
        assignments = ", ".join(f"{name} = ?" for name in fields)

        await conn.execute(
            "INSERT OR IGNORE INTO users (wa_id) VALUES (?)",
            (wa_id,),
        )
        await conn.execute(
            f"""
            UPDATE users
            SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE wa_id = ?
            """,
            (*values, wa_id),
        )
        await conn.commit()

    # Active choices
    async def save_active_choices(self, choice_set: ChoiceSet) -> None:
        """Upsert the choice set of a user."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO active_choices
            (wa_id, session_id, choices, flow_id, created_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                choice_set.wa_id,
                choice_set.session_id,
                json.dumps(
                    [{"id": c.id, "label": c.label} for c in choice_set.choices],
                    ensure_ascii=False,
                ),
                choice_set.flow_id,
                _ts(choice_set.created_at),
                _ts(choice_set.expires_at),
            ),
        )
        await conn.commit()

    async def delete_active_choices(self, wa_id: str) -> None:
        """Delete the choice set of a user, if any."""
        conn = self._require_conn()

        await conn.execute("DELETE FROM active_choices WHERE wa_id = ?", (wa_id,))
        await conn.commit()

    async def load_active_choices(self, now: datetime) -> list[ChoiceSet]:
        """Load all choice sets that expire after ``now``."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT wa_id, session_id, choices, flow_id, created_at, expires_at
            FROM active_choices
            WHERE expires_at > ?
            """,
            (_ts(now),),
        )
        rows = await cursor.fetchall()

        return [
            ChoiceSet(
                wa_id=row[0],
                session_id=row[1],
                choices=[Choice(id=c["id"], label=c["label"]) for c in json.loads(row[2])],
                flow_id=row[3],
                created_at=_parse_ts(row[4]),
                expires_at=_parse_ts(row[5]),
            )
            for row in rows
        ]

    # Expected input types
    async def save_expected_input(self, expected: ExpectedInput) -> None:
        """Upsert the expected input type of a user."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO expected_input_types
            (wa_id, input_type, created_at, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                expected.wa_id,
                expected.kind,
                _ts(expected.created_at),
                _ts(expected.expires_at),
            ),
        )
        await conn.commit()

    async def delete_expected_input(self, wa_id: str) -> None:
        """Delete the expected input type of a user, if any."""
        conn = self._require_conn()

        await conn.execute(
            "DELETE FROM expected_input_types WHERE wa_id = ?", (wa_id,)
        )
        await conn.commit()

    async def load_expected_inputs(self, now: datetime) -> list[ExpectedInput]:
        """Load all expected input types that expire after ``now``."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT wa_id, input_type, created_at, expires_at
            FROM expected_input_types
            WHERE expires_at > ?
            """,
            (_ts(now),),
        )
        rows = await cursor.fetchall()

        return [
            ExpectedInput(
                wa_id=row[0],
                kind=row[1],
                created_at=_parse_ts(row[2]),
                expires_at=_parse_ts(row[3]),
            )
            for row in rows
        ]

    async def delete_expired(self, now: datetime) -> tuple[int, int]:
        """Delete expired choice sets and input types. Returns both counts."""
        conn = self._require_conn()
        cutoff = _ts(now)

        choices_cursor = await conn.execute(
            "DELETE FROM active_choices WHERE expires_at <= ?", (cutoff,)
        )
        inputs_cursor = await conn.execute(
            "DELETE FROM expected_input_types WHERE expires_at <= ?", (cutoff,)
        )
        await conn.commit()

        return choices_cursor.rowcount, inputs_cursor.rowcount

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, level, data, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.event_type,
                event.actor,
                event.level,
                json.dumps(event.data, default=str, ensure_ascii=False),
                _ts(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters (newest first)."""
        conn = self._require_conn()

        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_ts(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, level, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                level=row[3],
                data=json.loads(row[4]),
                timestamp=_parse_ts(row[5]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "active_choices",
            "expected_input_types",
            "trace_events",
            "users",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
