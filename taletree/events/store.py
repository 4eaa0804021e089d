"""Append-only dialogue event log backed by SQLite."""

import json

from taletree.db.connection import Database
from taletree.models import EventEnvelope


class EventStore:
    """Append-only event store. Every tree mutation lands here first."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def append(self, envelope: EventEnvelope) -> int:
        """Append an event and return the assigned sequence_num.

        Raises IntegrityError if event_id is not unique.
        """
        cursor = await self._db.execute(
            """
            INSERT INTO events
                (event_id, tree_id, timestamp, device_id, event_type, payload)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                envelope.event_id,
                envelope.tree_id,
                envelope.timestamp.isoformat(),
                envelope.device_id,
                envelope.event_type,
                json.dumps(envelope.payload, ensure_ascii=False),
            ),
        )
        assert cursor.lastrowid is not None
        envelope.sequence_num = cursor.lastrowid
        return cursor.lastrowid

    async def get_events(self, tree_id: str) -> list[EventEnvelope]:
        """All events for a tree, in append order."""
        rows = await self._db.fetchall(
            "SELECT * FROM events WHERE tree_id = ? ORDER BY sequence_num",
            (tree_id,),
        )
        return [self._row_to_envelope(row) for row in rows]

    @staticmethod
    def _row_to_envelope(row) -> EventEnvelope:
        return EventEnvelope(
            event_id=row["event_id"],
            tree_id=row["tree_id"],
            timestamp=row["timestamp"],
            device_id=row["device_id"],
            event_type=row["event_type"],
            payload=json.loads(row["payload"]),
            sequence_num=row["sequence_num"],
        )
