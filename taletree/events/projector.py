"""State projector: projects dialogue events into materialized tables.

The read side of the event log. `load_tree` rebuilds the in-memory
DialogueTree arena from the projected rows.
"""

import json
import logging
from collections.abc import Awaitable, Callable

from taletree.db.connection import Database
from taletree.models import (
    ROOT_NODE_ID,
    CurrentNodeSwitchedPayload,
    DialogueCreatedPayload,
    DialogueNode,
    DialogueTree,
    EventEnvelope,
    NodeAppendedPayload,
    NodeContentEditedPayload,
    ParsedContent,
)

logger = logging.getLogger(__name__)


def _load_parsed_content(raw: str | None) -> ParsedContent | None:
    """Decode a stored parsed_content column; unreadable or empty values become None."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable parsed_content column, ignoring: %.80r", raw)
        return None
    if not isinstance(data, dict) or not data:
        return None
    return ParsedContent.model_validate(data)


class StateProjector:
    """Projects events into the dialogue_trees and dialogue_nodes tables."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._handlers: dict[str, Callable[[EventEnvelope], Awaitable[None]]] = {
            "DialogueCreated": self._handle_dialogue_created,
            "DialogueReset": self._handle_dialogue_reset,
            "NodeAppended": self._handle_node_appended,
            "CurrentNodeSwitched": self._handle_current_node_switched,
            "NodeContentEdited": self._handle_node_content_edited,
        }

    async def project(self, events: list[EventEnvelope]) -> None:
        """Project a batch of events into materialized tables."""
        for event in events:
            handler = self._handlers.get(event.event_type)
            if handler is None:
                logger.warning("No projection for event type %r, skipping", event.event_type)
                continue
            async with self._db.transaction():
                await handler(event)

    # -- Reads --

    async def get_tree_row(self, tree_id: str) -> dict | None:
        row = await self._db.fetchone(
            "SELECT * FROM dialogue_trees WHERE tree_id = ?", (tree_id,)
        )
        return dict(row) if row is not None else None

    async def get_active_tree_id(self, character_id: str) -> str | None:
        """The live (non-archived) tree of a character, newest first."""
        row = await self._db.fetchone(
            "SELECT tree_id FROM dialogue_trees WHERE character_id = ? AND archived = 0 "
            "ORDER BY created_at DESC LIMIT 1",
            (character_id,),
        )
        return row["tree_id"] if row is not None else None

    async def get_node_rows(self, tree_id: str) -> list[dict]:
        """Projected nodes for a tree, in append order."""
        rows = await self._db.fetchall(
            "SELECT * FROM dialogue_nodes WHERE tree_id = ? ORDER BY position",
            (tree_id,),
        )
        return [dict(row) for row in rows]

    async def load_tree(self, tree_id: str) -> DialogueTree | None:
        """Rebuild the in-memory tree. Returns None if not found."""
        tree_row = await self.get_tree_row(tree_id)
        if tree_row is None:
            return None
        node_rows = await self.get_node_rows(tree_id)
        nodes = {row["node_id"]: self._node_from_row(row) for row in node_rows}
        return DialogueTree(
            id=tree_row["tree_id"],
            character_id=tree_row["character_id"],
            nodes=nodes,
            current_node_id=tree_row["current_node_id"],
            created_at=tree_row["created_at"],
            updated_at=tree_row["updated_at"],
        )

    @staticmethod
    def _node_from_row(row: dict) -> DialogueNode:
        return DialogueNode(
            node_id=row["node_id"],
            parent_node_id=row["parent_node_id"],
            user_input=row["user_input"],
            assistant_response=row["assistant_response"],
            full_response=row["full_response"],
            parsed_content=_load_parsed_content(row["parsed_content"]),
            created_at=row["created_at"],
        )

    # -- Handlers --

    async def _handle_dialogue_created(self, event: EventEnvelope) -> None:
        """Insert the tree row and its synthetic root node."""
        payload = DialogueCreatedPayload.model_validate(event.payload)
        timestamp = event.timestamp.isoformat()
        await self._db.execute(
            """
            INSERT OR REPLACE INTO dialogue_trees
                (tree_id, character_id, current_node_id, metadata,
                 created_at, updated_at, archived)
            VALUES (?, ?, ?, ?, ?, ?, 0)
            """,
            (
                event.tree_id,
                payload.character_id,
                ROOT_NODE_ID,
                json.dumps(payload.metadata),
                timestamp,
                timestamp,
            ),
        )
        await self._db.execute(
            """
            INSERT OR REPLACE INTO dialogue_nodes
                (tree_id, node_id, parent_node_id, created_at, position)
            VALUES (?, ?, NULL, ?, 0)
            """,
            (event.tree_id, ROOT_NODE_ID, timestamp),
        )

    async def _handle_dialogue_reset(self, event: EventEnvelope) -> None:
        """Archive a replaced tree; its rows stay for history."""
        await self._db.execute(
            "UPDATE dialogue_trees SET archived = 1, updated_at = ? WHERE tree_id = ?",
            (event.timestamp.isoformat(), event.tree_id),
        )

    async def _handle_node_appended(self, event: EventEnvelope) -> None:
        payload = NodeAppendedPayload.model_validate(event.payload)
        timestamp = event.timestamp.isoformat()
        await self._db.execute(
            """
            INSERT OR REPLACE INTO dialogue_nodes
                (tree_id, node_id, parent_node_id, user_input, assistant_response,
                 full_response, parsed_content, created_at, position)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?,
                    (SELECT COALESCE(MAX(position), -1) + 1
                     FROM dialogue_nodes WHERE tree_id = ?))
            """,
            (
                event.tree_id,
                payload.node_id,
                payload.parent_node_id,
                payload.user_input,
                payload.assistant_response,
                payload.full_response,
                json.dumps(payload.parsed_content, ensure_ascii=False)
                if payload.parsed_content
                else None,
                timestamp,
                event.tree_id,
            ),
        )
        await self._touch_tree(event.tree_id, timestamp)

    async def _handle_current_node_switched(self, event: EventEnvelope) -> None:
        payload = CurrentNodeSwitchedPayload.model_validate(event.payload)
        await self._db.execute(
            "UPDATE dialogue_trees SET current_node_id = ?, updated_at = ? WHERE tree_id = ?",
            (payload.to_node_id, event.timestamp.isoformat(), event.tree_id),
        )

    async def _handle_node_content_edited(self, event: EventEnvelope) -> None:
        payload = NodeContentEditedPayload.model_validate(event.payload)
        timestamp = event.timestamp.isoformat()
        await self._db.execute(
            """
            UPDATE dialogue_nodes SET assistant_response = ?, parsed_content = ?
            WHERE tree_id = ? AND node_id = ?
            """,
            (
                payload.new_response,
                json.dumps(payload.parsed_content, ensure_ascii=False)
                if payload.parsed_content
                else None,
                event.tree_id,
                payload.node_id,
            ),
        )
        await self._touch_tree(event.tree_id, timestamp)

    async def _touch_tree(self, tree_id: str, timestamp: str) -> None:
        await self._db.execute(
            "UPDATE dialogue_trees SET updated_at = ? WHERE tree_id = ?",
            (timestamp, tree_id),
        )
