"""Dialogue service: the conversation-state side of the dialogue tree.

Loads a character's tree from the projection, runs the navigator, editor or
layout on it, and only when the core operation succeeds appends the event,
projects it and tells listeners the dialogue changed.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel

from taletree.db.connection import Database
from taletree.dialogue.editor import ContentEditor
from taletree.dialogue.layout import DialogueGraph, LayoutLabels, layout_dialogue_tree
from taletree.dialogue.navigator import (
    BranchNavigator,
    SwitchStatus,
    active_history,
    switch_branch,
)
from taletree.dialogue.schemas import AppendTurnRequest
from taletree.events.projector import StateProjector
from taletree.events.store import EventStore
from taletree.models import (
    CurrentNodeSwitchedPayload,
    DialogueCreatedPayload,
    DialogueNode,
    DialogueResetPayload,
    DialogueTree,
    EventEnvelope,
    NodeAppendedPayload,
    NodeContentEditedPayload,
    NodeNotFoundError,
    ParsedContent,
)
from taletree.summarizer.base import Summarizer, SummarizerConnection
from taletree.summarizer.registry import get_summarizer

logger = logging.getLogger(__name__)

ChangeReason = Literal["created", "reset", "appended", "switched", "edited"]
DialogueListener = Callable[[str, ChangeReason], Awaitable[None]]


class DialogueService:
    """Coordinates event store, projector and the dialogue core per character."""

    def __init__(
        self,
        db: Database,
        *,
        summarizer_factory: Callable[[str], Summarizer] = get_summarizer,
        navigator: BranchNavigator | None = None,
        editor: ContentEditor | None = None,
    ) -> None:
        self._store = EventStore(db)
        self._projector = StateProjector(db)
        self._summarizer_factory = summarizer_factory
        self._navigator = navigator or BranchNavigator()
        self._editor = editor or ContentEditor()
        self._listeners: list[DialogueListener] = []

    def add_listener(self, listener: DialogueListener) -> None:
        """Register a callback awaited after every successful change."""
        self._listeners.append(listener)

    # -- Lifecycle --

    async def create_dialogue(
        self, character_id: str, metadata: dict | None = None,
    ) -> DialogueTree:
        """Create the tree for a character. One live tree per character."""
        if await self._projector.get_active_tree_id(character_id) is not None:
            raise DialogueExistsError(character_id)
        tree = await self._create_tree(character_id, metadata)
        await self._notify(character_id, "created")
        return tree

    async def reset_dialogue(
        self, character_id: str, reason: str | None = None,
    ) -> DialogueTree:
        """Replace the character's tree wholesale with a fresh one."""
        old_tree_id = await self._projector.get_active_tree_id(character_id)
        tree = await self._create_tree(character_id, None)
        if old_tree_id is not None:
            await self._emit(
                old_tree_id,
                "DialogueReset",
                DialogueResetPayload(
                    character_id=character_id,
                    replaced_by_tree_id=tree.id,
                    reason=reason,
                ),
            )
            logger.info(
                "Dialogue for character %s reset: %s replaced by %s",
                character_id, old_tree_id, tree.id,
            )
        await self._notify(character_id, "reset")
        return tree

    async def get_dialogue(self, character_id: str) -> DialogueTree | None:
        """Snapshot of the character's live tree. Returns None if there is none."""
        tree_id = await self._projector.get_active_tree_id(character_id)
        if tree_id is None:
            return None
        return await self._projector.load_tree(tree_id)

    # -- Turns --

    async def append_turn(
        self, character_id: str, request: AppendTurnRequest,
    ) -> DialogueNode:
        """Record a generated turn under the current node (or an explicit parent)."""
        tree = await self._require_tree(character_id)
        parent_node_id = request.parent_node_id or tree.current_node_id
        parsed = (
            ParsedContent.model_validate(request.parsed_content)
            if request.parsed_content
            else None
        )
        node = tree.append_turn(
            parent_node_id,
            user_input=request.user_input,
            assistant_response=request.assistant_response,
            full_response=request.full_response,
            parsed_content=parsed,
        )
        await self._emit(
            tree.id,
            "NodeAppended",
            NodeAppendedPayload(
                node_id=node.node_id,
                parent_node_id=parent_node_id,
                user_input=node.user_input,
                assistant_response=node.assistant_response,
                full_response=node.full_response,
                parsed_content=parsed.model_dump() if parsed else None,
            ),
        )

        if request.advance:
            previous = tree.current_node_id
            if switch_branch(tree, node.node_id) is SwitchStatus.SWITCHED:
                await self._emit(
                    tree.id,
                    "CurrentNodeSwitched",
                    CurrentNodeSwitchedPayload(from_node_id=previous, to_node_id=node.node_id),
                )

        await self._notify(character_id, "appended")
        return node

    # -- Branch navigation --

    async def switch_branch(
        self, character_id: str, node_id: str,
    ) -> tuple[SwitchStatus, DialogueTree]:
        """Jump to `node_id`. Raises NodeNotFoundError / RootJumpError."""
        tree = await self._require_tree(character_id)
        previous = tree.current_node_id

        async def persist(switched: DialogueTree) -> None:
            await self._emit(
                switched.id,
                "CurrentNodeSwitched",
                CurrentNodeSwitchedPayload(from_node_id=previous, to_node_id=node_id),
            )
            # Reload runs inside the in-flight guard
            await self._notify(character_id, "switched")

        status = await self._navigator.switch(tree, node_id, on_switched=persist)
        return status, tree

    async def get_active_history(self, character_id: str) -> list[DialogueNode]:
        """Root-first turns of the current path: the context a chat resumes from."""
        tree = await self._require_tree(character_id)
        return active_history(tree)

    # -- Editing --

    async def edit_node_content(
        self,
        character_id: str,
        node_id: str,
        new_text: str,
        connection: SummarizerConnection,
    ) -> DialogueNode:
        """Rewrite a node's reply and refresh its summary, all or nothing."""
        tree = await self._require_tree(character_id)
        original = tree.get_node(node_id)
        if original is None:
            raise NodeNotFoundError(node_id)

        summarizer = self._summarizer_factory(connection.llm_type)
        node = await self._editor.edit(tree, node_id, new_text, summarizer, connection)

        await self._emit(
            tree.id,
            "NodeContentEdited",
            NodeContentEditedPayload(
                node_id=node_id,
                original_response=original.assistant_response,
                new_response=node.assistant_response,
                parsed_content=node.parsed_content.model_dump() if node.parsed_content else None,
            ),
        )
        await self._notify(character_id, "edited")
        return node

    # -- Layout --

    async def get_graph(
        self, character_id: str, labels: LayoutLabels | None = None,
    ) -> DialogueGraph:
        tree = await self._require_tree(character_id)
        return layout_dialogue_tree(tree, labels=labels)

    # -- Internals --

    async def _require_tree(self, character_id: str) -> DialogueTree:
        tree = await self.get_dialogue(character_id)
        if tree is None:
            raise DialogueNotFoundError(character_id)
        return tree

    async def _create_tree(self, character_id: str, metadata: dict | None) -> DialogueTree:
        tree_id = str(uuid4())
        await self._emit(
            tree_id,
            "DialogueCreated",
            DialogueCreatedPayload(character_id=character_id, metadata=metadata or {}),
        )
        tree = await self._projector.load_tree(tree_id)
        assert tree is not None
        return tree

    async def _emit(self, tree_id: str, event_type: str, payload: BaseModel) -> EventEnvelope:
        event = EventEnvelope(
            event_id=str(uuid4()),
            tree_id=tree_id,
            timestamp=datetime.now(UTC),
            device_id="local",
            event_type=event_type,
            payload=payload.model_dump(),
        )
        await self._store.append(event)
        await self._projector.project([event])
        return event

    async def _notify(self, character_id: str, reason: ChangeReason) -> None:
        """Await every listener. The change is already persisted, so failures are logged."""
        for listener in self._listeners:
            try:
                await listener(character_id, reason)
            except Exception:
                logger.exception(
                    "Dialogue listener failed for character %s after %s",
                    character_id, reason,
                )


class DialogueNotFoundError(Exception):
    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__(f"No dialogue for character: {character_id}")


class DialogueExistsError(Exception):
    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__(f"Dialogue already exists for character: {character_id}")
