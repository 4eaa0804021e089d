"""Canonical data structures and event types for TaleTree.

Defined once here, referenced everywhere else. DialogueNode and DialogueTree
are the in-memory tree model; event payloads represent the type-specific
content of each persisted event, and the EventEnvelope wraps them with
metadata.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ROOT_NODE_ID = "root"

# ---------------------------------------------------------------------------
# Canonical data structures
# ---------------------------------------------------------------------------


class ParsedContent(BaseModel):
    """Structured derivative of a response. Unknown keys are kept as-is.

    Responses use the client's `compressedContent` key; storage keeps snake_case.
    """

    model_config = ConfigDict(extra="allow")

    compressed_content: str | None = Field(
        default=None,
        validation_alias=AliasChoices("compressed_content", "compressedContent"),
        serialization_alias="compressedContent",
    )


class DialogueNode(BaseModel):
    """One conversational turn. Treated as immutable: edits replace the record."""

    node_id: str
    parent_node_id: str | None = None  # None only for the root node
    user_input: str = ""
    assistant_response: str = ""
    full_response: str = ""
    parsed_content: ParsedContent | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_root(self) -> bool:
        return self.node_id == ROOT_NODE_ID

    @property
    def compressed_content(self) -> str | None:
        if self.parsed_content is None:
            return None
        return self.parsed_content.compressed_content


class DialogueTree(BaseModel):
    """Arena of dialogue nodes keyed by node_id, plus the current pointer.

    `nodes` keeps insertion order, which the layout uses as its stable
    enumeration order. `current_node_id` is written by the branch navigator
    only.
    """

    id: str
    character_id: str
    nodes: dict[str, DialogueNode] = Field(default_factory=dict)
    current_node_id: str = ROOT_NODE_ID
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        character_id: str,
        tree_id: str | None = None,
        *,
        now: datetime | None = None,
    ) -> "DialogueTree":
        """New tree holding only the root node, with the root as current."""
        now = now or datetime.now(UTC)
        root = DialogueNode(node_id=ROOT_NODE_ID, created_at=now)
        return cls(
            id=tree_id or str(uuid4()),
            character_id=character_id,
            nodes={ROOT_NODE_ID: root},
            current_node_id=ROOT_NODE_ID,
            created_at=now,
            updated_at=now,
        )

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_node(self, node_id: str) -> DialogueNode | None:
        return self.nodes.get(node_id)

    @property
    def current_node(self) -> DialogueNode | None:
        return self.nodes.get(self.current_node_id)

    def children_of(self, node_id: str) -> list[DialogueNode]:
        """Direct children of a node, in insertion order."""
        return [n for n in self.nodes.values() if n.parent_node_id == node_id]

    def root_children(self) -> list[DialogueNode]:
        return self.children_of(ROOT_NODE_ID)

    def find_dangling_parents(self) -> list[str]:
        """Ids of non-root nodes whose parent is missing from the arena."""
        return [
            n.node_id
            for n in self.nodes.values()
            if not n.is_root
            and (n.parent_node_id is None or n.parent_node_id not in self.nodes)
        ]

    def append_turn(
        self,
        parent_node_id: str,
        *,
        user_input: str = "",
        assistant_response: str = "",
        full_response: str = "",
        parsed_content: ParsedContent | None = None,
        node_id: str | None = None,
        now: datetime | None = None,
    ) -> DialogueNode:
        """Append a new turn under an existing parent. Does not move current."""
        if parent_node_id not in self.nodes:
            raise InvalidParentError(parent_node_id)

        node_id = node_id or str(uuid4())
        if node_id == ROOT_NODE_ID or node_id in self.nodes:
            raise DuplicateNodeError(node_id)

        now = now or datetime.now(UTC)
        node = DialogueNode(
            node_id=node_id,
            parent_node_id=parent_node_id,
            user_input=user_input,
            assistant_response=assistant_response,
            full_response=full_response or assistant_response,
            parsed_content=parsed_content,
            created_at=now,
        )
        self.nodes[node_id] = node
        self.touch(now)
        return node

    def replace_node(self, node: DialogueNode, *, now: datetime | None = None) -> None:
        """Swap in an updated copy of an existing node."""
        if node.node_id not in self.nodes:
            raise NodeNotFoundError(node.node_id)
        self.nodes[node.node_id] = node
        self.touch(now)

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or datetime.now(UTC)


# ---------------------------------------------------------------------------
# Event payloads, one per event type
# ---------------------------------------------------------------------------


class DialogueCreatedPayload(BaseModel):
    character_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class DialogueResetPayload(BaseModel):
    character_id: str
    replaced_by_tree_id: str
    reason: str | None = None


class NodeAppendedPayload(BaseModel):
    node_id: str
    parent_node_id: str
    user_input: str = ""
    assistant_response: str = ""
    full_response: str = ""
    parsed_content: dict[str, Any] | None = None


class CurrentNodeSwitchedPayload(BaseModel):
    from_node_id: str
    to_node_id: str


class NodeContentEditedPayload(BaseModel):
    node_id: str
    original_response: str  # for event log readability
    new_response: str
    parsed_content: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Event type registry
# ---------------------------------------------------------------------------

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "DialogueCreated": DialogueCreatedPayload,
    "DialogueReset": DialogueResetPayload,
    "NodeAppended": NodeAppendedPayload,
    "CurrentNodeSwitched": CurrentNodeSwitchedPayload,
    "NodeContentEdited": NodeContentEditedPayload,
}


# ---------------------------------------------------------------------------
# Event envelope
# ---------------------------------------------------------------------------


class EventEnvelope(BaseModel):
    """Wraps every event with metadata. Stored in the events table."""

    event_id: str
    tree_id: str
    timestamp: datetime
    device_id: str = "local"
    event_type: str
    payload: dict[str, Any]
    sequence_num: int | None = None  # assigned by DB on insert

    def typed_payload(self) -> BaseModel:
        """Deserialize payload into the correct Pydantic model based on event_type."""
        payload_cls = EVENT_TYPES[self.event_type]
        return payload_cls.model_validate(self.payload)


# ---------------------------------------------------------------------------
# Tree-shape errors
# ---------------------------------------------------------------------------


class NodeNotFoundError(Exception):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class InvalidParentError(Exception):
    def __init__(self, parent_id: str) -> None:
        self.parent_id = parent_id
        super().__init__(f"Invalid parent node: {parent_id}")


class DuplicateNodeError(Exception):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node id already in use: {node_id}")
