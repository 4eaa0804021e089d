"""Shared test helpers: tree builders, event envelopes, summarizer stubs."""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from httpx import AsyncClient

from taletree.models import (
    DialogueCreatedPayload,
    DialogueTree,
    EventEnvelope,
    NodeAppendedPayload,
    ParsedContent,
)
from taletree.summarizer.base import (
    Summarizer,
    SummarizerConnection,
    SummarizerError,
    SummaryResult,
)

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


# -- In-memory trees --


def make_tree(
    edges: list[tuple[str, str]],
    current: str = "root",
    character_id: str = "char-1",
) -> DialogueTree:
    """Build a tree from (parent, child) pairs, appended in the given order.

    Each node gets a distinct, increasing created_at and a reply equal to
    its own id, so labels are predictable.
    """
    tree = DialogueTree.create(character_id, tree_id="tree-1", now=BASE_TIME)
    for offset, (parent, child) in enumerate(edges, start=1):
        tree.append_turn(
            parent,
            user_input=f"<input_message>Player Input: go {child}</input_message>",
            assistant_response=child,
            node_id=child,
            now=BASE_TIME + timedelta(minutes=offset),
        )
    tree.current_node_id = current
    return tree


def make_scenario_tree(current: str = "B") -> DialogueTree:
    """root -> A -> B, root -> A -> C, root -> D."""
    return make_tree(
        [("root", "A"), ("A", "B"), ("A", "C"), ("root", "D")],
        current=current,
    )


def make_summarized_tree(summaries: dict[str, str]) -> DialogueTree:
    """Scenario tree whose nodes carry the given compressed summaries."""
    tree = make_scenario_tree()
    for node_id, summary in summaries.items():
        node = tree.nodes[node_id]
        tree.nodes[node_id] = node.model_copy(
            update={"parsed_content": ParsedContent(compressed_content=summary)}
        )
    return tree


# -- Event envelopes --


def make_dialogue_created_envelope(
    tree_id: str | None = None,
    character_id: str = "char-1",
    **payload_overrides: Any,
) -> EventEnvelope:
    """Create a DialogueCreated EventEnvelope for testing."""
    payload = DialogueCreatedPayload(character_id=character_id, **payload_overrides)
    return EventEnvelope(
        event_id=str(uuid4()),
        tree_id=tree_id or str(uuid4()),
        timestamp=datetime.now(UTC),
        device_id="test",
        event_type="DialogueCreated",
        payload=payload.model_dump(),
    )


def make_node_appended_envelope(
    tree_id: str,
    node_id: str | None = None,
    parent_node_id: str = "root",
    assistant_response: str = "Hello",
    **payload_overrides: Any,
) -> EventEnvelope:
    """Create a NodeAppended EventEnvelope for testing."""
    payload = NodeAppendedPayload(
        node_id=node_id or str(uuid4()),
        parent_node_id=parent_node_id,
        assistant_response=assistant_response,
        **payload_overrides,
    )
    return EventEnvelope(
        event_id=str(uuid4()),
        tree_id=tree_id,
        timestamp=datetime.now(UTC),
        device_id="test",
        event_type="NodeAppended",
        payload=payload.model_dump(),
    )


# -- Summarizers --


class StubSummarizer(Summarizer):
    """Returns a canned summary, or raises when `fail` is set."""

    def __init__(self, content: str = "stub summary", *, fail: bool = False) -> None:
        self.content = content
        self.fail = fail
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    async def summarize(self, text: str, connection: SummarizerConnection) -> SummaryResult:
        self.calls.append(text)
        if self.fail:
            raise SummarizerError("upstream unavailable")
        return SummaryResult(content=self.content, model=connection.model_name)


def make_connection(**overrides: Any) -> SummarizerConnection:
    params: dict[str, Any] = {"model_name": "test-model", "language": "en"}
    params.update(overrides)
    return SummarizerConnection(**params)


def mock_openai_client(content: str | None = "a -> b", model: str = "gpt-test") -> MagicMock:
    """AsyncOpenAI stand-in whose chat.completions.create returns one choice."""
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    response.model = model

    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


def mock_anthropic_client(text: str = "a -> b", model: str = "claude-test") -> MagicMock:
    """AsyncAnthropic stand-in whose messages.create returns one text block."""
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.model = model

    client = MagicMock()
    client.messages.create = AsyncMock(return_value=response)
    return client


# -- API-level helpers --


async def create_test_dialogue(client: AsyncClient, character_id: str = "char-1") -> dict:
    """Create a dialogue via the API and return the response JSON."""
    resp = await client.post(f"/api/characters/{character_id}/dialogue", json={})
    assert resp.status_code == 201
    return resp.json()


async def append_test_turn(
    client: AsyncClient,
    character_id: str = "char-1",
    reply: str = "Hello",
    parent_node_id: str | None = None,
    advance: bool = True,
) -> dict:
    body: dict[str, Any] = {
        "user_input": f"<input_message>Player Input: {reply}?</input_message>",
        "assistant_response": reply,
        "advance": advance,
    }
    if parent_node_id is not None:
        body["parent_node_id"] = parent_node_id
    resp = await client.post(f"/api/characters/{character_id}/dialogue/nodes", json=body)
    assert resp.status_code == 201
    return resp.json()


async def create_branching_dialogue(client: AsyncClient, character_id: str = "char-1") -> dict:
    """Create root -> A -> B, root -> A -> C, root -> D via the API, current at B.

    Returns {"A": id, "B": id, "C": id, "D": id}.
    """
    await create_test_dialogue(client, character_id)
    a = await append_test_turn(client, character_id, "A")
    b = await append_test_turn(client, character_id, "B")
    c = await append_test_turn(
        client, character_id, "C", parent_node_id=a["node_id"], advance=False,
    )
    d = await append_test_turn(
        client, character_id, "D", parent_node_id="root", advance=False,
    )
    return {"A": a["node_id"], "B": b["node_id"], "C": c["node_id"], "D": d["node_id"]}
