"""Request and response schemas for dialogue endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from taletree.dialogue.navigator import SwitchStatus, compute_current_path
from taletree.models import DialogueNode, DialogueTree
from taletree.summarizer.base import SummarizerConnection

# -- Requests --


class CreateDialogueRequest(BaseModel):
    metadata: dict[str, Any] = Field(default_factory=dict)


class AppendTurnRequest(BaseModel):
    """A freshly generated turn. Defaults to a child of the current node."""

    user_input: str = ""
    assistant_response: str = ""
    full_response: str = ""
    parsed_content: dict[str, Any] | None = None
    parent_node_id: str | None = None
    advance: bool = True  # make the new node current


class SwitchBranchRequest(BaseModel):
    node_id: str


class EditNodeContentRequest(BaseModel):
    """New reply text plus the model connection used to re-summarize it."""

    assistant_response: str
    model_name: str
    api_key: str = ""
    base_url: str = ""
    llm_type: Literal["openai", "ollama", "anthropic"] = "openai"
    language: Literal["zh", "en"] = "zh"

    def connection(self) -> SummarizerConnection:
        return SummarizerConnection(
            model_name=self.model_name,
            api_key=self.api_key,
            base_url=self.base_url,
            llm_type=self.llm_type,
            language=self.language,
        )


# -- Responses --


class NodeResponse(BaseModel):
    node_id: str
    parent_node_id: str | None = None
    user_input: str
    assistant_response: str
    full_response: str
    parsed_content: dict[str, Any] | None = None
    created_at: str

    @classmethod
    def from_node(cls, node: DialogueNode) -> "NodeResponse":
        return cls(
            node_id=node.node_id,
            parent_node_id=node.parent_node_id,
            user_input=node.user_input,
            assistant_response=node.assistant_response,
            full_response=node.full_response,
            parsed_content=(
                node.parsed_content.model_dump(by_alias=True) if node.parsed_content else None
            ),
            created_at=node.created_at.isoformat(),
        )


class DialogueTreeResponse(BaseModel):
    tree_id: str
    character_id: str
    current_node_id: str
    current_path: list[str]
    created_at: str
    updated_at: str
    nodes: list[NodeResponse] = Field(default_factory=list)

    @classmethod
    def from_tree(cls, tree: DialogueTree) -> "DialogueTreeResponse":
        return cls(
            tree_id=tree.id,
            character_id=tree.character_id,
            current_node_id=tree.current_node_id,
            current_path=compute_current_path(tree),
            created_at=tree.created_at.isoformat(),
            updated_at=tree.updated_at.isoformat(),
            nodes=[NodeResponse.from_node(n) for n in tree.nodes.values()],
        )


class SwitchBranchResponse(BaseModel):
    status: SwitchStatus
    current_node_id: str
    current_path: list[str]
    history: list[NodeResponse] = Field(default_factory=list)  # root-first
