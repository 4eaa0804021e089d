"""FastAPI routes for a character's dialogue tree."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from taletree.dialogue.editor import EditInProgressError
from taletree.dialogue.layout import DialogueGraph, LayoutLabels
from taletree.dialogue.navigator import (
    RootJumpError,
    SwitchStatus,
    active_history,
    compute_current_path,
)
from taletree.dialogue.schemas import (
    AppendTurnRequest,
    CreateDialogueRequest,
    DialogueTreeResponse,
    EditNodeContentRequest,
    NodeResponse,
    SwitchBranchRequest,
    SwitchBranchResponse,
)
from taletree.dialogue.service import (
    DialogueExistsError,
    DialogueNotFoundError,
    DialogueService,
)
from taletree.models import DuplicateNodeError, InvalidParentError, NodeNotFoundError
from taletree.summarizer.base import SummarizerError
from taletree.summarizer.registry import SummarizerNotFoundError

router = APIRouter(prefix="/api/characters/{character_id}/dialogue", tags=["dialogue"])


def get_dialogue_service() -> DialogueService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("DialogueService not initialized")


def _no_dialogue(character_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"No dialogue for character: {character_id}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_dialogue(
    character_id: str,
    request: CreateDialogueRequest,
    service: DialogueService = Depends(get_dialogue_service),
) -> DialogueTreeResponse:
    try:
        tree = await service.create_dialogue(character_id, request.metadata)
    except DialogueExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return DialogueTreeResponse.from_tree(tree)


@router.post("/reset", status_code=status.HTTP_201_CREATED)
async def reset_dialogue(
    character_id: str,
    service: DialogueService = Depends(get_dialogue_service),
) -> DialogueTreeResponse:
    tree = await service.reset_dialogue(character_id, reason="user_reset")
    return DialogueTreeResponse.from_tree(tree)


@router.get("")
async def get_dialogue(
    character_id: str,
    service: DialogueService = Depends(get_dialogue_service),
) -> DialogueTreeResponse:
    tree = await service.get_dialogue(character_id)
    if tree is None:
        raise _no_dialogue(character_id)
    return DialogueTreeResponse.from_tree(tree)


@router.get("/history")
async def get_active_history(
    character_id: str,
    service: DialogueService = Depends(get_dialogue_service),
) -> list[NodeResponse]:
    try:
        nodes = await service.get_active_history(character_id)
    except DialogueNotFoundError:
        raise _no_dialogue(character_id)
    return [NodeResponse.from_node(n) for n in nodes]


@router.get("/graph")
async def get_graph(
    character_id: str,
    starting_point: str = Query(default="Starting point "),
    system_message: str = Query(default="System message"),
    service: DialogueService = Depends(get_dialogue_service),
) -> DialogueGraph:
    labels = LayoutLabels(starting_point=starting_point, system_message=system_message)
    try:
        return await service.get_graph(character_id, labels)
    except DialogueNotFoundError:
        raise _no_dialogue(character_id)


@router.post("/nodes", status_code=status.HTTP_201_CREATED)
async def append_turn(
    character_id: str,
    request: AppendTurnRequest,
    service: DialogueService = Depends(get_dialogue_service),
) -> NodeResponse:
    try:
        node = await service.append_turn(character_id, request)
    except DialogueNotFoundError:
        raise _no_dialogue(character_id)
    except (InvalidParentError, DuplicateNodeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NodeResponse.from_node(node)


@router.post("/switch")
async def switch_branch(
    character_id: str,
    request: SwitchBranchRequest,
    service: DialogueService = Depends(get_dialogue_service),
) -> SwitchBranchResponse:
    try:
        switch_status, tree = await service.switch_branch(character_id, request.node_id)
    except DialogueNotFoundError:
        raise _no_dialogue(character_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {request.node_id}")
    except RootJumpError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": str(e)})

    if switch_status is SwitchStatus.DROPPED:
        raise HTTPException(
            status_code=409, detail="Another branch switch is still in progress"
        )

    return SwitchBranchResponse(
        status=switch_status,
        current_node_id=tree.current_node_id,
        current_path=compute_current_path(tree),
        history=[NodeResponse.from_node(n) for n in active_history(tree)],
    )


@router.patch("/nodes/{node_id}/content")
async def edit_node_content(
    character_id: str,
    node_id: str,
    request: EditNodeContentRequest,
    service: DialogueService = Depends(get_dialogue_service),
) -> NodeResponse:
    try:
        node = await service.edit_node_content(
            character_id, node_id, request.assistant_response, request.connection(),
        )
    except DialogueNotFoundError:
        raise _no_dialogue(character_id)
    except NodeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    except SummarizerNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EditInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SummarizerError as e:
        raise HTTPException(status_code=502, detail=f"Summary generation failed: {e}")
    return NodeResponse.from_node(node)
