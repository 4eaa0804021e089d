"""Dialogue graph layout: place every node on a grid and style the current path.

`layout_dialogue_tree` is a pure function of a tree snapshot. It returns the
positioned, labelled and styled nodes and edges that the graph widget draws,
plus the viewport hint the widget applies after its initial fit. Nothing here
renders or mutates the tree.

Grid rules:
- 1 column up to 3 nodes, otherwise round(sqrt(n)) columns
- Gaps shrink exponentially with node count, floored at fixed minimums
- Nodes fill cells row by row in arena order; the grid is centered on (0, 0)
"""

import logging
import math
from collections.abc import Callable
from functools import partial
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.json_schema import SkipJsonSchema

from taletree.dialogue.markers import extract_player_input, split_label_steps
from taletree.dialogue.navigator import walk_current_path
from taletree.models import ROOT_NODE_ID, DialogueNode, DialogueTree

logger = logging.getLogger(__name__)

NODE_WIDTH = 220
NODE_HEIGHT = 120

BASE_HORIZONTAL_GAP = 500
BASE_VERTICAL_GAP = 250
MIN_HORIZONTAL_GAP = 200
MIN_VERTICAL_GAP = 150
HORIZONTAL_DECAY = 0.9
VERTICAL_DECAY = 0.95

FIT_PADDING = 0.2
BASE_ZOOM = 0.85
MIN_ZOOM = 0.3
ZOOM_REDUCTION_RATE = 0.05

LABEL_MAX_CHARS = 30

NodeCategory = Literal["root", "current_path", "other"]
EdgeCategory = Literal["root_source", "current_path", "other_path"]


class LayoutLabels(BaseModel):
    """Display strings; the client supplies localized ones."""

    root: str = "root"
    starting_point: str = "Starting point "
    system_message: str = "System message"


class Position(BaseModel):
    x: float
    y: float


class NodeStyle(BaseModel):
    border_color: str
    hover_border_color: str
    text_color: str
    handle_color: str
    opaque: bool


class EdgeStyle(BaseModel):
    stroke: str
    stroke_width: int
    dash_array: str
    animation: str
    animation_duration_s: float
    dash_offset: int  # keyframe end offset; negative flows toward the child
    label_stroke: str
    label_fill: str
    opacity: float = 1.0


class NodeAction(BaseModel):
    kind: Literal["edit", "jump"]
    enabled: bool = True
    reason: str | None = None


class LayoutNode(BaseModel):
    id: str
    label: str
    label_steps: list[str] = Field(default_factory=list)
    full_content: str
    user_input: str
    assistant_response: str
    parsed_content: dict[str, Any] = Field(default_factory=dict)
    position: Position
    width: int = NODE_WIDTH
    height: int = NODE_HEIGHT
    category: NodeCategory
    is_current_path: bool
    style: NodeStyle
    actions: list[NodeAction]
    on_edit: SkipJsonSchema[Callable[[], Any] | None] = Field(default=None, exclude=True)
    on_jump: SkipJsonSchema[Callable[[], Any] | None] = Field(default=None, exclude=True)


class LayoutEdge(BaseModel):
    id: str
    source: str
    target: str
    label: str
    category: EdgeCategory
    is_current_path: bool
    style: EdgeStyle


class ViewportHint(BaseModel):
    """How the widget should frame the graph after fitting all nodes."""

    fit_padding: float = FIT_PADDING
    zoom_factor: float
    min_zoom: float = MIN_ZOOM


class GridShape(BaseModel):
    columns: int
    rows: int
    horizontal_gap: float
    vertical_gap: float


class DialogueGraph(BaseModel):
    tree_id: str
    character_id: str
    current_node_id: str
    current_path: list[str]
    grid: GridShape
    viewport: ViewportHint
    nodes: list[LayoutNode]
    edges: list[LayoutEdge]
    diagnostics: list[str] = Field(default_factory=list)


_NODE_STYLES: dict[NodeCategory, NodeStyle] = {
    "root": NodeStyle(
        border_color="#6d28d9",
        hover_border_color="#8b5cf6",
        text_color="#e9d5ff",
        handle_color="#a855f7",
        opaque=False,
    ),
    "current_path": NodeStyle(
        border_color="#991b1b",
        hover_border_color="#dc2626",
        text_color="#fecaca",
        handle_color="#ef4444",
        opaque=True,
    ),
    "other": NodeStyle(
        border_color="#3a3633",
        hover_border_color="#6b635d",
        text_color="#a8a095",
        handle_color="#b45309",
        opaque=False,
    ),
}

_EDGE_STYLES: dict[EdgeCategory, EdgeStyle] = {
    "root_source": EdgeStyle(
        stroke="#a78bfa",
        stroke_width=3,
        dash_array="10,5",
        animation="flowLineRoot",
        animation_duration_s=1.5,
        dash_offset=-45,
        label_stroke="#7c3aed",
        label_fill="#ddd6fe",
    ),
    "current_path": EdgeStyle(
        stroke="#ef4444",
        stroke_width=3,
        dash_array="8,4",
        animation="flowLineCurrent",
        animation_duration_s=1.8,
        dash_offset=-40,
        label_stroke="#991b1b",
        label_fill="#fecaca",
    ),
    "other_path": EdgeStyle(
        stroke="#8a7a64",
        stroke_width=2,
        dash_array="6,4",
        animation="flowLineOther",
        animation_duration_s=2.0,
        dash_offset=-30,
        label_stroke="#3a3633",
        label_fill="#a8a095",
        opacity=0.8,
    ),
}


def grid_shape(node_count: int) -> GridShape:
    """Columns, rows and gaps for a grid holding `node_count` nodes."""
    if node_count <= 3:
        columns = 1
    else:
        columns = max(1, math.floor(math.sqrt(node_count) + 0.5))
    rows = math.ceil(node_count / columns) if node_count else 0

    horizontal_gap = max(
        MIN_HORIZONTAL_GAP, BASE_HORIZONTAL_GAP * HORIZONTAL_DECAY**node_count
    )
    vertical_gap = max(MIN_VERTICAL_GAP, BASE_VERTICAL_GAP * VERTICAL_DECAY**node_count)
    return GridShape(
        columns=columns,
        rows=rows,
        horizontal_gap=horizontal_gap,
        vertical_gap=vertical_gap,
    )


def grid_position(index: int, grid: GridShape) -> Position:
    """Center of cell `index`, with the whole grid centered on the origin."""
    col = index % grid.columns
    row = index // grid.columns
    grid_width = grid.columns * NODE_WIDTH + (grid.columns - 1) * grid.horizontal_gap
    grid_height = grid.rows * NODE_HEIGHT + (grid.rows - 1) * grid.vertical_gap
    return Position(
        x=col * (NODE_WIDTH + grid.horizontal_gap) - grid_width / 2 + NODE_WIDTH / 2,
        y=row * (NODE_HEIGHT + grid.vertical_gap) - grid_height / 2 + NODE_HEIGHT / 2,
    )


def viewport_hint(node_count: int) -> ViewportHint:
    """Zoom dampening: larger trees zoom out further, floored at MIN_ZOOM."""
    zoom_factor = max(
        MIN_ZOOM, BASE_ZOOM - ZOOM_REDUCTION_RATE * math.log10(node_count + 1)
    )
    return ViewportHint(zoom_factor=zoom_factor)


def node_label(
    node: DialogueNode,
    root_children: list[str],
    labels: LayoutLabels,
) -> str:
    """Short display label for a node.

    Root children are numbered newest-first: the latest starting point is 1.
    """
    if node.is_root:
        return labels.root

    if node.parent_node_id == ROOT_NODE_ID:
        count = len(root_children)
        number = count - root_children.index(node.node_id)
        suffix = f"/{count}" if count > 1 else ""
        return f"{labels.starting_point}{number}{suffix}"

    if node.compressed_content:
        return node.compressed_content

    if node.assistant_response:
        if len(node.assistant_response) > LABEL_MAX_CHARS:
            return node.assistant_response[:LABEL_MAX_CHARS] + "..."
        return node.assistant_response

    return labels.system_message


def classify_node(node_id: str, path_members: set[str]) -> NodeCategory:
    if node_id == ROOT_NODE_ID:
        return "root"
    if node_id in path_members:
        return "current_path"
    return "other"


def classify_edge(
    source: str, target: str, path_members: set[str]
) -> tuple[EdgeCategory, bool]:
    """Visual category plus whether both endpoints lie on the current path."""
    on_path = source in path_members and target in path_members
    if source == ROOT_NODE_ID:
        return "root_source", on_path
    if on_path:
        return "current_path", True
    return "other_path", False


def _node_actions(node_id: str) -> list[NodeAction]:
    if node_id == ROOT_NODE_ID:
        jump = NodeAction(kind="jump", enabled=False, reason="cannot_jump_to_root")
    else:
        jump = NodeAction(kind="jump")
    return [NodeAction(kind="edit"), jump]


def layout_dialogue_tree(
    tree: DialogueTree,
    *,
    labels: LayoutLabels | None = None,
    on_edit: Callable[[str], Any] | None = None,
    on_jump: Callable[[str], Any] | None = None,
) -> DialogueGraph:
    """Lay out a dialogue tree for the graph widget.

    `on_edit` / `on_jump`, when given, are bound to each node id and attached
    to the emitted nodes; they are never serialized.
    """
    labels = labels or LayoutLabels()
    all_nodes = list(tree.nodes.values())
    diagnostics: list[str] = []

    current_path, reached_root = walk_current_path(tree)
    if not reached_root:
        diagnostics.append(
            f"Current path from {tree.current_node_id} does not reach the root"
        )

    # The root terminates every intact path, so root-anchored edges can
    # be on it; the current node counts even when it is the root itself.
    path_members = set(current_path) | {tree.current_node_id}
    if reached_root:
        path_members.add(ROOT_NODE_ID)

    grid = grid_shape(len(all_nodes))
    root_children = [n.node_id for n in all_nodes if n.parent_node_id == ROOT_NODE_ID]

    layout_nodes: list[LayoutNode] = []
    for index, node in enumerate(all_nodes):
        category = classify_node(node.node_id, path_members)
        label = node_label(node, root_children, labels)
        layout_nodes.append(
            LayoutNode(
                id=node.node_id,
                label=label,
                label_steps=split_label_steps(label),
                full_content=node.assistant_response,
                user_input=extract_player_input(node.user_input),
                assistant_response=node.assistant_response,
                parsed_content=(
                    node.parsed_content.model_dump(by_alias=True) if node.parsed_content else {}
                ),
                position=grid_position(index, grid),
                category=category,
                is_current_path=node.node_id in current_path,
                style=_NODE_STYLES[category],
                actions=_node_actions(node.node_id),
                on_edit=partial(on_edit, node.node_id) if on_edit else None,
                on_jump=partial(on_jump, node.node_id) if on_jump else None,
            )
        )

    layout_edges: list[LayoutEdge] = []
    for node in all_nodes:
        if node.is_root:
            continue
        source = node.parent_node_id
        if source is None or source not in tree.nodes:
            logger.warning(
                "Skipping edge for node %s in tree %s: parent %s is missing",
                node.node_id, tree.id, source,
            )
            diagnostics.append(f"Node {node.node_id} references missing parent {source}")
            continue

        category, on_path = classify_edge(source, node.node_id, path_members)
        layout_edges.append(
            LayoutEdge(
                id=f"edge-{source}-{node.node_id}",
                source=source,
                target=node.node_id,
                label=extract_player_input(node.user_input),
                category=category,
                is_current_path=on_path,
                style=_EDGE_STYLES[category],
            )
        )

    return DialogueGraph(
        tree_id=tree.id,
        character_id=tree.character_id,
        current_node_id=tree.current_node_id,
        current_path=current_path,
        grid=grid,
        viewport=viewport_hint(len(all_nodes)),
        nodes=layout_nodes,
        edges=layout_edges,
        diagnostics=diagnostics,
    )
