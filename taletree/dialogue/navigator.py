"""Branch navigation: which node is current, and how to move it.

The current pointer is only written here. `switch_branch` is the plain state
transition; `BranchNavigator` wraps it with the at-most-one-in-flight guard
and the conversation reload hook.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from taletree.models import ROOT_NODE_ID, DialogueNode, DialogueTree, NodeNotFoundError

logger = logging.getLogger(__name__)


class SwitchStatus(StrEnum):
    SWITCHED = "switched"
    UNCHANGED = "unchanged"  # target was already current
    DROPPED = "dropped"  # another switch for the same tree was in flight


def walk_current_path(tree: DialogueTree) -> tuple[list[str], bool]:
    """Walk parent links from the current node.

    Returns (leaf-first ids excluding root, whether the walk reached root).
    """
    path: list[str] = []
    seen: set[str] = set()
    node_id: str | None = tree.current_node_id

    while node_id != ROOT_NODE_ID:
        if node_id is None:
            return path, False
        if node_id in seen:
            logger.warning(
                "Cycle in dialogue tree %s at node %s; path walk stopped",
                tree.id, node_id,
            )
            return path, False
        node = tree.nodes.get(node_id)
        if node is None:
            logger.warning(
                "Dangling reference in dialogue tree %s: node %s is missing",
                tree.id, node_id,
            )
            return path, False
        seen.add(node_id)
        path.append(node_id)
        node_id = node.parent_node_id

    return path, True


def compute_current_path(tree: DialogueTree) -> list[str]:
    """Node ids from the current node up to, but excluding, the root.

    Leaf-first; callers wanting root-first order reverse it themselves.
    """
    path, _ = walk_current_path(tree)
    return path


def path_reaches_root(tree: DialogueTree) -> bool:
    """True when the current path ends at the root rather than on bad data."""
    _, reached = walk_current_path(tree)
    return reached


def active_history(tree: DialogueTree) -> list[DialogueNode]:
    """Root-first nodes of the current path, root excluded."""
    return [
        tree.nodes[node_id]
        for node_id in reversed(compute_current_path(tree))
        if node_id in tree.nodes
    ]


def switch_branch(tree: DialogueTree, target_node_id: str) -> SwitchStatus:
    """Make `target_node_id` the current node.

    Raises NodeNotFoundError or RootJumpError without touching the tree.
    """
    if target_node_id == ROOT_NODE_ID:
        raise RootJumpError()
    if target_node_id not in tree.nodes:
        raise NodeNotFoundError(target_node_id)
    if target_node_id == tree.current_node_id:
        return SwitchStatus.UNCHANGED

    tree.current_node_id = target_node_id
    tree.touch()
    return SwitchStatus.SWITCHED


class BranchNavigator:
    """Serializes branch switches per tree; overlapping requests are dropped."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_switching(self, tree_id: str) -> bool:
        return tree_id in self._in_flight

    async def switch(
        self,
        tree: DialogueTree,
        target_node_id: str,
        on_switched: Callable[[DialogueTree], Awaitable[None]] | None = None,
    ) -> SwitchStatus:
        """Switch branches and await the reload hook before releasing the guard."""
        if tree.id in self._in_flight:
            logger.warning(
                "Switch to %s dropped: another switch is in flight for tree %s",
                target_node_id, tree.id,
            )
            return SwitchStatus.DROPPED

        self._in_flight.add(tree.id)
        previous = (tree.current_node_id, tree.updated_at)
        try:
            status = switch_branch(tree, target_node_id)
            if status is SwitchStatus.SWITCHED and on_switched is not None:
                try:
                    await on_switched(tree)
                except Exception:
                    tree.current_node_id, tree.updated_at = previous
                    raise
            return status
        finally:
            self._in_flight.discard(tree.id)


class RootJumpError(Exception):
    """The root is a structural anchor and cannot become the current node."""

    code = "cannot_jump_to_root"

    def __init__(self) -> None:
        super().__init__("Cannot jump to the root node")
