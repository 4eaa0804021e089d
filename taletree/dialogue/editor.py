"""Content editing: rewrite a node's reply and refresh its compressed summary.

An edit is all-or-nothing. The node is only replaced once the summarizer
has produced a usable summary; tree shape and every other node stay as
they were.
"""

import logging

from taletree.models import DialogueNode, DialogueTree, NodeNotFoundError, ParsedContent
from taletree.summarizer.base import (
    Summarizer,
    SummarizerConnection,
    SummarizerError,
    SummaryResult,
)

logger = logging.getLogger(__name__)


async def edit_node_content(
    tree: DialogueTree,
    node_id: str,
    new_text: str,
    summarizer: Summarizer,
    connection: SummarizerConnection,
) -> DialogueNode:
    """Replace `assistant_response` of a node and store a fresh summary.

    Raises NodeNotFoundError or SummarizerError; on either the tree is
    unchanged.
    """
    node = tree.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id)

    try:
        summary = await summarizer.summarize(new_text, connection)
    except SummarizerError:
        logger.warning("Summary failed for node %s in tree %s", node_id, tree.id)
        raise

    if not isinstance(summary, SummaryResult) or not summary.content.strip():
        raise SummarizerError(f"Malformed summary for node {node_id}")

    parsed = node.parsed_content or ParsedContent()
    updated = node.model_copy(
        update={
            "assistant_response": new_text,
            "parsed_content": parsed.model_copy(
                update={"compressed_content": summary.content}
            ),
        }
    )
    tree.replace_node(updated)
    return updated


class ContentEditor:
    """Runs edits while refusing a second submission for a node still in flight."""

    def __init__(self) -> None:
        self._pending: set[tuple[str, str]] = set()

    def is_pending(self, tree_id: str, node_id: str) -> bool:
        return (tree_id, node_id) in self._pending

    async def edit(
        self,
        tree: DialogueTree,
        node_id: str,
        new_text: str,
        summarizer: Summarizer,
        connection: SummarizerConnection,
    ) -> DialogueNode:
        key = (tree.id, node_id)
        if key in self._pending:
            raise EditInProgressError(node_id)

        self._pending.add(key)
        try:
            return await edit_node_content(tree, node_id, new_text, summarizer, connection)
        finally:
            self._pending.discard(key)


class EditInProgressError(Exception):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"An edit is already in progress for node: {node_id}")
