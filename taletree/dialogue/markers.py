"""Helpers for the structured markers embedded in stored user input.

The chat client wraps what the player actually typed in an
``<input_message>`` tag, often behind a localized "Player Input:" prefix.
Only that inner text is meant for display.
"""

import re

_INPUT_MESSAGE_RE = re.compile(r"<input_message>([\s\S]*?)</input_message>")
_PLAYER_INPUT_PREFIX_RE = re.compile(
    r"^[\s\n\r]*((<[^>]+>\s*)*)?(玩家输入指令|Player Input)[:：]\s*",
    re.IGNORECASE,
)
_LABEL_STEP_RE = re.compile(r"——>|-->|->")


def extract_player_input(user_input: str | None) -> str:
    """Return the tagged player input without its prefix, or "" if untagged."""
    if not user_input:
        return ""
    match = _INPUT_MESSAGE_RE.search(user_input)
    if match is None:
        return ""
    return _PLAYER_INPUT_PREFIX_RE.sub("", match.group(1), count=1)


def split_label_steps(label: str) -> list[str]:
    """Split an arrow-chained summary ("a -> b -> c") into its steps."""
    return [step.strip() for step in _LABEL_STEP_RE.split(label) if step.strip()]
