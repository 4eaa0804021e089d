"""Abstract summarizer interface and shared data types.

A summarizer compresses an assistant response into a short arrow-chained
recap ("a -> b -> c") that the dialogue graph uses as a node label.
"""

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel

SUMMARY_MAX_TOKENS = 300

_COMPRESSION_PROMPTS: dict[str, str] = {
    "en": (
        "You compress a story reply into a terse chain of events. "
        "List the key events in order, joined with ' -> '. "
        "At most five steps, a few words each. No markdown, no preamble."
    ),
    "zh": (
        "你负责把一段故事回复压缩成简短的事件链。"
        "按顺序列出关键事件，用 ' -> ' 连接。"
        "最多五步，每步几个词。不要使用 markdown，不要任何前言。"
    ),
}

_USER_TEMPLATES: dict[str, str] = {
    "en": "Compress this reply:\n\n{text}",
    "zh": "压缩这段回复：\n\n{text}",
}


class SummarizerConnection(BaseModel):
    """Per-request model/connection parameters supplied by the client."""

    model_name: str
    api_key: str = ""
    base_url: str = ""
    llm_type: Literal["openai", "ollama", "anthropic"] = "openai"
    language: Literal["zh", "en"] = "zh"


class SummaryResult(BaseModel):
    """Compressed summary returned by a summarizer."""

    content: str
    model: str


class Summarizer(ABC):
    """Abstract interface for summary backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport kind this summarizer serves (e.g., 'openai')."""
        ...

    @abstractmethod
    async def summarize(self, text: str, connection: SummarizerConnection) -> SummaryResult:
        """Compress `text`. Raises SummarizerError on upstream failure."""
        ...


def compression_system_prompt(language: str) -> str:
    return _COMPRESSION_PROMPTS.get(language, _COMPRESSION_PROMPTS["en"])


def compression_user_message(text: str, language: str) -> str:
    template = _USER_TEMPLATES.get(language, _USER_TEMPLATES["en"])
    return template.format(text=text)


def clean_summary(raw: str | None) -> str:
    """Normalize model output; raises SummarizerError when nothing usable came back."""
    if raw is None or not raw.strip():
        raise SummarizerError("Summarizer returned an empty summary")
    return raw.strip()


class SummarizerError(Exception):
    """The summary backend failed or returned malformed data."""
