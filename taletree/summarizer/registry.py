"""Summarizer registry: one configured summarizer per transport kind."""

from taletree.summarizer.anthropic import AnthropicSummarizer
from taletree.summarizer.base import Summarizer
from taletree.summarizer.ollama import OllamaSummarizer
from taletree.summarizer.openai_compat import OpenAICompatibleSummarizer

_summarizers: dict[str, Summarizer] = {}


def register_summarizer(summarizer: Summarizer) -> None:
    """Register a summarizer instance under its transport kind."""
    _summarizers[summarizer.name] = summarizer


def register_default_summarizers() -> None:
    """Register the built-in summarizers (clients are built per connection)."""
    register_summarizer(OpenAICompatibleSummarizer())
    register_summarizer(OllamaSummarizer())
    register_summarizer(AnthropicSummarizer())


def get_summarizer(llm_type: str) -> Summarizer:
    """Get a registered summarizer. Raises SummarizerNotFoundError if not found."""
    try:
        return _summarizers[llm_type]
    except KeyError:
        available = ", ".join(_summarizers.keys()) or "(none)"
        raise SummarizerNotFoundError(
            f"Summarizer '{llm_type}' not registered. Available: {available}"
        )


def list_summarizers() -> list[str]:
    return list(_summarizers.keys())


def clear_summarizers() -> None:
    """Clear all registered summarizers. Used in tests."""
    _summarizers.clear()


class SummarizerNotFoundError(Exception):
    pass
