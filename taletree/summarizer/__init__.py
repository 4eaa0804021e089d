"""Summary backends used by the content editor."""

from taletree.summarizer.base import (
    Summarizer,
    SummarizerConnection,
    SummarizerError,
    SummaryResult,
)

__all__ = ["Summarizer", "SummarizerConnection", "SummarizerError", "SummaryResult"]
