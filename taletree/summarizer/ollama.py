"""Ollama summarizer: a thin subclass of OpenAICompatibleSummarizer.

Ollama runs local models and exposes an OpenAI-compatible API at /v1.
"""

from openai import AsyncOpenAI

from taletree.summarizer.base import SummarizerConnection
from taletree.summarizer.openai_compat import OpenAICompatibleSummarizer

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaSummarizer(OpenAICompatibleSummarizer):
    """Summarizer backed by a local Ollama instance."""

    @property
    def name(self) -> str:
        return "ollama"

    def _make_client(self, connection: SummarizerConnection) -> AsyncOpenAI:
        base_url = (connection.base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        return AsyncOpenAI(api_key=connection.api_key or "ollama", base_url=base_url)
