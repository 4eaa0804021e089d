"""Anthropic (Claude) summarizer implementation."""

import os
from typing import Any

from anthropic import AnthropicError, AsyncAnthropic

from taletree.summarizer.base import (
    SUMMARY_MAX_TOKENS,
    Summarizer,
    SummarizerConnection,
    SummarizerError,
    SummaryResult,
    clean_summary,
    compression_system_prompt,
    compression_user_message,
)


class AnthropicSummarizer(Summarizer):
    """Summarizer backed by Anthropic's Messages API."""

    def __init__(self, client: AsyncAnthropic | None = None) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    async def summarize(self, text: str, connection: SummarizerConnection) -> SummaryResult:
        try:
            client = self._client or self._make_client(connection)
            response = await client.messages.create(
                model=connection.model_name,
                max_tokens=SUMMARY_MAX_TOKENS,
                system=compression_system_prompt(connection.language),
                messages=[
                    {
                        "role": "user",
                        "content": compression_user_message(text, connection.language),
                    },
                ],
            )
        except AnthropicError as e:
            raise SummarizerError(f"anthropic summary request failed: {e}") from e

        content = clean_summary(self._extract_text(response))
        return SummaryResult(content=content, model=response.model or connection.model_name)

    @staticmethod
    def _make_client(connection: SummarizerConnection) -> AsyncAnthropic:
        """Build a client, failing early when no credential can be resolved."""
        if not (
            connection.api_key
            or os.environ.get("ANTHROPIC_API_KEY")
            or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        ):
            raise SummarizerError("anthropic summary request needs an API key")
        return AsyncAnthropic(
            api_key=connection.api_key or None,
            base_url=connection.base_url or None,
        )

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Extract text content from Anthropic Message response."""
        parts = []
        for block in response.content:
            if block.type == "text":
                parts.append(block.text)
        return "".join(parts)
