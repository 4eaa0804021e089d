"""Summarizer for any API that speaks the OpenAI chat completions protocol."""

from typing import Any

from openai import AsyncOpenAI, OpenAIError

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


class OpenAICompatibleSummarizer(Summarizer):
    """Compresses text through client.chat.completions.create()."""

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    async def summarize(self, text: str, connection: SummarizerConnection) -> SummaryResult:
        params = self._build_params(text, connection)
        try:
            client = self._client or self._make_client(connection)
            response = await client.chat.completions.create(**params)
        except OpenAIError as e:
            raise SummarizerError(f"{self.name} summary request failed: {e}") from e

        if not response.choices:
            raise SummarizerError(f"{self.name} summary response had no choices")
        content = clean_summary(response.choices[0].message.content)
        return SummaryResult(content=content, model=response.model or connection.model_name)

    def _make_client(self, connection: SummarizerConnection) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=connection.api_key or None,
            base_url=connection.base_url or None,
        )

    @staticmethod
    def _build_params(text: str, connection: SummarizerConnection) -> dict[str, Any]:
        """Build kwargs dict for client.chat.completions.create()."""
        return {
            "model": connection.model_name,
            "max_tokens": SUMMARY_MAX_TOKENS,
            "temperature": 0.3,
            "messages": [
                {"role": "system", "content": compression_system_prompt(connection.language)},
                {"role": "user", "content": compression_user_message(text, connection.language)},
            ],
        }
