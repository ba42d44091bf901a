"""Grounded answer generation over retrieved chunks."""

from __future__ import annotations

from collections.abc import Sequence

from openai import APIError, AsyncOpenAI

from file_crawler.config import Settings
from file_crawler.core.constants import NO_CONTEXT_MARKER
from file_crawler.core.exceptions import GenerationError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import FusedCandidate
from file_crawler.core.retry import RetryPolicy

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that analyzes search results from a document "
    "database and provides comprehensive answers based on the information found."
)

USER_PROMPT = """\
Based on the following search results from a document database, please provide a \
comprehensive answer to the user's query.

User Query: {query}

Search Results:
{context}

Please provide a detailed answer based on the information found in the search \
results. If the search results don't contain enough information to fully answer \
the query, please indicate what additional information might be needed."""


def format_context(contexts: Sequence[FusedCandidate]) -> str:
    """Number each chunk as ``[Source i]`` in the given order."""
    if not contexts:
        return NO_CONTEXT_MARKER
    blocks = []
    for i, candidate in enumerate(contexts, start=1):
        score = candidate.rerank_score if candidate.rerank_score is not None else candidate.rrf_score
        blocks.append(
            f"[Source {i}] File: {candidate.source_path} (Score: {score:.4f})\n"
            f"Content: {candidate.text}\n"
        )
    return "\n".join(blocks)


class AnswerGenerator:
    """OpenAI-compatible chat completion over the retrieved context."""

    def __init__(
        self,
        settings: Settings,
        client: AsyncOpenAI | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.model = settings.openai_model
        self.temperature = settings.openai_temperature
        self.max_tokens = settings.openai_max_tokens
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_url,
            max_retries=settings.openai_max_retries,
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=1, timeout=settings.generation_timeout
        )

    def build_messages(self, query: str, contexts: Sequence[FusedCandidate]) -> list[dict[str, str]]:
        """Return the system and user messages for ``query``."""
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": USER_PROMPT.format(query=query, context=format_context(contexts)),
            },
        ]

    async def complete(self, query: str, contexts: Sequence[FusedCandidate]) -> str:
        """Answer ``query`` from ``contexts``.

        Args:
            query: The user's question.
            contexts: Chunks in final rank order; may be empty.

        Returns:
            The model's answer text.

        Raises:
            GenerationError: The API failed, timed out or returned no content.
        """
        messages = self.build_messages(query, contexts)
        logger.info("Generating answer with %s from %d context chunks", self.model, len(contexts))

        try:
            response = await self.retry_policy.run(
                lambda: self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                describe=f"chat completion ({self.model})",
            )
        except TimeoutError as exc:
            raise GenerationError(f"Chat completion timed out after {self.retry_policy.timeout}s") from exc
        except APIError as exc:
            raise GenerationError(f"Chat completion failed: {exc}") from exc

        if not response.choices:
            raise GenerationError("Chat completion returned no choices")
        choice = response.choices[0]
        content = choice.message.content
        if not content:
            raise GenerationError(
                f"Response was empty (finish_reason: {choice.finish_reason}); "
                "try increasing max tokens or reducing the input size"
            )
        return content
