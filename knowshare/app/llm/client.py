"""Answer composition with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides deterministic fallback when no key present for testing.
"""

import logging
from typing import Literal, Protocol

from openai import AsyncOpenAI
from pydantic import BaseModel

from knowshare.app.config import Settings
from knowshare.app.models.knowledge import KnowledgeSource, KnowledgeSourceSuggestion

logger = logging.getLogger(__name__)

MAX_ANSWER_CHARS = 10000

SYSTEM_PROMPT = """You are a helpful assistant with access to a knowledge base.

1. Answer from the "Knowledge" section below: the user's own notes and knowledge
   colleagues explicitly shared with them.
2. If the knowledge does not answer the question but "Colleagues who may know" lists
   someone, say so, for example: "[Name] may know about this. Would you like me to ask
   them?" The user confirms through a separate button; never claim a request was sent.
3. Never guess what a colleague knows. Only their name is available to you.
4. If nothing relevant is available, say you don't have information about it."""


class ComposedAnswer(BaseModel):
    """Assistant reply text and which composer produced it."""

    text: str
    source: Literal["openai", "stub"]


class AnswerComposer(Protocol):
    """Protocol for answer composer implementations."""

    async def compose_answer(
        self,
        *,
        question: str,
        sources: list[KnowledgeSource],
        suggestions: list[KnowledgeSourceSuggestion],
    ) -> ComposedAnswer:
        """Write the assistant reply for one turn.

        Args:
            question: The user's message
            sources: Knowledge the user may read (own and shared)
            suggestions: Colleagues who may hold relevant knowledge

        Returns:
            ComposedAnswer with the reply text
        """
        ...


def _suggestion_names(suggestions: list[KnowledgeSourceSuggestion]) -> list[str]:
    names: list[str] = []
    for suggestion in suggestions:
        name = suggestion.owner_name or "A colleague"
        if name not in names:
            names.append(name)
    return names


class DeterministicStubClient:
    """Deterministic stub composer for testing (no API key required)."""

    async def compose_answer(
        self,
        *,
        question: str,
        sources: list[KnowledgeSource],
        suggestions: list[KnowledgeSourceSuggestion],
    ) -> ComposedAnswer:
        """Generate deterministic stub answer."""
        if sources:
            lines = ["Here is what I found in your knowledge:", ""]
            lines.extend(f"- {source.embedding_content}" for source in sources)
            return ComposedAnswer(text="\n".join(lines), source="stub")

        if suggestions:
            names = " and ".join(_suggestion_names(suggestions))
            return ComposedAnswer(
                text=(
                    f"I couldn't find this in your knowledge. {names} may know about this. "
                    "Would you like me to ask them?"
                ),
                source="stub",
            )

        return ComposedAnswer(text="I don't have information about that yet.", source="stub")


class OpenAIClient:
    """OpenAI-backed answer composer."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Chat model name
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def compose_answer(
        self,
        *,
        question: str,
        sources: list[KnowledgeSource],
        suggestions: list[KnowledgeSourceSuggestion],
    ) -> ComposedAnswer:
        """Generate the reply with a chat completion, falling back to the stub on failure."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self._build_context(question, sources, suggestions)},
                ],
                temperature=0.3,
                max_tokens=1000,
            )

            text = response.choices[0].message.content or ""

            if not text.strip():
                logger.warning("OpenAI returned empty response, using deterministic stub fallback")
                return await DeterministicStubClient().compose_answer(
                    question=question, sources=sources, suggestions=suggestions
                )

            if len(text) > MAX_ANSWER_CHARS:
                logger.warning(
                    f"OpenAI response unexpectedly large ({len(text)} chars), "
                    f"truncating to {MAX_ANSWER_CHARS}"
                )
                text = text[:MAX_ANSWER_CHARS] + "\n\n[Truncated]"

            return ComposedAnswer(text=text, source="openai")

        except Exception as e:
            logger.error(f"OpenAI API call failed: {e}")
            logger.warning("Falling back to deterministic stub client for composition")
            return await DeterministicStubClient().compose_answer(
                question=question, sources=sources, suggestions=suggestions
            )

    def _build_context(
        self,
        question: str,
        sources: list[KnowledgeSource],
        suggestions: list[KnowledgeSourceSuggestion],
    ) -> str:
        """Build context string for the model. Suggestions contribute names only."""
        lines = ["## Question", question, ""]

        lines.append("## Knowledge")
        if sources:
            for source in sources:
                lines.append(f"- ({source.tier}, {source.owner_name}) {source.embedding_content}")
        else:
            lines.append("- None")
        lines.append("")

        lines.append("## Colleagues who may know")
        names = _suggestion_names(suggestions)
        if names:
            lines.extend(f"- {name}" for name in names)
        else:
            lines.append("- None")

        return "\n".join(lines)


def get_answer_composer(settings: Settings) -> AnswerComposer:
    """Factory function to get appropriate composer based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for answer composition")
        return OpenAIClient(api_key=api_key.get_secret_value(), model=settings.chat_model)

    logger.warning("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()
