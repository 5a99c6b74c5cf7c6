"""Tests for the answer composers.

All tests are deterministic and do not make real network calls.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import SecretStr

from knowshare.app.config import Settings
from knowshare.app.llm.client import (
    MAX_ANSWER_CHARS,
    DeterministicStubClient,
    OpenAIClient,
    get_answer_composer,
)
from knowshare.app.models.knowledge import KnowledgeSource, KnowledgeSourceSuggestion

BOB_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")
CAROL_ID = uuid.UUID("00000000-0000-0000-0000-000000000004")


@pytest.fixture
def sample_sources() -> list[KnowledgeSource]:
    """Create one own and one shared source."""
    return [
        KnowledgeSource(
            embedding_id=1,
            embedding_content="Q3 pricing goes up 20% for enterprise.",
            owner_id=uuid.uuid4(),
            owner_name="Alice",
            tier="own",
        ),
        KnowledgeSource(
            embedding_id=2,
            embedding_content="Discounts need VP approval.",
            owner_id=BOB_ID,
            owner_name="Bob",
            tier="shared",
        ),
    ]


@pytest.fixture
def sample_suggestions() -> list[KnowledgeSourceSuggestion]:
    """Create suggestions with a repeated owner."""
    return [
        KnowledgeSourceSuggestion(embedding_id=7, owner_id=BOB_ID, owner_name="Bob"),
        KnowledgeSourceSuggestion(embedding_id=8, owner_id=BOB_ID, owner_name="Bob"),
        KnowledgeSourceSuggestion(embedding_id=9, owner_id=CAROL_ID, owner_name="Carol"),
    ]


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.mark.asyncio
async def test_stub_answers_from_sources(sample_sources: list[KnowledgeSource]) -> None:
    """Test that the stub lists the content of every readable source."""
    answer = await DeterministicStubClient().compose_answer(
        question="What is Q3 pricing?", sources=sample_sources, suggestions=[]
    )

    assert answer.source == "stub"
    assert answer.text.startswith("Here is what I found in your knowledge:")
    assert "- Q3 pricing goes up 20% for enterprise." in answer.text
    assert "- Discounts need VP approval." in answer.text


@pytest.mark.asyncio
async def test_stub_offers_to_ask_suggested_colleagues(
    sample_suggestions: list[KnowledgeSourceSuggestion],
) -> None:
    """Test that the stub names each suggested owner once and asks for confirmation."""
    answer = await DeterministicStubClient().compose_answer(
        question="What is Q3 pricing?", sources=[], suggestions=sample_suggestions
    )

    assert answer.text == (
        "I couldn't find this in your knowledge. Bob and Carol may know about this. "
        "Would you like me to ask them?"
    )


@pytest.mark.asyncio
async def test_stub_without_knowledge() -> None:
    """Test that the stub admits it has nothing."""
    answer = await DeterministicStubClient().compose_answer(
        question="Anything?", sources=[], suggestions=[]
    )

    assert answer.text == "I don't have information about that yet."


@pytest.mark.asyncio
async def test_stub_prefers_sources_over_suggestions(
    sample_sources: list[KnowledgeSource],
    sample_suggestions: list[KnowledgeSourceSuggestion],
) -> None:
    """Test that readable knowledge wins over suggestions."""
    answer = await DeterministicStubClient().compose_answer(
        question="Q3?", sources=sample_sources, suggestions=sample_suggestions
    )

    assert "may know about this" not in answer.text


def test_openai_context_never_carries_suggestion_content(
    sample_sources: list[KnowledgeSource],
    sample_suggestions: list[KnowledgeSourceSuggestion],
) -> None:
    """Test that the model context holds source content but only suggestion names."""
    client = OpenAIClient(api_key="test_key")

    context = client._build_context("What is Q3 pricing?", sample_sources, sample_suggestions)

    assert "## Question\nWhat is Q3 pricing?" in context
    assert "- (own, Alice) Q3 pricing goes up 20% for enterprise." in context
    assert "- (shared, Bob) Discounts need VP approval." in context
    assert "## Colleagues who may know\n- Bob\n- Carol" in context


def test_openai_context_marks_empty_sections() -> None:
    client = OpenAIClient(api_key="test_key")

    context = client._build_context("Q?", [], [])

    assert context.count("- None") == 2


@pytest.mark.asyncio
async def test_openai_client_returns_completion(sample_sources: list[KnowledgeSource]) -> None:
    """Test that OpenAIClient calls the API and returns its answer (mocked)."""
    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(
        return_value=_completion("Pricing rises 20% in Q3.")
    )

    client = OpenAIClient(api_key="test_key")
    client.client = mock_openai_client

    answer = await client.compose_answer(question="Q3?", sources=sample_sources, suggestions=[])

    mock_openai_client.chat.completions.create.assert_called_once()
    assert answer.text == "Pricing rises 20% in Q3."
    assert answer.source == "openai"


@pytest.mark.asyncio
async def test_openai_client_falls_back_to_stub_on_error(
    sample_suggestions: list[KnowledgeSourceSuggestion],
) -> None:
    """Test that OpenAIClient falls back to stub when API call fails."""
    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(side_effect=Exception("API error"))

    client = OpenAIClient(api_key="test_key")
    client.client = mock_openai_client

    answer = await client.compose_answer(
        question="Q3?", sources=[], suggestions=sample_suggestions
    )

    assert answer.source == "stub"
    assert "Bob and Carol may know about this" in answer.text


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_openai_client_handles_empty_response(content: str | None) -> None:
    """Test that OpenAIClient falls back to stub when API returns empty content."""
    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(return_value=_completion(content))

    client = OpenAIClient(api_key="test_key")
    client.client = mock_openai_client

    with patch("knowshare.app.llm.client.logger") as mock_logger:
        answer = await client.compose_answer(question="Q3?", sources=[], suggestions=[])

        mock_logger.warning.assert_called_with(
            "OpenAI returned empty response, using deterministic stub fallback"
        )

    assert answer.source == "stub"
    assert answer.text == "I don't have information about that yet."


@pytest.mark.asyncio
async def test_openai_client_truncates_oversized_answer() -> None:
    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(
        return_value=_completion("x" * (MAX_ANSWER_CHARS + 500))
    )

    client = OpenAIClient(api_key="test_key")
    client.client = mock_openai_client

    answer = await client.compose_answer(question="Q3?", sources=[], suggestions=[])

    assert answer.text.endswith("[Truncated]")
    assert answer.text.startswith("x" * MAX_ANSWER_CHARS)
    assert answer.source == "openai"


def test_get_answer_composer_returns_stub_when_no_api_key() -> None:
    """Test that the factory returns the stub when no API key is configured."""
    settings = Settings(openai_api_key=None)

    assert isinstance(get_answer_composer(settings), DeterministicStubClient)


def test_get_answer_composer_returns_stub_for_blank_key() -> None:
    settings = Settings(openai_api_key=SecretStr(""))

    assert isinstance(get_answer_composer(settings), DeterministicStubClient)


def test_get_answer_composer_returns_openai_when_api_key_present() -> None:
    """Test that the factory returns the OpenAI client when a key is present."""
    settings = Settings(openai_api_key=SecretStr("test_key"), chat_model="gpt-4o-mini")

    composer = get_answer_composer(settings)

    assert isinstance(composer, OpenAIClient)
    assert composer.model == "gpt-4o-mini"
