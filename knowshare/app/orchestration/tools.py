"""Tools the conversational model may call, with structured input and output.

The registry is the only seam between the orchestrator and the core: a tool
call validates its arguments against the input model, runs, and returns the
output model. Domain failures of ``requestKnowledge`` come back as an
``error`` field the model can relay, never as an exception.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.config import Settings
from knowshare.app.db.context import RequestContext
from knowshare.app.embedding.gateway import EmbeddingGateway
from knowshare.app.errors import KnowledgeShareError
from knowshare.app.knowledge.access_requests import AccessRequestCoordinator
from knowshare.app.knowledge.retriever import TieredRetriever
from knowshare.app.models.common import RetrievalBand, TierLimits
from knowshare.app.models.tools import (
    GetInformationInput,
    RequestKnowledgeInput,
    RequestKnowledgeOutput,
    RetrievalToolOutput,
)
from knowshare.app.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

GET_INFORMATION = "getInformation"
REQUEST_KNOWLEDGE = "requestKnowledge"

ToolExecutor = Callable[[RequestContext, Any], Awaitable[BaseModel]]


class UnknownToolError(KeyError):
    """No tool registered under the requested name."""


@dataclass(frozen=True)
class ToolSpec:
    """One callable tool: contract plus executor."""

    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    executor: ToolExecutor

    def json_schema(self) -> dict[str, Any]:
        """Function-calling definition advertised to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_model.model_json_schema(by_alias=True),
            },
        }


class ToolRegistry:
    """Name -> tool lookup."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def names(self) -> list[str]:
        return sorted(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [self._tools[name].json_schema() for name in self.names()]

    async def invoke(
        self, name: str, ctx: RequestContext, arguments: dict[str, Any] | BaseModel
    ) -> BaseModel:
        """Validate arguments and run a tool.

        Args:
            name: Registered tool name
            ctx: Caller identity
            arguments: Raw (camelCase or snake_case) arguments or a ready input model

        Returns:
            The tool's output model

        Raises:
            UnknownToolError: If no tool has that name
            pydantic.ValidationError: If the arguments do not match the input model
        """
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolError(name)

        if isinstance(arguments, spec.input_model):
            tool_input = arguments
        elif isinstance(arguments, BaseModel):
            tool_input = spec.input_model.model_validate(arguments.model_dump())
        else:
            tool_input = spec.input_model.model_validate(arguments)

        started = time.perf_counter()
        output = await spec.executor(ctx, tool_input)
        duration_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"Tool {name} finished in {duration_ms}ms",
            extra={
                "structured": {
                    "tool": name,
                    "user_id": str(ctx.user_id),
                    "duration_ms": duration_ms,
                }
            },
        )
        return output


def build_tool_registry(
    session: AsyncSession,
    gateway: EmbeddingGateway,
    notifier: Notifier,
    settings: Settings,
) -> ToolRegistry:
    """Register the retrieval and access-request tools over one session."""
    retriever = TieredRetriever(
        session,
        gateway,
        band=RetrievalBand(
            lower_bound=settings.retrieval_lower_bound,
            upper_bound=settings.retrieval_upper_bound,
        ),
        limits=TierLimits(
            own=settings.retrieval_own_limit,
            shared=settings.retrieval_shared_limit,
            suggestions=settings.retrieval_suggestion_limit,
        ),
        embedding_timeout_ms=settings.embedding_timeout_ms,
    )
    coordinator = AccessRequestCoordinator(
        session, notifier, preview_chars=settings.chunk_preview_chars
    )

    async def get_information(
        ctx: RequestContext, tool_input: GetInformationInput
    ) -> RetrievalToolOutput:
        return await retriever.retrieve(tool_input.question, ctx)

    async def request_knowledge(
        ctx: RequestContext, tool_input: RequestKnowledgeInput
    ) -> RequestKnowledgeOutput:
        try:
            record = await coordinator.create(
                ctx.user_id,
                tool_input.embedding_id,
                tool_input.question,
                conversation_id=tool_input.conversation_id,
            )
        except KnowledgeShareError as e:
            return RequestKnowledgeOutput(success=False, error=e.message)

        owner = tool_input.owner_name or "the owner"
        return RequestKnowledgeOutput(
            success=True,
            request_id=record.request_id,
            message=(
                f"Knowledge request sent to {owner}. They will be notified and can "
                "choose to share their knowledge with you."
            ),
        )

    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name=GET_INFORMATION,
            description="Get information from your knowledge base to answer questions.",
            input_model=GetInformationInput,
            output_model=RetrievalToolOutput,
            executor=get_information,
        )
    )
    registry.register(
        ToolSpec(
            name=REQUEST_KNOWLEDGE,
            description=(
                "Request access to knowledge from another organization member. "
                "Only call this after the user explicitly agrees."
            ),
            input_model=RequestKnowledgeInput,
            output_model=RequestKnowledgeOutput,
            executor=request_knowledge,
        )
    )
    return registry
