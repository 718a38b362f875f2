"""Decision embeddings: generation, storage and staleness detection.

Vectors are computed lazily and cached on the decision row together with the
model name and dimensionality that produced them. Editing a decision does not
refresh its vector; callers re-embed explicitly.
"""

from typing import List

from openai import OpenAIError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import NotFound, ServiceUnavailable
from models.records import Decision
from models.schemas import EmbedProjectResult
from services.llm_providers.base import BaseEmbeddingProvider
from utils.logging import get_logger
from utils.vectors import pack_vector, unpack_vector

logger = get_logger(__name__)


# Failures of the provider call that are reported as ServiceUnavailable
PROVIDER_EXCEPTIONS = (
    OpenAIError,
    ConnectionError,
    TimeoutError,
    OSError,
)


def decision_text(decision: Decision) -> str:
    """Text that represents a decision in embedding space."""
    parts = [
        decision.title,
        decision.description,
        decision.reason,
        decision.consequences,
    ]
    return "\n\n".join(part for part in parts if part and part.strip())


class EmbeddingService:
    """Generate and store decision embeddings through an injected provider."""

    def __init__(self, provider: BaseEmbeddingProvider):
        self.provider = provider

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    async def embed_text(self, text: str, input_type: str = "passage") -> List[float]:
        """
        Generate an embedding for a single text.

        Args:
            text: The text to embed
            input_type: "query" for search queries, "passage" for documents

        Returns:
            The embedding vector

        Raises:
            ServiceUnavailable: If the provider call fails or returns a vector
                of the wrong dimensionality
        """
        try:
            vectors = await self.provider.embed([text], input_type=input_type)
        except PROVIDER_EXCEPTIONS as e:
            logger.error(f"Embedding request to {self.model_name} failed: {e}")
            raise ServiceUnavailable(
                "Embedding provider request failed",
                details={"model": self.model_name, "reason": type(e).__name__},
            ) from e

        if not vectors:
            raise ServiceUnavailable(
                "Embedding provider returned no vector",
                details={"model": self.model_name},
            )

        vector = [float(x) for x in vectors[0]]
        if len(vector) != self.dimensions:
            raise ServiceUnavailable(
                "Embedding provider returned a vector of unexpected size",
                details={
                    "model": self.model_name,
                    "expected": self.dimensions,
                    "received": len(vector),
                },
            )
        return vector

    async def embed_query(self, query: str) -> List[float]:
        return await self.embed_text(query, input_type="query")

    def is_current(self, decision: Decision) -> bool:
        """True if the stored vector was produced by the configured model."""
        return (
            decision.embedding is not None
            and decision.embedding_model == self.model_name
            and decision.embedding_dimensions == self.dimensions
        )

    def stored_vector(self, decision: Decision) -> List[float] | None:
        """Decode a decision's vector, or None if it is missing or stale."""
        if not self.is_current(decision):
            return None
        vector = unpack_vector(decision.embedding)
        if len(vector) != self.dimensions:
            logger.warning(
                f"Decision {decision.id} embedding has {len(vector)} values, "
                f"expected {self.dimensions}; ignoring it"
            )
            return None
        return vector

    async def embed_decision(
        self, session: AsyncSession, decision: Decision
    ) -> List[float] | None:
        """Compute a decision's vector and store it.

        The vector, model and dimensions are written together only after the
        provider call succeeds. Decisions with no text are left untouched.

        Returns:
            The stored vector, or None if the decision has no text
        """
        text = decision_text(decision)
        if not text:
            return None

        vector = await self.embed_text(text, input_type="passage")

        decision.embedding = pack_vector(vector)
        decision.embedding_model = self.model_name
        decision.embedding_dimensions = len(vector)
        await session.commit()

        logger.debug(f"Embedded decision {decision.id} with {self.model_name}")
        return vector

    async def reembed_decision(self, session: AsyncSession, decision_id: int) -> List[float] | None:
        """Explicitly refresh one decision's vector."""
        decision = await session.get(Decision, decision_id)
        if decision is None:
            raise NotFound("Decision", decision_id)
        return await self.embed_decision(session, decision)

    async def embed_project_decisions(
        self, session: AsyncSession, project_id: int, force: bool = False
    ) -> EmbedProjectResult:
        """Embed every decision in a project lacking a current vector.

        Args:
            project_id: Project whose decisions are embedded
            force: Re-embed all decisions, not just missing or stale ones

        Returns:
            How many decisions needed a vector and how many got one
        """
        result = await session.execute(
            select(Decision)
            .where(Decision.project_id == project_id)
            .order_by(Decision.id)
        )
        decisions = [
            d for d in result.scalars().all() if force or not self.is_current(d)
        ]

        embedded = 0
        for decision in decisions:
            try:
                if await self.embed_decision(session, decision) is not None:
                    embedded += 1
            except ServiceUnavailable as e:
                logger.warning(f"Failed to embed decision {decision.id}: {e.message}")

        logger.info(
            f"Embedded {embedded} of {len(decisions)} decisions in project {project_id}"
        )
        return EmbedProjectResult(total=len(decisions), embedded=embedded)
