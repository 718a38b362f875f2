"""Decision search: semantic ranking with a substring fallback.

Semantic mode embeds the query, scores every current decision embedding in the
project by cosine similarity, drops scores at or below the relevance floor and
returns the top K. When no embedding provider is configured the service falls
back to a case-insensitive substring match scored 1.0 and ordered by recency.
A provider failure while semantic search is configured is surfaced, never
silently downgraded to text search.
"""

import re
from typing import Iterable, Optional, Sequence, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import InvalidInput, NotFound
from models.records import Decision, Project
from models.schemas import DecisionOut, SearchResponse, SearchResult, SearchStatus
from services.embeddings import EmbeddingService
from services.llm_providers.base import BaseLLMProvider
from utils.logging import LogContext, get_logger
from utils.vectors import cosine_similarity

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SIMILARITY_THRESHOLD = 0.3
DEFAULT_LIMIT = 5
SNIPPET_RADIUS = 60

ANSWER_SYSTEM_PROMPT = """You are a helpful assistant that answers questions about technical decisions made in a software project.
Use the provided decision context to answer the user's question.
Be concise but informative. If the context doesn't contain relevant information, say so.
Answer in the same language as the question."""


def rank_decisions(
    query_embedding: Sequence[float],
    candidates: Iterable[tuple[T, Sequence[float]]],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    limit: int = DEFAULT_LIMIT,
) -> list[tuple[T, float]]:
    """Rank candidates by cosine similarity to the query.

    Args:
        query_embedding: Vector of the search query
        candidates: (item, vector) pairs in storage order
        threshold: Scores at or below this value are discarded
        limit: Maximum number of results

    Returns:
        (item, score) pairs, highest score first. Equal scores keep their
        storage order.
    """
    scored = []
    for item, vector in candidates:
        score = cosine_similarity(query_embedding, vector)
        if score > threshold:
            scored.append((item, min(score, 1.0)))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]


def build_snippet(decision: Decision, query: str, radius: int = SNIPPET_RADIUS) -> Optional[str]:
    """Excerpt around the first occurrence of the query (or one of its words).

    The match is wrapped in ``**``. Returns None when no field contains it.
    """
    fields = [decision.title, decision.description, decision.reason, decision.consequences]
    needles = [query.strip()] + [w for w in query.split() if len(w) > 2]

    for needle in needles:
        pattern = re.compile(re.escape(needle), re.IGNORECASE)
        for text in fields:
            if not text:
                continue
            match = pattern.search(text)
            if match is None:
                continue
            start = max(match.start() - radius, 0)
            end = min(match.end() + radius, len(text))
            snippet = (
                text[start : match.start()]
                + f"**{match.group(0)}**"
                + text[match.end() : end]
            )
            snippet = " ".join(snippet.split())
            if start > 0:
                snippet = "..." + snippet
            if end < len(text):
                snippet = snippet + "..."
            return snippet
    return None


def _answer_context(results: list[SearchResult]) -> str:
    blocks = []
    for i, result in enumerate(results, start=1):
        d = result.decision
        lines = [f"Decision {i}: {d.title}"]
        if d.description:
            lines.append(d.description)
        if d.reason:
            lines.append(f"Reason: {d.reason}")
        if d.consequences:
            lines.append(f"Consequences: {d.consequences}")
        blocks.append("\n".join(lines))
    return "\n---\n".join(blocks)


class DecisionSearchService:
    """Answer free-text questions over one project's decisions.

    Both providers are optional. Without an embedding service the search runs
    in text mode; without a text provider no answer is generated.
    """

    def __init__(
        self,
        session: AsyncSession,
        embeddings: EmbeddingService | None = None,
        llm: BaseLLMProvider | None = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        default_limit: int = DEFAULT_LIMIT,
        text_search_limit: int | None = None,
        answer_temperature: float = 0.5,
        answer_max_tokens: int = 500,
    ):
        self.session = session
        self.embeddings = embeddings
        self.llm = llm
        self.similarity_threshold = similarity_threshold
        self.default_limit = default_limit
        self.text_search_limit = text_search_limit
        self.answer_temperature = answer_temperature
        self.answer_max_tokens = answer_max_tokens

    def status(self) -> SearchStatus:
        return SearchStatus(
            ai_search_available=self.embeddings is not None,
            text_search_available=True,
            embedding_model=self.embeddings.model_name if self.embeddings else None,
        )

    async def search(
        self,
        project_id: int,
        query: str,
        limit: int | None = None,
    ) -> SearchResponse:
        """Search a project's decisions.

        Raises:
            InvalidInput: Missing project id, empty query or limit below 1
            NotFound: Project does not exist
            ServiceUnavailable: Embedding provider failed on the query
        """
        if project_id is None:
            raise InvalidInput("Project ID is required", details={"field": "project_id"})
        if not query or not query.strip():
            raise InvalidInput("Search query is required", details={"field": "query"})
        if limit is None:
            limit = self.default_limit
        if limit < 1:
            raise InvalidInput(
                "Result limit must be at least 1", details={"field": "limit"}
            )

        with LogContext(project_id=project_id):
            if await self.session.get(Project, project_id) is None:
                raise NotFound("Project", project_id)

            query = query.strip()
            if self.embeddings is None:
                return await self.text_search(project_id, query)

            return await self.semantic_search(project_id, query, limit)

    async def semantic_search(
        self, project_id: int, query: str, limit: int
    ) -> SearchResponse:
        query_embedding = await self.embeddings.embed_query(query)

        result = await self.session.execute(
            select(Decision)
            .where(
                Decision.project_id == project_id,
                Decision.embedding.is_not(None),
            )
            .order_by(Decision.id)
        )

        candidates = []
        stale = 0
        for decision in result.scalars().all():
            vector = self.embeddings.stored_vector(decision)
            if vector is None:
                stale += 1
                continue
            candidates.append((decision, vector))
        if stale:
            logger.warning(
                f"{stale} decision(s) in project {project_id} have embeddings from "
                f"another model and were skipped; re-embed the project to include them"
            )

        ranked = rank_decisions(
            query_embedding,
            candidates,
            threshold=self.similarity_threshold,
            limit=limit,
        )
        results = [
            SearchResult(
                decision=DecisionOut.model_validate(decision),
                score=score,
                snippet=build_snippet(decision, query),
            )
            for decision, score in ranked
        ]

        logger.info(
            f"Semantic search scored {len(candidates)} decisions, returning {len(results)}",
            extra={"result_count": len(results)},
        )

        answer = await self.generate_answer(query, results) if results else None
        return SearchResponse(results=results, answer=answer, mode="semantic")

    async def text_search(self, project_id: int, query: str) -> SearchResponse:
        """Case-insensitive substring match over the decision text fields."""
        stmt = (
            select(Decision)
            .where(
                Decision.project_id == project_id,
                or_(
                    Decision.title.icontains(query, autoescape=True),
                    Decision.description.icontains(query, autoescape=True),
                    Decision.reason.icontains(query, autoescape=True),
                    Decision.consequences.icontains(query, autoescape=True),
                ),
            )
            .order_by(Decision.created_at.desc(), Decision.id.desc())
        )
        if self.text_search_limit is not None:
            stmt = stmt.limit(self.text_search_limit)

        result = await self.session.execute(stmt)
        results = [
            SearchResult(
                decision=DecisionOut.model_validate(decision),
                score=1.0,
                snippet=build_snippet(decision, query),
            )
            for decision in result.scalars().all()
        ]
        logger.info(f"Text search returned {len(results)} decisions")
        return SearchResponse(results=results, answer=None, mode="text")

    async def generate_answer(
        self, query: str, results: list[SearchResult]
    ) -> Optional[str]:
        """Short answer grounded in the search results.

        Never raises: a missing provider or a failed call yields None.
        """
        if self.llm is None or not results:
            return None

        messages = [
            {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Context (relevant decisions):\n{_answer_context(results)}"
                    f"\n\nQuestion: {query}"
                ),
            },
        ]

        try:
            content, _ = await self.llm.generate(
                messages,
                temperature=self.answer_temperature,
                max_tokens=self.answer_max_tokens,
            )
        except Exception as e:
            logger.warning(f"Answer generation failed, returning results only: {e}")
            return None

        content = (content or "").strip()
        return content or None
