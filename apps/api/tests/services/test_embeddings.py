"""Unit tests for EmbeddingService.

Tests:
- Single text embedding and provider failures
- Decision text composition
- Storing vectors with their model and dimensions
- Staleness detection
- Bulk project embedding
"""

import pytest
from openai import APIConnectionError

from models.errors import NotFound, ServiceUnavailable
from services.embeddings import EmbeddingService, decision_text
from tests.factories import DecisionFactory, ProjectFactory
from tests.mocks import MockEmbeddingProvider
from utils.vectors import unpack_vector

# ============================================================================
# embed_text
# ============================================================================


class TestEmbedText:
    async def test_returns_embedding_vector(self, embedding_service, mock_embedding_provider):
        mock_embedding_provider.set_embedding("hello", [0.5, 0.5, 0.0, 0.0])

        result = await embedding_service.embed_text("hello")

        assert result == [0.5, 0.5, 0.0, 0.0]

    async def test_default_input_type_is_passage(
        self, embedding_service, mock_embedding_provider
    ):
        await embedding_service.embed_text("hello")
        assert mock_embedding_provider.calls[-1]["input_type"] == "passage"

    async def test_query_input_type(self, embedding_service, mock_embedding_provider):
        await embedding_service.embed_query("hello")
        assert mock_embedding_provider.calls[-1]["input_type"] == "query"

    @pytest.mark.parametrize(
        "error",
        [ConnectionError("refused"), TimeoutError("slow"), OSError("network")],
    )
    async def test_provider_failure_raises_service_unavailable(
        self, embedding_service, mock_embedding_provider, error
    ):
        mock_embedding_provider.error = error

        with pytest.raises(ServiceUnavailable) as exc_info:
            await embedding_service.embed_text("hello")

        assert exc_info.value.details["model"] == "mock-embed"
        assert exc_info.value.details["reason"] == type(error).__name__
        assert exc_info.value.__cause__ is error

    async def test_openai_error_raises_service_unavailable(
        self, embedding_service, mock_embedding_provider
    ):
        mock_embedding_provider.error = APIConnectionError(request=None)

        with pytest.raises(ServiceUnavailable):
            await embedding_service.embed_text("hello")

    async def test_wrong_dimensions_raise(self, embedding_service, mock_embedding_provider):
        mock_embedding_provider.set_embedding("hello", [1.0, 0.0])

        with pytest.raises(ServiceUnavailable) as exc_info:
            await embedding_service.embed_text("hello")

        assert exc_info.value.details["expected"] == 4
        assert exc_info.value.details["received"] == 2

    async def test_empty_provider_response_raises(self, embedding_service, mock_embedding_provider):
        async def no_vectors(texts, input_type="passage"):
            return []

        mock_embedding_provider.embed = no_vectors

        with pytest.raises(ServiceUnavailable):
            await embedding_service.embed_text("hello")


# ============================================================================
# decision_text
# ============================================================================


class TestDecisionText:
    async def test_combines_decision_fields(self, db_session, project):
        decision = await DecisionFactory.create(
            db_session,
            project,
            title="Use PostgreSQL",
            description="Primary datastore",
            reason="JSONB support",
            consequences="Need a DBA",
        )

        assert decision_text(decision) == (
            "Use PostgreSQL\n\nPrimary datastore\n\nJSONB support\n\nNeed a DBA"
        )

    async def test_skips_missing_fields(self, db_session, project):
        decision = await DecisionFactory.create(
            db_session, project, title="Use PostgreSQL", reason="  "
        )

        assert decision_text(decision) == "Use PostgreSQL"


# ============================================================================
# Storage and staleness
# ============================================================================


class TestEmbedDecision:
    async def test_stores_vector_model_and_dimensions(
        self, db_session, project, embedding_service, mock_embedding_provider
    ):
        decision = await DecisionFactory.create(db_session, project, title="Use PostgreSQL")
        mock_embedding_provider.set_embedding("Use PostgreSQL", [0.25, 0.5, 0.0, 1.0])

        vector = await embedding_service.embed_decision(db_session, decision)

        assert vector == [0.25, 0.5, 0.0, 1.0]
        assert unpack_vector(decision.embedding) == [0.25, 0.5, 0.0, 1.0]
        assert decision.embedding_model == "mock-embed"
        assert decision.embedding_dimensions == 4
        assert embedding_service.is_current(decision)

    async def test_failure_leaves_decision_untouched(
        self, db_session, project, embedding_service, mock_embedding_provider
    ):
        decision = await DecisionFactory.create(db_session, project, title="Use PostgreSQL")
        mock_embedding_provider.error = ConnectionError("down")

        with pytest.raises(ServiceUnavailable):
            await embedding_service.embed_decision(db_session, decision)

        assert decision.embedding is None
        assert decision.embedding_model is None

    async def test_decision_without_text_is_skipped(
        self, db_session, project, embedding_service, mock_embedding_provider
    ):
        decision = await DecisionFactory.create(db_session, project, title="Placeholder")
        decision.title = ""

        assert await embedding_service.embed_decision(db_session, decision) is None
        assert mock_embedding_provider.calls == []

    async def test_reembed_unknown_decision(self, db_session, embedding_service):
        with pytest.raises(NotFound):
            await embedding_service.reembed_decision(db_session, 12345)

    async def test_reembed_refreshes_edited_decision(
        self, db_session, project, embedding_service, mock_embedding_provider
    ):
        decision = await DecisionFactory.create(
            db_session, project, title="Use MySQL", embedding=[1.0, 0.0, 0.0, 0.0]
        )
        decision.title = "Use PostgreSQL"
        mock_embedding_provider.set_embedding("Use PostgreSQL", [0.0, 1.0, 0.0, 0.0])

        await embedding_service.reembed_decision(db_session, decision.id)

        assert unpack_vector(decision.embedding) == [0.0, 1.0, 0.0, 0.0]


class TestStaleness:
    async def test_other_model_is_stale(self, db_session, project, embedding_service):
        decision = await DecisionFactory.create(
            db_session,
            project,
            embedding=[1.0, 0.0, 0.0, 0.0],
            embedding_model="text-embedding-ada-002",
        )

        assert not embedding_service.is_current(decision)
        assert embedding_service.stored_vector(decision) is None

    async def test_other_dimensions_are_stale(self, db_session, project, embedding_service):
        decision = await DecisionFactory.create(
            db_session, project, embedding=[1.0, 0.0, 0.0, 0.0, 0.0, 0.0]
        )

        assert embedding_service.stored_vector(decision) is None

    async def test_missing_embedding_is_stale(self, db_session, project, embedding_service):
        decision = await DecisionFactory.create(db_session, project)

        assert not embedding_service.is_current(decision)

    async def test_current_vector_is_decoded(self, db_session, project, embedding_service):
        decision = await DecisionFactory.create(
            db_session, project, embedding=[0.5, 0.25, 0.0, 1.0]
        )

        assert embedding_service.stored_vector(decision) == [0.5, 0.25, 0.0, 1.0]


# ============================================================================
# Bulk embedding
# ============================================================================


class TestEmbedProjectDecisions:
    async def test_embeds_missing_and_stale_only(
        self, db_session, project, embedding_service, mock_embedding_provider
    ):
        await DecisionFactory.create(db_session, project, title="Missing")
        await DecisionFactory.create(
            db_session,
            project,
            title="Stale",
            embedding=[1.0, 0.0, 0.0, 0.0],
            embedding_model="old-model",
        )
        await DecisionFactory.create(
            db_session, project, title="Current", embedding=[1.0, 0.0, 0.0, 0.0]
        )

        result = await embedding_service.embed_project_decisions(db_session, project.id)

        assert result.total == 2
        assert result.embedded == 2
        embedded_texts = [call["texts"][0] for call in mock_embedding_provider.calls]
        assert embedded_texts == ["Missing", "Stale"]

    async def test_force_embeds_everything(
        self, db_session, project, embedding_service
    ):
        await DecisionFactory.create(
            db_session, project, title="Current", embedding=[1.0, 0.0, 0.0, 0.0]
        )

        result = await embedding_service.embed_project_decisions(
            db_session, project.id, force=True
        )

        assert result.total == 1
        assert result.embedded == 1

    async def test_continues_past_failures(self, db_session, project):
        class FlakyProvider(MockEmbeddingProvider):
            async def embed(self, texts, input_type="passage"):
                if texts[0] == "Broken":
                    raise ConnectionError("provider hiccup")
                return await super().embed(texts, input_type)

        service = EmbeddingService(FlakyProvider(dimensions=4))
        await DecisionFactory.create(db_session, project, title="Broken")
        ok = await DecisionFactory.create(db_session, project, title="Fine")

        result = await service.embed_project_decisions(db_session, project.id)

        assert result.total == 2
        assert result.embedded == 1
        assert service.is_current(ok)

    async def test_only_touches_requested_project(
        self, db_session, project, embedding_service
    ):
        other = await ProjectFactory.create(db_session, name="Other")
        untouched = await DecisionFactory.create(db_session, other, title="Elsewhere")

        result = await embedding_service.embed_project_decisions(db_session, project.id)

        assert result.total == 0
        assert untouched.embedding is None


class TestProperties:
    def test_dimensions(self, embedding_service):
        assert embedding_service.dimensions == 4

    def test_model_name(self, embedding_service):
        assert embedding_service.model_name == "mock-embed"
