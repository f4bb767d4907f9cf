"""Unit tests for the vector store and cosine similarity"""

import math

import pytest

from autodocops.models.artifact import Artifact, ArtifactType, SourceType
from autodocops.models.project import Language, Project, ProjectStatus, ProjectType
from autodocops.services.vector_store import VectorStore, cosine_similarity


def _artifact(artifact_type: ArtifactType, content: str, project_id: str = "p1") -> Artifact:
    return Artifact(
        content=content,
        artifact_type=artifact_type,
        language=Language.ENGLISH,
        project_id=project_id,
        cache_key="0" * 64,
    )


class TestCosineSimilarity:
    """Test the similarity function"""

    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [3.0, 1.0, 0.5]
        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_result_within_bounds(self):
        value = cosine_similarity([1e-3, 2e-3, 3e-3], [1e-3, 2e-3, 3e-3])
        assert -1.0 <= value <= 1.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])


class TestProjects:
    """Test project persistence"""

    @pytest.mark.asyncio
    async def test_save_and_get_project(self, vector_store):
        project = Project(name="Shop", type=ProjectType.HYBRID, created_by="ana")
        project.mark_configured()

        await vector_store.save_project(project)
        loaded = await vector_store.get_project(project.id)

        assert loaded.id == project.id
        assert loaded.status == ProjectStatus.CONFIGURED
        assert await vector_store.get_project("missing") is None
        assert [p.name for p in await vector_store.list_projects()] == ["Shop"]

    @pytest.mark.asyncio
    async def test_health_check(self, vector_store):
        assert await vector_store.health_check()

    @pytest.mark.asyncio
    async def test_health_check_before_initialize(self):
        assert not await VectorStore(":memory:").health_check()

    @pytest.mark.asyncio
    async def test_file_database_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "data" / "docs.db")
        first = VectorStore(path)
        await first.initialize()
        await first.save_project(Project(name="Ledger", type=ProjectType.DATABASE))

        second = VectorStore(path)
        await second.initialize()

        assert [p.name for p in await second.list_projects()] == ["Ledger"]


class TestDocuments:
    """Test document persistence and supersession"""

    @pytest.mark.asyncio
    async def test_save_document(self, vector_store):
        artifact = _artifact(ArtifactType.ER_DIAGRAM, "erDiagram")

        document = await vector_store.save_document(
            artifact, [1.0, 0.0], "fake-embedding", {"database_name": "Shop"}
        )

        assert document.id == artifact.id
        assert document.source_type == SourceType.DATABASE
        stored = await vector_store.list_documents("p1")
        assert [d.id for d in stored] == [artifact.id]
        assert stored[0].metadata == {"database_name": "Shop"}

    @pytest.mark.asyncio
    async def test_new_version_deactivates_previous(self, vector_store):
        first = _artifact(ArtifactType.OPENAPI_SPEC, "v1")
        second = _artifact(ArtifactType.OPENAPI_SPEC, "v2")
        other_type = _artifact(ArtifactType.USAGE_GUIDE, "guide")

        await vector_store.save_document(first, [1.0, 0.0], "fake-embedding")
        await vector_store.save_document(other_type, [0.0, 1.0], "fake-embedding")
        await vector_store.save_document(second, [1.0, 0.0], "fake-embedding")

        active = await vector_store.list_documents("p1")
        assert {d.content for d in active} == {"v2", "guide"}
        everything = await vector_store.list_documents("p1", include_inactive=True)
        assert len(everything) == 3
        assert await vector_store.count_documents() == 2
        assert await vector_store.count_documents(active_only=False) == 3

    @pytest.mark.asyncio
    async def test_other_projects_unaffected(self, vector_store):
        await vector_store.save_document(
            _artifact(ArtifactType.OPENAPI_SPEC, "a", "p1"), [1.0], "fake-embedding"
        )
        await vector_store.save_document(
            _artifact(ArtifactType.OPENAPI_SPEC, "b", "p2"), [1.0], "fake-embedding"
        )

        assert await vector_store.count_documents() == 2

    @pytest.mark.asyncio
    async def test_rejects_unowned_artifact_and_empty_embedding(self, vector_store):
        with pytest.raises(ValueError):
            await vector_store.save_document(
                _artifact(ArtifactType.OPENAPI_SPEC, "x", None), [1.0], "fake-embedding"
            )
        with pytest.raises(ValueError):
            await vector_store.save_document(
                _artifact(ArtifactType.OPENAPI_SPEC, "x"), [], "fake-embedding"
            )


class TestSemanticSearch:
    """Test ranking, thresholds and limits"""

    @pytest.fixture
    async def populated(self, vector_store):
        docs = [
            (ArtifactType.OPENAPI_SPEC, "exact", [1.0, 0.0], "p1"),
            (ArtifactType.SCHEMA_DOCUMENTATION, "diagonal", [1.0, 1.0], "p1"),
            (ArtifactType.USAGE_GUIDE, "orthogonal", [0.0, 1.0], "p1"),
            (ArtifactType.DATA_DICTIONARY, "close", [1.0, 0.2], "p2"),
        ]
        for artifact_type, content, vector, project_id in docs:
            await vector_store.save_document(
                _artifact(artifact_type, content, project_id), vector, "fake-embedding"
            )
        return vector_store

    @pytest.mark.asyncio
    async def test_sorted_and_above_threshold(self, populated):
        matches = await populated.semantic_search([1.0, 0.0], threshold=0.5, limit=10)

        assert [m.content for m in matches] == ["exact", "close", "diagonal"]
        similarities = [m.similarity for m in matches]
        assert similarities == sorted(similarities, reverse=True)
        assert all(s > 0.5 for s in similarities)
        assert matches[0].similarity == pytest.approx(1.0)
        assert matches[2].similarity == pytest.approx(1 / math.sqrt(2), rel=1e-6)
        assert matches[2].type == SourceType.DATABASE

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, populated):
        matches = await populated.semantic_search([1.0, 0.0], threshold=0.0, limit=10)

        assert "orthogonal" not in {m.content for m in matches}

    @pytest.mark.asyncio
    async def test_limit(self, populated):
        matches = await populated.semantic_search([1.0, 0.0], threshold=0.0, limit=2)

        assert [m.content for m in matches] == ["exact", "close"]

    @pytest.mark.asyncio
    async def test_project_filter(self, populated):
        matches = await populated.semantic_search(
            [1.0, 0.0], threshold=0.0, limit=10, project_id="p2"
        )

        assert [m.content for m in matches] == ["close"]
        assert matches[0].project_id == "p2"

    @pytest.mark.asyncio
    async def test_sql_ranking_agrees_with_cosine_similarity(self, vector_store):
        vectors = {
            "a": [0.9, 0.1, 0.3],
            "b": [-0.2, 0.8, 0.5],
            "c": [0.4, 0.4, 0.4],
            "d": [1.0, -1.0, 0.0],
            "e": [0.05, 0.9, -0.7],
        }
        types = [
            ArtifactType.OPENAPI_SPEC,
            ArtifactType.USAGE_GUIDE,
            ArtifactType.ER_DIAGRAM,
            ArtifactType.DATA_DICTIONARY,
            ArtifactType.TYPESCRIPT_SDK,
        ]
        for artifact_type, (content, vector) in zip(types, vectors.items(), strict=True):
            await vector_store.save_document(
                _artifact(artifact_type, content), vector, "fake-embedding"
            )
        query = [0.7, 0.2, 0.1]

        matches = await vector_store.semantic_search(query, threshold=-0.99, limit=10)

        expected = sorted(
            vectors, key=lambda name: cosine_similarity(query, vectors[name]), reverse=True
        )
        assert [m.content for m in matches] == expected
        for match in matches:
            assert match.similarity == pytest.approx(
                cosine_similarity(query, vectors[match.content]), abs=1e-5
            )

    @pytest.mark.asyncio
    async def test_zero_limit_returns_nothing(self, populated):
        assert await populated.semantic_search([1.0, 0.0], threshold=0.0, limit=0) == []

    @pytest.mark.asyncio
    async def test_negative_limit_rejected(self, populated):
        with pytest.raises(ValueError):
            await populated.semantic_search([1.0, 0.0], limit=-1)

    @pytest.mark.asyncio
    async def test_inactive_documents_not_returned(self, populated):
        await populated.save_document(
            _artifact(ArtifactType.OPENAPI_SPEC, "replacement", "p1"), [0.0, 1.0], "fake-embedding"
        )

        matches = await populated.semantic_search([1.0, 0.0], threshold=0.5, limit=10)

        assert "exact" not in {m.content for m in matches}

    @pytest.mark.asyncio
    async def test_other_dimensions_skipped(self, populated):
        matches = await populated.semantic_search([1.0, 0.0, 0.0], threshold=0.0, limit=10)

        assert matches == []

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, populated):
        with pytest.raises(ValueError):
            await populated.semantic_search([])
