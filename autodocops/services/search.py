"""Search service for semantic retrieval and question answering"""

import logging
import time

from autodocops.config import config
from autodocops.exceptions import AutoDocOpsError, ValidationError
from autodocops.models.artifact import ArtifactType
from autodocops.models.project import Language
from autodocops.models.query import SimilarityQuery
from autodocops.models.search_result import (
    ChatAnswer,
    QueryInfo,
    SemanticSearchOutput,
    SimilarityMatch,
)
from autodocops.services.artifact_generator import ArtifactGenerator
from autodocops.services.embedder import Embedder
from autodocops.services.telemetry import TelemetryService
from autodocops.services.vector_store import VectorStore

logger = logging.getLogger(__name__)

# Characters of each matched document quoted in the chat context
CONTEXT_EXCERPT_CHARS = 2000


class SearchService:
    """Handle semantic search queries and retrieval-backed chat"""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        generator: ArtifactGenerator | None = None,
        telemetry: TelemetryService | None = None,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.generator = generator
        self.telemetry = telemetry

    async def query(self, query: SimilarityQuery) -> SemanticSearchOutput:
        """
        Execute a semantic search

        Args:
            query: Query text or vector, threshold, limit and project filter

        Returns:
            SemanticSearchOutput: Ranked matches with query metadata
        """
        start_time = time.time()
        parameters = {
            "limit": query.limit,
            "threshold": query.threshold,
            "project_id": query.project_id,
        }

        try:
            vector = query.vector
            if vector is None:
                vector = await self.embedder.embed_text(query.text or "")

            results = await self.vector_store.semantic_search(
                vector,
                threshold=query.threshold,
                limit=query.limit,
                project_id=query.project_id,
            )
        except AutoDocOpsError as e:
            if self.telemetry is not None:
                self.telemetry.log_operation(
                    "semantic_search", parameters, error=e, text=query.text
                )
            raise

        query_time_ms = (time.time() - start_time) * 1000
        output = SemanticSearchOutput(
            results=results,
            query_info=QueryInfo(
                original_query=query.text or "<vector>",
                total_results=len(results),
                query_time_ms=query_time_ms,
            ),
        )

        if self.telemetry is not None:
            self.telemetry.log_operation(
                "semantic_search",
                parameters,
                response={
                    "results": [{"similarity": m.similarity} for m in results],
                    "duration_ms": query_time_ms,
                },
                text=query.text,
            )
        return output

    @staticmethod
    def build_context(matches: list[SimilarityMatch]) -> str:
        """Format matched documents as a context block for the chat prompt"""
        sections = []
        for match in matches:
            artifact_type = match.metadata.get("artifact_type", match.type.value)
            excerpt = match.content[:CONTEXT_EXCERPT_CHARS]
            sections.append(
                f"[{artifact_type} | similarity {match.similarity:.2f}]\n{excerpt}"
            )
        return "\n\n---\n\n".join(sections)

    async def answer_question(
        self,
        question: str,
        language: Language | str = Language.SPANISH,
        project_id: str | None = None,
        context: str | None = None,
        threshold: float | None = None,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> ChatAnswer:
        """
        Answer a question grounded on the indexed documentation

        The question is embedded and matched against the corpus. Matches
        become the context; caller-supplied context is used when nothing
        matches.

        Raises:
            ValidationError: Empty question, or no context available at all
        """
        if self.generator is None:
            raise RuntimeError("SearchService was created without an ArtifactGenerator")
        if not question or not question.strip():
            raise ValidationError("Question must not be empty")

        matches: list[SimilarityMatch] = []
        if project_id is not None or not context:
            search = await self.query(
                SimilarityQuery(
                    text=question,
                    threshold=config.search_threshold if threshold is None else threshold,
                    limit=limit or config.search_limit,
                    project_id=project_id,
                )
            )
            matches = search.results

        retrieved = self.build_context(matches)
        final_context = retrieved or (context or "").strip()
        if not final_context:
            raise ValidationError("No documentation context available to answer the question")

        artifact = await self.generator.generate(
            ArtifactType.CHAT_ANSWER,
            language,
            source_text=question,
            extra_params={"question": question.strip(), "context": final_context},
            project_id=project_id,
            timeout=timeout,
        )
        logger.info(f"Answered question with {len(matches)} retrieved document(s)")

        return ChatAnswer(
            answer=artifact.content,
            context=final_context,
            matches=matches,
            from_cache=artifact.from_cache,
        )
