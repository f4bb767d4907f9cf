"""Runs the documentation pipeline for a project and drives its lifecycle"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from autodocops.exceptions import ValidationError
from autodocops.models.artifact import Artifact, ArtifactType, SourceType
from autodocops.models.metadata import ExtractionResult, SchemaMetadata, SourceKind
from autodocops.models.pipeline_result import PipelineResult
from autodocops.models.project import DocumentationConfig, Project, ProjectType
from autodocops.services.artifact_generator import ArtifactGenerator
from autodocops.services.embedder import Embedder
from autodocops.services.metadata_extractor import MetadataExtractor
from autodocops.services.vector_store import VectorStore

logger = logging.getLogger(__name__)

# Generated straight from the analyzed source
_SOURCE_ARTIFACTS: dict[ArtifactType, str] = {
    ArtifactType.OPENAPI_SPEC: "generate_openapi",
    ArtifactType.SCHEMA_DOCUMENTATION: "generate_schema_documentation",
    ArtifactType.ER_DIAGRAM: "generate_er_diagrams",
    ArtifactType.DATA_DICTIONARY: "generate_data_dictionary",
}

# Generated from the OpenAPI specification produced in the first phase
_SPEC_ARTIFACTS: dict[ArtifactType, str] = {
    ArtifactType.USAGE_GUIDE: "generate_usage_guides",
    ArtifactType.POSTMAN_COLLECTION: "generate_postman_collection",
    ArtifactType.TYPESCRIPT_SDK: "generate_typescript_sdk",
    ArtifactType.CSHARP_SDK: "generate_csharp_sdk",
}


def _applies(artifact_type: ArtifactType, project_type: ProjectType) -> bool:
    if project_type == ProjectType.HYBRID:
        return True
    if project_type == ProjectType.API:
        return artifact_type.source_type == SourceType.API
    return artifact_type.source_type == SourceType.DATABASE


def plan_artifacts(project: Project) -> list[ArtifactType]:
    """Artifact types enabled for a project, in generation order"""
    doc_config = project.documentation_config
    return [
        artifact_type
        for artifact_type, flag in {**_SOURCE_ARTIFACTS, **_SPEC_ARTIFACTS}.items()
        if getattr(doc_config, flag) and _applies(artifact_type, project.type)
    ]


def _extra_params(artifact_type: ArtifactType, doc_config: DocumentationConfig) -> dict[str, Any]:
    if artifact_type == ArtifactType.POSTMAN_COLLECTION:
        return {"base_url": doc_config.base_url}
    if artifact_type == ArtifactType.TYPESCRIPT_SDK:
        return {"package_name": doc_config.package_name}
    if artifact_type == ArtifactType.CSHARP_SDK:
        return {"namespace": doc_config.namespace}
    return {}


class PipelineOrchestrator:
    """Extract, generate, embed and index documentation for one project at a time"""

    def __init__(
        self,
        generator: ArtifactGenerator,
        embedder: Embedder,
        vector_store: VectorStore,
        extractor: MetadataExtractor | None = None,
    ):
        self.generator = generator
        self.embedder = embedder
        self.vector_store = vector_store
        self.extractor = extractor or MetadataExtractor()

    def _check_sources(
        self, project: Project, api_source: str | None, schema_source: str | None
    ) -> None:
        needs_api = project.type in (ProjectType.API, ProjectType.HYBRID)
        needs_schema = project.type in (ProjectType.DATABASE, ProjectType.HYBRID)
        if needs_api and not (api_source and api_source.strip()):
            raise ValidationError(f"Project type '{project.type.value}' requires API source")
        if needs_schema and not (schema_source and schema_source.strip()):
            raise ValidationError(f"Project type '{project.type.value}' requires schema source")

    def _search_metadata(
        self,
        project: Project,
        artifact: Artifact,
        schema: ExtractionResult | None,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "artifact_type": artifact.artifact_type.value,
            "language": artifact.language.value,
            "version": project.version,
        }
        if artifact.artifact_type.source_type == SourceType.API:
            metadata["api_name"] = project.name
            metadata["base_url"] = project.documentation_config.base_url
        else:
            schema_name = "dbo"
            tree = schema.tree if schema is not None else None
            if isinstance(tree, SchemaMetadata) and tree.tables:
                schema_name = tree.tables[0].schema_name
            metadata["database_name"] = project.name
            metadata["schema_name"] = schema_name
        return metadata

    async def _save(self, project: Project) -> None:
        await self.vector_store.save_project(project)

    async def run(
        self,
        project: Project,
        api_source: str | None = None,
        schema_source: str | None = None,
        updated_by: str | None = None,
        timeout: float | None = None,
    ) -> PipelineResult:
        """
        Run the full pipeline for a project

        Process:
        1. Validate sources and move the project to analyzing
        2. Extract metadata and mark the project analyzed
        3. Generate source artifacts concurrently, then the artifacts built
           from the OpenAPI specification
        4. Embed every artifact, then index each one in its own transaction
        5. Mark the project documentation_generated

        Any failure after step 1 moves the project to error and re-raises.

        Args:
            project: Project to document (must be configured or previously analyzed)
            api_source: C# source for api and hybrid projects
            schema_source: T-SQL DDL for database and hybrid projects
            updated_by: User recorded on each transition
            timeout: Per-artifact generation timeout in seconds

        Returns:
            PipelineResult: Artifacts, indexed document ids and warnings
        """
        start_time = datetime.now(UTC)
        self._check_sources(project, api_source, schema_source)

        project.begin_analysis(updated_by)
        await self._save(project)
        logger.info(f"Starting documentation pipeline for project {project.name} ({project.id})")

        try:
            result = await self._run(
                project, api_source, schema_source, updated_by, timeout, start_time
            )
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"Pipeline failed for project {project.id}: {e}", exc_info=True)
            project.mark_error(updated_by)
            await self._save(project)
            raise

        logger.info(
            f"Pipeline completed for {project.name}: {len(result.artifacts)} artifacts, "
            f"{result.cache_hits} from cache, {result.duration_seconds:.2f}s"
        )
        return result

    async def _run(
        self,
        project: Project,
        api_source: str | None,
        schema_source: str | None,
        updated_by: str | None,
        timeout: float | None,
        start_time: datetime,
    ) -> PipelineResult:
        warnings: list[str] = []
        api_metadata: ExtractionResult | None = None
        schema_metadata: ExtractionResult | None = None

        if api_source and project.type != ProjectType.DATABASE:
            api_metadata = self.extractor.extract(api_source, SourceKind.API)
            warnings.extend(f"api: {w.message}" for w in api_metadata.warnings)
        if schema_source and project.type != ProjectType.API:
            schema_metadata = self.extractor.extract(schema_source, SourceKind.DATABASE)
            warnings.extend(f"database: {w.message}" for w in schema_metadata.warnings)

        project.mark_analyzed(updated_by)
        await self._save(project)

        planned = plan_artifacts(project)
        spec_types = [t for t in planned if t in _SPEC_ARTIFACTS]
        source_types = [t for t in planned if t in _SOURCE_ARTIFACTS]
        # OpenAPI-derived artifacts need an OpenAPI document even when it is not indexed
        if spec_types and ArtifactType.OPENAPI_SPEC not in source_types:
            source_types.insert(0, ArtifactType.OPENAPI_SPEC)

        language = project.preferred_language
        doc_config = project.documentation_config

        def source_request(artifact_type: ArtifactType):
            is_api = artifact_type.source_type == SourceType.API
            return self.generator.generate(
                artifact_type,
                language,
                source_text=api_source if is_api else schema_source,
                project_id=project.id,
                metadata=api_metadata if is_api else schema_metadata,
                timeout=timeout,
            )

        artifacts = await self._gather([source_request(t) for t in source_types])
        by_type = {artifact.artifact_type: artifact for artifact in artifacts}

        if spec_types:
            openapi = by_type[ArtifactType.OPENAPI_SPEC]
            artifacts += await self._gather(
                [
                    self.generator.generate(
                        artifact_type,
                        language,
                        source_text=openapi.content,
                        extra_params=_extra_params(artifact_type, doc_config),
                        project_id=project.id,
                        timeout=timeout,
                    )
                    for artifact_type in spec_types
                ]
            )

        indexed = [a for a in artifacts if a.artifact_type in planned]
        for artifact in artifacts:
            warnings.extend(f"{artifact.artifact_type.value}: {w}" for w in artifact.warnings)

        # Embed everything before writing anything
        vectors = await self.embedder.embed_batch([a.content for a in indexed])

        document_ids = []
        for artifact, vector in zip(indexed, vectors, strict=True):
            document = await self.vector_store.save_document(
                artifact,
                vector,
                model_name=self.embedder.model_name,
                metadata=self._search_metadata(project, artifact, schema_metadata),
            )
            document_ids.append(document.id)

        project.mark_documentation_generated(updated_by)
        await self._save(project)

        end_time = datetime.now(UTC)
        return PipelineResult(
            project_id=project.id,
            status=project.status,
            artifacts=artifacts,
            indexed_document_ids=document_ids,
            warnings=warnings,
            start_time=start_time,
            end_time=end_time,
            duration_seconds=(end_time - start_time).total_seconds(),
        )

    async def _gather(self, coros: list) -> list[Artifact]:
        """Run generations concurrently, cancelling the rest if one fails"""
        tasks = [asyncio.ensure_future(coro) for coro in coros]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
