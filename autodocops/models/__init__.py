"""Data models for the documentation pipeline"""

from autodocops.models.artifact import Artifact, ArtifactType, SourceType
from autodocops.models.cache_entry import CacheEntry
from autodocops.models.document import StoredDocument
from autodocops.models.maintenance import PurgeResult
from autodocops.models.metadata import (
    ApiMetadata,
    ExtractionResult,
    ExtractionWarning,
    ProjectFileMetadata,
    SchemaMetadata,
    SourceKind,
)
from autodocops.models.pipeline_result import PipelineResult
from autodocops.models.project import (
    ConnectionConfig,
    DocumentationConfig,
    Language,
    Project,
    ProjectStatus,
    ProjectType,
)
from autodocops.models.project_definition import DocumentationPreset, ProjectDefinition
from autodocops.models.query import SimilarityQuery
from autodocops.models.requests import ChatRequest, DocumentationRequest
from autodocops.models.search_result import (
    ChatAnswer,
    QueryInfo,
    SemanticSearchOutput,
    SimilarityMatch,
)

__all__ = [
    "Artifact",
    "ArtifactType",
    "SourceType",
    "CacheEntry",
    "StoredDocument",
    "PurgeResult",
    "ApiMetadata",
    "SchemaMetadata",
    "ProjectFileMetadata",
    "ExtractionResult",
    "ExtractionWarning",
    "SourceKind",
    "PipelineResult",
    "ConnectionConfig",
    "DocumentationConfig",
    "Language",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "DocumentationPreset",
    "ProjectDefinition",
    "SimilarityQuery",
    "ChatRequest",
    "DocumentationRequest",
    "ChatAnswer",
    "QueryInfo",
    "SemanticSearchOutput",
    "SimilarityMatch",
]
