"""Generated documentation artifact models"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from autodocops.models.project import Language


class ArtifactType(str, Enum):
    """Kinds of documentation the pipeline can generate"""

    OPENAPI_SPEC = "openapi_spec"
    USAGE_GUIDE = "usage_guide"
    POSTMAN_COLLECTION = "postman_collection"
    TYPESCRIPT_SDK = "typescript_sdk"
    CSHARP_SDK = "csharp_sdk"
    SCHEMA_DOCUMENTATION = "schema_documentation"
    ER_DIAGRAM = "er_diagram"
    DATA_DICTIONARY = "data_dictionary"
    CHAT_ANSWER = "chat_answer"

    @property
    def slug(self) -> str:
        """URL path segment used by the HTTP boundary"""
        return ARTIFACT_SLUGS[self]

    @property
    def source_type(self) -> "SourceType":
        """Corpus the artifact is indexed under for similarity search"""
        return ARTIFACT_SOURCE_TYPES[self]

    @classmethod
    def from_slug(cls, slug: str) -> "ArtifactType":
        if slug in SLUG_ALIASES:
            return SLUG_ALIASES[slug]
        for artifact_type, artifact_slug in ARTIFACT_SLUGS.items():
            if artifact_slug == slug:
                return artifact_type
        raise KeyError(slug)


class SourceType(str, Enum):
    """Corpus a document belongs to"""

    API = "api"
    DATABASE = "database"


ARTIFACT_SLUGS: dict[ArtifactType, str] = {
    ArtifactType.OPENAPI_SPEC: "generate-openapi",
    ArtifactType.USAGE_GUIDE: "generate-guides",
    ArtifactType.POSTMAN_COLLECTION: "generate-postman",
    ArtifactType.TYPESCRIPT_SDK: "generate-typescript-sdk",
    ArtifactType.CSHARP_SDK: "generate-csharp-sdk",
    ArtifactType.SCHEMA_DOCUMENTATION: "analyze-sqlserver",
    ArtifactType.ER_DIAGRAM: "generate-er-diagram",
    ArtifactType.DATA_DICTIONARY: "generate-data-dictionary",
    ArtifactType.CHAT_ANSWER: "semantic-chat",
}

# Older endpoint names still routed to their artifact
SLUG_ALIASES: dict[str, ArtifactType] = {
    "analyze-dotnet": ArtifactType.OPENAPI_SPEC,
}

ARTIFACT_SOURCE_TYPES: dict[ArtifactType, SourceType] = {
    ArtifactType.OPENAPI_SPEC: SourceType.API,
    ArtifactType.USAGE_GUIDE: SourceType.API,
    ArtifactType.POSTMAN_COLLECTION: SourceType.API,
    ArtifactType.TYPESCRIPT_SDK: SourceType.API,
    ArtifactType.CSHARP_SDK: SourceType.API,
    ArtifactType.SCHEMA_DOCUMENTATION: SourceType.DATABASE,
    ArtifactType.ER_DIAGRAM: SourceType.DATABASE,
    ArtifactType.DATA_DICTIONARY: SourceType.DATABASE,
    ArtifactType.CHAT_ANSWER: SourceType.API,
}


class Artifact(BaseModel):
    """A piece of generated documentation"""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique identifier")
    content: str = Field(description="Generated artifact body")
    artifact_type: ArtifactType = Field(description="Kind of artifact")
    language: Language = Field(description="Language the artifact was generated in")
    project_id: str | None = Field(default=None, description="Owning project, if any")
    cache_key: str = Field(description="Generation cache key that produced the content")
    from_cache: bool = Field(default=False, description="Whether content came from the cache")
    warnings: list[str] = Field(
        default_factory=list, description="Non-fatal post-processing warnings"
    )
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the artifact was produced"
    )
