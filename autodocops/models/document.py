"""Stored document model"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from autodocops.models.artifact import ArtifactType, SourceType
from autodocops.models.project import Language


class StoredDocument(BaseModel):
    """An artifact persisted in the similarity index"""

    id: str = Field(description="Document id (the artifact id)")
    project_id: str = Field(description="Owning project")
    artifact_type: ArtifactType = Field(description="Kind of artifact")
    source_type: SourceType = Field(description="Corpus (api, database)")
    language: Language = Field(description="Language of the content")
    content: str = Field(description="Artifact body")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Search metadata")
    model_name: str = Field(description="Embedding model used for the stored vector")
    is_active: bool = Field(default=True, description="False once superseded")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
