"""Pipeline run result model"""

from datetime import datetime

from pydantic import BaseModel, Field

from autodocops.models.artifact import Artifact
from autodocops.models.project import ProjectStatus


class PipelineResult(BaseModel):
    """Outcome of one documentation pipeline run"""

    project_id: str = Field(description="Project the run belongs to")
    status: ProjectStatus = Field(description="Project status after the run")
    artifacts: list[Artifact] = Field(default_factory=list, description="Generated artifacts")
    indexed_document_ids: list[str] = Field(
        default_factory=list, description="Documents written to the similarity index"
    )
    warnings: list[str] = Field(
        default_factory=list, description="Extraction and post-processing warnings"
    )
    start_time: datetime = Field(description="When the run started")
    end_time: datetime = Field(description="When the run finished")
    duration_seconds: float = Field(ge=0.0, description="Total run duration in seconds")

    @property
    def cache_hits(self) -> int:
        return sum(1 for artifact in self.artifacts if artifact.from_cache)
