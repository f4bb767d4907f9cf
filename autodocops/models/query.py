"""Similarity query models"""

from pydantic import BaseModel, Field, model_validator

from autodocops.config import config


class SimilarityQuery(BaseModel):
    """Request for documents similar to a text or a vector"""

    text: str | None = Field(default=None, description="Query text to embed")
    vector: list[float] | None = Field(default=None, description="Precomputed query vector")
    threshold: float = Field(
        default_factory=lambda: config.search_threshold,
        ge=-1.0,
        le=1.0,
        description="Results must have similarity strictly above this value",
    )
    limit: int = Field(
        default_factory=lambda: config.search_limit,
        ge=1,
        le=100,
        description="Maximum number of results to return",
    )
    project_id: str | None = Field(default=None, description="Restrict to one project")

    @model_validator(mode="after")
    def require_text_or_vector(self) -> "SimilarityQuery":
        if self.vector is None and (self.text is None or not self.text.strip()):
            raise ValueError("Either a non-empty query text or a query vector is required")
        if self.vector is not None and not self.vector:
            raise ValueError("Query vector must not be empty")
        return self
