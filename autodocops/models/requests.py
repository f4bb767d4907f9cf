"""Request bodies accepted by the HTTP boundary"""

from typing import Any

from pydantic import BaseModel, Field

from autodocops.models.project import Language


class DocumentationRequest(BaseModel):
    """Body of POST /api/documentation/{artifact-slug}"""

    source_text: str | None = Field(default=None, description="C# source or T-SQL DDL")
    spec_text: str | None = Field(
        default=None, description="OpenAPI document, for artifacts generated from OpenAPI"
    )
    language: Language = Field(default=Language.SPANISH, description="Output language")
    extra_params: dict[str, Any] = Field(
        default_factory=dict, description="base_url, package_name or namespace"
    )
    project_id: str | None = Field(default=None, description="Owning project, if any")

    @property
    def text(self) -> str:
        return self.spec_text or self.source_text or ""


class ChatRequest(BaseModel):
    """Body of POST /api/documentation/semantic-chat"""

    question: str = Field(description="Question to answer")
    context: str | None = Field(default=None, description="Fallback context")
    language: Language = Field(default=Language.SPANISH, description="Answer language")
    project_id: str | None = Field(default=None, description="Project whose corpus is searched")
