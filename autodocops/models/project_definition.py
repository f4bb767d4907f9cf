"""Models for project definition files (project.yaml)"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from autodocops.models.project import DocumentationConfig, Language, ProjectType


class DocumentationPreset(str, Enum):
    """Named artifact selections"""

    FULL = "full"
    BASIC = "basic"
    API_ONLY = "api_only"
    DATABASE_ONLY = "database_only"

    def build(self) -> DocumentationConfig:
        return {
            DocumentationPreset.FULL: DocumentationConfig.full,
            DocumentationPreset.BASIC: DocumentationConfig.basic,
            DocumentationPreset.API_ONLY: DocumentationConfig.api_only,
            DocumentationPreset.DATABASE_ONLY: DocumentationConfig.database_only,
        }[self]()


class ProjectSection(BaseModel):
    """Identity of the project being documented"""

    name: str = Field(min_length=1, description="Project name")
    description: str = Field(default="", description="Free-form description")
    type: ProjectType = Field(description="api, database or hybrid")
    language: Language = Field(default=Language.SPANISH, description="Output language")
    version: str = Field(default="1.0.0", description="Documentation version (x.y.z)")
    owner: str | None = Field(default=None, description="User recorded as creator")


class SourcesSection(BaseModel):
    """Files to analyze, relative to the definition file"""

    api_files: list[str] = Field(default_factory=list, description="C# source files")
    schema_files: list[str] = Field(default_factory=list, description="T-SQL DDL files")
    project_file: str | None = Field(default=None, description="Optional .csproj file")


class DocumentationSection(BaseModel):
    """Which artifacts to generate and their parameters"""

    preset: DocumentationPreset = Field(default=DocumentationPreset.FULL)
    base_url: str | None = Field(default=None, description="Base URL for the Postman export")
    package_name: str | None = Field(default=None, description="TypeScript SDK package name")
    namespace: str | None = Field(default=None, description="C# SDK namespace")

    def to_config(self) -> DocumentationConfig:
        doc_config = self.preset.build()
        overrides = {
            key: value
            for key, value in (
                ("base_url", self.base_url),
                ("package_name", self.package_name),
                ("namespace", self.namespace),
            )
            if value is not None
        }
        return doc_config.model_copy(update=overrides)


class ProjectDefinition(BaseModel):
    """Complete project definition"""

    project: ProjectSection
    sources: SourcesSection = Field(default_factory=SourcesSection)
    documentation: DocumentationSection = Field(default_factory=DocumentationSection)

    @model_validator(mode="after")
    def require_sources(self) -> "ProjectDefinition":
        if not self.sources.api_files and not self.sources.schema_files:
            raise ValueError("At least one api_files or schema_files entry is required")
        return self
