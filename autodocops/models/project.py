"""Project data model and documentation lifecycle state machine"""

import re
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autodocops.exceptions import InvalidTransitionError, ValidationError

VERSION_PATTERN = re.compile(r"\d+\.\d+\.\d+", re.ASCII)


class Language(str, Enum):
    """Languages supported for generated documentation"""

    SPANISH = "es"
    ENGLISH = "en"


class ProjectType(str, Enum):
    """Kind of system a project documents"""

    API = "api"
    DATABASE = "database"
    HYBRID = "hybrid"


class ProjectStatus(str, Enum):
    """Lifecycle states of a documentation project"""

    CREATED = "created"
    CONFIGURED = "configured"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    DOCUMENTATION_GENERATED = "documentation_generated"
    ERROR = "error"
    PAUSED = "paused"


# target status -> statuses it may be entered from
_ALLOWED_SOURCES: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.CONFIGURED: frozenset(
        {
            ProjectStatus.CREATED,
            ProjectStatus.CONFIGURED,
            ProjectStatus.ANALYZED,
            ProjectStatus.DOCUMENTATION_GENERATED,
            ProjectStatus.ERROR,
            ProjectStatus.PAUSED,
        }
    ),
    ProjectStatus.ANALYZING: frozenset(
        {
            ProjectStatus.CONFIGURED,
            ProjectStatus.ANALYZED,
            ProjectStatus.DOCUMENTATION_GENERATED,
        }
    ),
    ProjectStatus.ANALYZED: frozenset({ProjectStatus.ANALYZING}),
    ProjectStatus.DOCUMENTATION_GENERATED: frozenset({ProjectStatus.ANALYZED}),
    ProjectStatus.ERROR: frozenset(ProjectStatus),
    ProjectStatus.PAUSED: frozenset(set(ProjectStatus) - {ProjectStatus.PAUSED}),
}


def can_transition(current: ProjectStatus, target: ProjectStatus) -> bool:
    """Check whether the lifecycle allows moving from current to target"""
    return current in _ALLOWED_SOURCES.get(target, frozenset())


def validate_version(version: str) -> str:
    """Validate a strict MAJOR.MINOR.PATCH version string"""
    if not isinstance(version, str) or not version.strip():
        raise ValidationError("Version must not be empty")
    if not VERSION_PATTERN.fullmatch(version):
        raise ValidationError(f"Version must have the form x.y.z, got: {version!r}")
    return version


class ConnectionConfig(BaseModel):
    """How to reach the repository or database being documented"""

    connection_string: str = Field(default="", description="Repository URL or DB connection")
    authentication_type: str = Field(default="none", description="Auth scheme for the source")
    username: str | None = Field(default=None, description="Optional user name")
    access_token: str | None = Field(
        default=None, description="Access token or key (excluded from dumps)", exclude=True
    )
    branch: str | None = Field(default=None, description="Repository branch to analyze")
    timeout_seconds: int = Field(default=30, gt=0, description="Connection timeout in seconds")
    is_enabled: bool = Field(default=True, description="Whether the connection is enabled")

    @classmethod
    def for_git_repository(
        cls, repository_url: str, access_token: str | None = None, branch: str = "main"
    ) -> "ConnectionConfig":
        if not repository_url.strip():
            raise ValidationError("Repository URL must not be empty")
        return cls(
            connection_string=repository_url,
            authentication_type="token" if access_token else "none",
            access_token=access_token,
            branch=branch,
        )

    @classmethod
    def for_sql_server(
        cls,
        server: str,
        database: str,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: int = 30,
    ) -> "ConnectionConfig":
        if not server.strip() or not database.strip():
            raise ValidationError("Server and database must not be empty")
        connection_string = f"Server={server};Database={database};"
        if username:
            connection_string += f"User Id={username};"
        else:
            connection_string += "Integrated Security=true;"
        return cls(
            connection_string=connection_string,
            authentication_type="sql" if username else "integrated",
            username=username,
            access_token=password,
            timeout_seconds=timeout_seconds,
        )


class DocumentationConfig(BaseModel):
    """Which artifacts the pipeline generates for a project"""

    generate_openapi: bool = True
    generate_usage_guides: bool = True
    generate_postman_collection: bool = True
    generate_typescript_sdk: bool = True
    generate_csharp_sdk: bool = True
    generate_schema_documentation: bool = True
    generate_er_diagrams: bool = True
    generate_data_dictionary: bool = True
    enable_semantic_chat: bool = True
    base_url: str = Field(default="https://api.example.com", description="Base URL for Postman")
    package_name: str = Field(default="api-client", description="TypeScript SDK package name")
    namespace: str = Field(default="Api.Client", description="C# SDK namespace")

    @classmethod
    def full(cls) -> "DocumentationConfig":
        return cls()

    @classmethod
    def basic(cls) -> "DocumentationConfig":
        return cls(
            generate_postman_collection=False,
            generate_typescript_sdk=False,
            generate_csharp_sdk=False,
            generate_er_diagrams=False,
            enable_semantic_chat=False,
        )

    @classmethod
    def api_only(cls) -> "DocumentationConfig":
        return cls(
            generate_schema_documentation=False,
            generate_er_diagrams=False,
            generate_data_dictionary=False,
        )

    @classmethod
    def database_only(cls) -> "DocumentationConfig":
        return cls(
            generate_openapi=False,
            generate_usage_guides=False,
            generate_postman_collection=False,
            generate_typescript_sdk=False,
            generate_csharp_sdk=False,
        )


class Project(BaseModel):
    """A documentation project and its lifecycle state"""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique identifier")
    name: str = Field(min_length=1, description="Project name")
    description: str = Field(default="", description="Free-form description")
    type: ProjectType = Field(description="Kind of system being documented")
    status: ProjectStatus = Field(default=ProjectStatus.CREATED)
    preferred_language: Language = Field(default=Language.SPANISH)
    connection_config: ConnectionConfig = Field(default_factory=ConnectionConfig)
    documentation_config: DocumentationConfig = Field(default_factory=DocumentationConfig)
    version: str = Field(default="1.0.0", description="Documentation version (x.y.z)")
    created_by: str | None = Field(default=None, description="Owner who created the project")
    updated_by: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_analyzed_at: datetime | None = Field(default=None)
    paused_from: ProjectStatus | None = Field(
        default=None, description="Status to return to when a paused project resumes"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Project name must not be blank")
        return v

    @field_validator("version")
    @classmethod
    def validate_version_field(cls, v: str) -> str:
        return validate_version(v)

    def model_post_init(self, __context) -> None:
        if self.updated_by is None:
            self.updated_by = self.created_by

    def _touch(self, updated_by: str | None) -> None:
        self.updated_at = datetime.now(UTC)
        self.updated_by = updated_by

    def _transition(self, target: ProjectStatus, updated_by: str | None) -> None:
        if not can_transition(self.status, target):
            raise InvalidTransitionError(self.status.value, target.value)
        self.status = target
        self._touch(updated_by)

    def mark_configured(self, updated_by: str | None = None) -> None:
        self._transition(ProjectStatus.CONFIGURED, updated_by)
        self.paused_from = None

    def begin_analysis(self, updated_by: str | None = None) -> None:
        self._transition(ProjectStatus.ANALYZING, updated_by)

    def mark_analyzed(self, updated_by: str | None = None) -> None:
        self._transition(ProjectStatus.ANALYZED, updated_by)
        self.last_analyzed_at = self.updated_at

    def mark_documentation_generated(self, updated_by: str | None = None) -> None:
        self._transition(ProjectStatus.DOCUMENTATION_GENERATED, updated_by)

    def mark_error(self, updated_by: str | None = None) -> None:
        self._transition(ProjectStatus.ERROR, updated_by)
        self.paused_from = None

    def pause(self, updated_by: str | None = None) -> None:
        previous = self.status
        self._transition(ProjectStatus.PAUSED, updated_by)
        self.paused_from = previous

    def resume(self, updated_by: str | None = None) -> None:
        if self.status != ProjectStatus.PAUSED or self.paused_from is None:
            raise InvalidTransitionError(self.status.value, "resume")
        self.status = self.paused_from
        self.paused_from = None
        self._touch(updated_by)

    def update_basic_info(
        self, name: str, description: str, updated_by: str | None = None
    ) -> None:
        if not name or not name.strip():
            raise ValidationError("Project name must not be blank")
        self.name = name
        self.description = description
        self._touch(updated_by)

    def update_version(self, version: str, updated_by: str | None = None) -> None:
        self.version = validate_version(version)
        self._touch(updated_by)
