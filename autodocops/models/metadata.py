"""Structural metadata trees produced by the metadata extractor"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    """Kind of raw source handed to the extractor"""

    API = "api"
    DATABASE = "database"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExtractionWarning(_Frozen):
    """A non-fatal problem found while extracting metadata"""

    message: str = Field(description="Human readable description of the problem")
    line: int | None = Field(default=None, description="1-based source line, when known")
    element: str | None = Field(default=None, description="Element being parsed")


# API variant


class ParameterInfo(_Frozen):
    name: str
    type: str
    source: str = Field(default="query", description="body, route, query or header")
    required: bool = True


class ActionInfo(_Frozen):
    name: str
    http_method: str
    route: str = ""
    return_type: str = "void"
    parameters: tuple[ParameterInfo, ...] = ()


class ControllerInfo(_Frozen):
    name: str
    route: str = ""
    actions: tuple[ActionInfo, ...] = ()


class PropertyInfo(_Frozen):
    name: str
    type: str
    nullable: bool = False


class ModelInfo(_Frozen):
    name: str
    properties: tuple[PropertyInfo, ...] = ()


class ServiceInfo(_Frozen):
    name: str
    interfaces: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()


class ApiMetadata(_Frozen):
    """Metadata tree describing an HTTP API code base"""

    controllers: tuple[ControllerInfo, ...] = ()
    models: tuple[ModelInfo, ...] = ()
    services: tuple[ServiceInfo, ...] = ()
    dependencies: tuple[str, ...] = ()

    def summary(self) -> str:
        lines = [
            f"Controllers: {len(self.controllers)}",
            f"Endpoints: {sum(len(c.actions) for c in self.controllers)}",
            f"Models: {len(self.models)}",
            f"Services: {len(self.services)}",
        ]
        for controller in self.controllers:
            for action in controller.actions:
                path = "/".join(p for p in (controller.route, action.route) if p)
                lines.append(f"- {action.http_method} /{path} ({controller.name}.{action.name})")
        return "\n".join(lines)


# Database variant


class ColumnInfo(_Frozen):
    name: str
    data_type: str
    nullable: bool = True
    primary_key: bool = False
    identity: bool = False
    default: str | None = None


class IndexInfo(_Frozen):
    name: str
    columns: tuple[str, ...] = ()
    unique: bool = False
    clustered: bool = False


class ForeignKeyInfo(_Frozen):
    name: str | None = None
    columns: tuple[str, ...] = ()
    referenced_table: str
    referenced_columns: tuple[str, ...] = ()


class TableInfo(_Frozen):
    name: str
    schema_name: str = "dbo"
    columns: tuple[ColumnInfo, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


class ViewInfo(_Frozen):
    name: str
    schema_name: str = "dbo"
    definition: str = ""


class RoutineInfo(_Frozen):
    """Stored procedure or function"""

    name: str
    schema_name: str = "dbo"
    parameters: tuple[str, ...] = ()
    returns: str | None = None


class SchemaMetadata(_Frozen):
    """Metadata tree describing a relational database schema"""

    tables: tuple[TableInfo, ...] = ()
    views: tuple[ViewInfo, ...] = ()
    stored_procedures: tuple[RoutineInfo, ...] = ()
    functions: tuple[RoutineInfo, ...] = ()

    def summary(self) -> str:
        lines = [
            f"Tables: {len(self.tables)}",
            f"Views: {len(self.views)}",
            f"Stored procedures: {len(self.stored_procedures)}",
            f"Functions: {len(self.functions)}",
        ]
        for table in self.tables:
            lines.append(f"- {table.qualified_name} ({len(table.columns)} columns)")
            for fk in table.foreign_keys:
                lines.append(
                    f"  - FK ({', '.join(fk.columns)}) -> {fk.referenced_table}"
                    f"({', '.join(fk.referenced_columns)})"
                )
        return "\n".join(lines)


class ProjectFileMetadata(_Frozen):
    """Metadata read from a .csproj project file"""

    assembly_name: str | None = None
    version: str | None = None
    target_framework: str | None = None
    package_references: tuple[tuple[str, str], ...] = ()


class ExtractionResult(_Frozen):
    """Best-effort metadata tree plus any warnings raised while building it"""

    source_kind: SourceKind
    tree: ApiMetadata | SchemaMetadata
    warnings: tuple[ExtractionWarning, ...] = ()

    def summary(self) -> str:
        return self.tree.summary()
