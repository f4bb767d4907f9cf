"""Best-effort structural metadata extraction from API source and database DDL

The analyzers here are regex based. They never raise on malformed input:
anything they cannot make sense of becomes an ExtractionWarning and the
rest of the tree is still returned.
"""

import logging
import re
from typing import Protocol

from autodocops.exceptions import ValidationError
from autodocops.models.metadata import (
    ActionInfo,
    ApiMetadata,
    ColumnInfo,
    ControllerInfo,
    ExtractionResult,
    ExtractionWarning,
    ForeignKeyInfo,
    IndexInfo,
    ModelInfo,
    ParameterInfo,
    ProjectFileMetadata,
    PropertyInfo,
    RoutineInfo,
    SchemaMetadata,
    ServiceInfo,
    SourceKind,
    TableInfo,
    ViewInfo,
)

logger = logging.getLogger(__name__)


class MetadataAnalyzer(Protocol):
    """Turns raw source text into a metadata tree"""

    source_kind: SourceKind

    def analyze(self, raw_text: str) -> ExtractionResult: ...


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _split_top_level(
    text: str, sep: str = ",", opening: str = "(<[", closing: str = ")>]"
) -> list[str]:
    """Split on sep, ignoring separators nested in brackets"""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch in opening:
            depth += 1
        elif ch in closing:
            depth = max(0, depth - 1)
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


# C# / ASP.NET Core


_CLASS_DECL = re.compile(
    r"\b(?:public|internal)\s+(?:(?:sealed|abstract|partial|static)\s+)*"
    r"(?:class|record)\s+(?P<name>\w+)(?:<[^>{]*>)?"
    r"(?:\s*\([^)]*\))?"
    r"(?:\s*:\s*(?P<bases>[^{]+?))?\s*(?:\{|where\b)"
)
_USING = re.compile(r"^\s*using\s+(?:static\s+)?(?P<ns>[\w.]+)\s*;", re.MULTILINE)
_ROUTE_ATTR = re.compile(r'\[Route\(\s*"(?P<route>[^"]*)"\s*\)\]')
_HTTP_ATTR = re.compile(r"\[Http(?:Get|Post|Put|Delete|Patch)\b")
_ACTION = re.compile(
    r"\[Http(?P<verb>Get|Post|Put|Delete|Patch)(?:\(\s*\"(?P<route>[^\"]*)\"[^)]*\))?\]"
    r"[^;]*?public\s+(?:(?:async|virtual|override|static)\s+)*"
    r"(?P<ret>[\w.?\[\]]+(?:<[^()]*?>)?\??)\s+(?P<name>\w+)\s*\((?P<params>[^)]*)\)",
    re.DOTALL,
)
_PROPERTY = re.compile(
    r"public\s+(?:(?:virtual|override|required|static)\s+)*"
    r"(?P<type>[\w.\[\]]+(?:<[^;{}()]*?>)?\??)\s+(?P<name>\w+)\s*\{\s*(?:get|init|set)\b"
)
_METHOD = re.compile(
    r"public\s+(?:(?:async|virtual|override|static)\s+)*"
    r"[\w.?\[\]]+(?:<[^()]*?>)?\??\s+(?P<name>\w+)\s*\("
)
_PARAM_ATTR = re.compile(r"\[From(?P<source>Body|Route|Query|Header|Form)\]")


class ApiAnalyzer:
    """Extract controllers, actions, models and services from C# source"""

    source_kind = SourceKind.API

    def analyze(self, raw_text: str) -> ExtractionResult:
        warnings: list[ExtractionWarning] = []

        if raw_text.count("{") != raw_text.count("}"):
            warnings.append(
                ExtractionWarning(
                    message="Unbalanced braces; class bodies may be incomplete",
                    element="source",
                )
            )

        dependencies = tuple(dict.fromkeys(m.group("ns") for m in _USING.finditer(raw_text)))

        controllers: list[ControllerInfo] = []
        models: list[ModelInfo] = []
        services: list[ServiceInfo] = []

        declarations = list(_CLASS_DECL.finditer(raw_text))
        if not declarations:
            warnings.append(ExtractionWarning(message="No class declarations found"))

        for index, decl in enumerate(declarations):
            name = decl.group("name")
            bases = [b.strip() for b in _split_top_level(decl.group("bases") or "")]
            body_end = (
                declarations[index + 1].start() if index + 1 < len(declarations) else len(raw_text)
            )
            body = raw_text[decl.end() : body_end]
            header_start = raw_text.rfind("}", 0, decl.start()) + 1
            header = raw_text[header_start : decl.start()]
            line = _line_of(raw_text, decl.start())

            if name.endswith("Controller") or any("Controller" in b for b in bases):
                controllers.append(self._controller(name, header, body, line, warnings))
            elif name.endswith("Service") or any(re.fullmatch(r"I\w+Service", b) for b in bases):
                services.append(
                    ServiceInfo(
                        name=name,
                        interfaces=tuple(b for b in bases if re.fullmatch(r"I[A-Z]\w*", b)),
                        methods=tuple(
                            dict.fromkeys(m.group("name") for m in _METHOD.finditer(body))
                        ),
                    )
                )
            else:
                models.append(
                    ModelInfo(
                        name=name,
                        properties=tuple(
                            PropertyInfo(
                                name=m.group("name"),
                                type=m.group("type").rstrip("?"),
                                nullable=m.group("type").endswith("?"),
                            )
                            for m in _PROPERTY.finditer(body)
                        ),
                    )
                )

        return ExtractionResult(
            source_kind=self.source_kind,
            tree=ApiMetadata(
                controllers=tuple(controllers),
                models=tuple(models),
                services=tuple(services),
                dependencies=dependencies,
            ),
            warnings=tuple(warnings),
        )

    def _controller(
        self,
        name: str,
        header: str,
        body: str,
        line: int,
        warnings: list[ExtractionWarning],
    ) -> ControllerInfo:
        route_match = _ROUTE_ATTR.search(header)
        route = route_match.group("route") if route_match else ""
        route = route.replace("[controller]", name.removesuffix("Controller").lower())

        actions = []
        for match in _ACTION.finditer(body):
            actions.append(
                ActionInfo(
                    name=match.group("name"),
                    http_method=match.group("verb").upper(),
                    route=match.group("route") or "",
                    return_type=match.group("ret"),
                    parameters=self._parameters(match.group("params"), name, line, warnings),
                )
            )

        declared = len(_HTTP_ATTR.findall(body))
        if declared > len(actions):
            warnings.append(
                ExtractionWarning(
                    message=f"{declared - len(actions)} HTTP attribute(s) in {name} "
                    f"have no recognizable action method",
                    line=line,
                    element=name,
                )
            )

        return ControllerInfo(name=name, route=route, actions=tuple(actions))

    def _parameters(
        self, raw: str, controller: str, line: int, warnings: list[ExtractionWarning]
    ) -> tuple[ParameterInfo, ...]:
        params = []
        for item in _split_top_level(raw):
            source_match = _PARAM_ATTR.search(item)
            source = source_match.group("source").lower() if source_match else "query"
            declaration = re.sub(r"\[[^\]]*\]", "", item).strip()
            required = "=" not in declaration
            declaration = declaration.split("=", 1)[0].strip()
            parts = declaration.rsplit(None, 1)
            if len(parts) != 2:
                warnings.append(
                    ExtractionWarning(
                        message=f"Could not parse parameter '{item}'",
                        line=line,
                        element=controller,
                    )
                )
                continue
            param_type, param_name = parts
            params.append(
                ParameterInfo(
                    name=param_name,
                    type=param_type,
                    source=source,
                    required=required and not param_type.endswith("?"),
                )
            )
        return tuple(params)


# T-SQL DDL


_COMMENTS = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)
_NAME = r"(?P<name>(?:\[[^\]]+\]|\w+)(?:\s*\.\s*(?:\[[^\]]+\]|\w+))?)"
_CREATE_TABLE = re.compile(rf"\bCREATE\s+TABLE\s+{_NAME}\s*\(", re.IGNORECASE)
_ALTER_FK = re.compile(
    rf"\bALTER\s+TABLE\s+{_NAME}\s+(?:WITH\s+(?:NO)?CHECK\s+)?ADD\s+"
    r"(?:CONSTRAINT\s+(?P<constraint>\[[^\]]+\]|\w+)\s+)?"
    r"FOREIGN\s+KEY\s*\((?P<cols>[^)]*)\)\s*REFERENCES\s+"
    r"(?P<ref>(?:\[[^\]]+\]|\w+)(?:\s*\.\s*(?:\[[^\]]+\]|\w+))?)\s*\((?P<refcols>[^)]*)\)",
    re.IGNORECASE,
)
_CREATE_INDEX = re.compile(
    r"\bCREATE\s+(?P<unique>UNIQUE\s+)?(?P<kind>CLUSTERED\s+|NONCLUSTERED\s+)?INDEX\s+"
    r"(?P<index>\[[^\]]+\]|\w+)\s+ON\s+"
    r"(?P<table>(?:\[[^\]]+\]|\w+)(?:\s*\.\s*(?:\[[^\]]+\]|\w+))?)\s*\((?P<cols>[^)]*)\)",
    re.IGNORECASE,
)
_CREATE_VIEW = re.compile(
    rf"\bCREATE\s+(?:OR\s+ALTER\s+)?VIEW\s+{_NAME}\s+AS\b(?P<body>.*?)(?=\bGO\b|\bCREATE\s|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_CREATE_PROC = re.compile(
    rf"\bCREATE\s+(?:OR\s+ALTER\s+)?PROC(?:EDURE)?\s+{_NAME}(?P<params>.*?)\bAS\b",
    re.IGNORECASE | re.DOTALL,
)
_CREATE_FUNCTION = re.compile(
    rf"\bCREATE\s+(?:OR\s+ALTER\s+)?FUNCTION\s+{_NAME}\s*\((?P<params>[^)]*)\)\s*"
    r"RETURNS\s+(?P<returns>@?\w+(?:\s*\([^)]*\))?)",
    re.IGNORECASE | re.DOTALL,
)
_SQL_PARAM = re.compile(r"@\w+\s+\w+(?:\s*\([^)]*\))?")
_TABLE_CONSTRAINT = re.compile(
    r"^(?:CONSTRAINT\s+(?P<constraint>\[[^\]]+\]|\w+)\s+)?"
    r"(?P<kind>PRIMARY\s+KEY|FOREIGN\s+KEY|UNIQUE|INDEX|CHECK)\b(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_COLUMN = re.compile(
    r"^(?P<col>\[[^\]]+\]|\w+)\s+(?P<type>\[?\w+\]?(?:\s*\([^)]*\))?)(?P<rest>.*)$",
    re.DOTALL,
)
_REFERENCES = re.compile(
    r"REFERENCES\s+(?P<ref>(?:\[[^\]]+\]|\w+)(?:\s*\.\s*(?:\[[^\]]+\]|\w+))?)"
    r"\s*(?:\((?P<refcols>[^)]*)\))?",
    re.IGNORECASE,
)
_PAREN_COLS = re.compile(r"\((?P<cols>[^)]*)\)")


def _unquote(identifier: str) -> str:
    return identifier.strip().strip("[]\"`")


def _split_name(qualified: str) -> tuple[str, str]:
    parts = [_unquote(p) for p in qualified.split(".")]
    if len(parts) == 2:
        return parts[0], parts[1]
    return "dbo", parts[-1]


def _column_list(raw: str) -> tuple[str, ...]:
    cols = []
    for col in raw.split(","):
        col = re.sub(r"\s+(ASC|DESC)\s*$", "", col.strip(), flags=re.IGNORECASE)
        if col:
            cols.append(_unquote(col))
    return tuple(cols)


def _matching_paren(text: str, open_pos: int) -> int | None:
    depth = 0
    for pos in range(open_pos, len(text)):
        if text[pos] == "(":
            depth += 1
        elif text[pos] == ")":
            depth -= 1
            if depth == 0:
                return pos
    return None


class SchemaAnalyzer:
    """Extract tables, keys, indexes, views and routines from T-SQL DDL"""

    source_kind = SourceKind.DATABASE

    def analyze(self, raw_text: str) -> ExtractionResult:
        text = _COMMENTS.sub(lambda m: "\n" * m.group(0).count("\n"), raw_text)
        warnings: list[ExtractionWarning] = []
        tables: dict[str, dict] = {}

        for match in _CREATE_TABLE.finditer(text):
            schema_name, name = _split_name(match.group("name"))
            line = _line_of(text, match.start())
            close = _matching_paren(text, match.end() - 1)
            if close is None:
                warnings.append(
                    ExtractionWarning(
                        message=f"Table {schema_name}.{name} has no closing parenthesis; "
                        "column list may be partial",
                        line=line,
                        element=name,
                    )
                )
                body = text[match.end() :]
            else:
                body = text[match.end() : close]
            tables[f"{schema_name}.{name}".lower()] = self._table(
                schema_name, name, body, line, warnings
            )

        for match in _ALTER_FK.finditer(text):
            table = self._lookup(tables, match.group("name"), match.start(), text, warnings)
            if table is None:
                continue
            ref_schema, ref_name = _split_name(match.group("ref"))
            table["foreign_keys"].append(
                ForeignKeyInfo(
                    name=_unquote(match.group("constraint")) if match.group("constraint") else None,
                    columns=_column_list(match.group("cols")),
                    referenced_table=f"{ref_schema}.{ref_name}",
                    referenced_columns=_column_list(match.group("refcols")),
                )
            )

        for match in _CREATE_INDEX.finditer(text):
            table = self._lookup(tables, match.group("table"), match.start(), text, warnings)
            if table is None:
                continue
            table["indexes"].append(
                IndexInfo(
                    name=_unquote(match.group("index")),
                    columns=_column_list(match.group("cols")),
                    unique=bool(match.group("unique")),
                    clustered=(match.group("kind") or "").strip().upper() == "CLUSTERED",
                )
            )

        views = []
        for match in _CREATE_VIEW.finditer(text):
            schema_name, name = _split_name(match.group("name"))
            views.append(
                ViewInfo(name=name, schema_name=schema_name, definition=match.group("body").strip())
            )

        procedures = []
        for match in _CREATE_PROC.finditer(text):
            schema_name, name = _split_name(match.group("name"))
            procedures.append(
                RoutineInfo(
                    name=name,
                    schema_name=schema_name,
                    parameters=tuple(
                        " ".join(p.split()) for p in _SQL_PARAM.findall(match.group("params"))
                    ),
                )
            )

        functions = []
        for match in _CREATE_FUNCTION.finditer(text):
            schema_name, name = _split_name(match.group("name"))
            functions.append(
                RoutineInfo(
                    name=name,
                    schema_name=schema_name,
                    parameters=tuple(
                        " ".join(p.split()) for p in _SQL_PARAM.findall(match.group("params"))
                    ),
                    returns=" ".join(match.group("returns").split()),
                )
            )

        if not (tables or views or procedures or functions):
            warnings.append(ExtractionWarning(message="No schema objects found"))

        return ExtractionResult(
            source_kind=self.source_kind,
            tree=SchemaMetadata(
                tables=tuple(
                    TableInfo(
                        name=t["name"],
                        schema_name=t["schema_name"],
                        columns=tuple(
                            col.model_copy(update={"primary_key": True, "nullable": False})
                            if col.name.lower() in t["primary_key"]
                            else col
                            for col in t["columns"]
                        ),
                        indexes=tuple(t["indexes"]),
                        foreign_keys=tuple(t["foreign_keys"]),
                    )
                    for t in tables.values()
                ),
                views=tuple(views),
                stored_procedures=tuple(procedures),
                functions=tuple(functions),
            ),
            warnings=tuple(warnings),
        )

    @staticmethod
    def _lookup(
        tables: dict[str, dict],
        qualified: str,
        pos: int,
        text: str,
        warnings: list[ExtractionWarning],
    ) -> dict | None:
        schema_name, name = _split_name(qualified)
        table = tables.get(f"{schema_name}.{name}".lower())
        if table is None:
            warnings.append(
                ExtractionWarning(
                    message=f"Reference to undeclared table {schema_name}.{name}",
                    line=_line_of(text, pos),
                    element=name,
                )
            )
        return table

    def _table(
        self,
        schema_name: str,
        name: str,
        body: str,
        line: int,
        warnings: list[ExtractionWarning],
    ) -> dict:
        table: dict = {
            "schema_name": schema_name,
            "name": name,
            "columns": [],
            "indexes": [],
            "foreign_keys": [],
            "primary_key": set(),
        }

        for item in _split_top_level(body, opening="(", closing=")"):
            constraint = _TABLE_CONSTRAINT.match(item)
            if constraint:
                self._table_constraint(table, constraint)
                continue

            column = _COLUMN.match(item)
            if not column:
                warnings.append(
                    ExtractionWarning(
                        message=f"Could not parse column definition '{item[:60]}'",
                        line=line,
                        element=name,
                    )
                )
                continue

            col_name = _unquote(column.group("col"))
            rest = column.group("rest")
            rest_upper = rest.upper()
            primary_key = "PRIMARY KEY" in rest_upper
            default_match = re.search(r"\bDEFAULT\s+(\([^)]*\)+|'[^']*'|\S+)", rest, re.IGNORECASE)
            table["columns"].append(
                ColumnInfo(
                    name=col_name,
                    data_type=" ".join(_unquote(column.group("type")).split()),
                    nullable=not primary_key and "NOT NULL" not in rest_upper,
                    primary_key=primary_key,
                    identity="IDENTITY" in rest_upper,
                    default=default_match.group(1) if default_match else None,
                )
            )
            if primary_key:
                table["primary_key"].add(col_name.lower())

            reference = _REFERENCES.search(rest)
            if reference:
                ref_schema, ref_name = _split_name(reference.group("ref"))
                table["foreign_keys"].append(
                    ForeignKeyInfo(
                        columns=(col_name,),
                        referenced_table=f"{ref_schema}.{ref_name}",
                        referenced_columns=_column_list(reference.group("refcols") or ""),
                    )
                )

        return table

    @staticmethod
    def _table_constraint(table: dict, match: re.Match) -> None:
        kind = " ".join(match.group("kind").upper().split())
        rest = match.group("rest")
        constraint_name = _unquote(match.group("constraint")) if match.group("constraint") else None
        cols_match = _PAREN_COLS.search(rest)
        columns = _column_list(cols_match.group("cols")) if cols_match else ()

        if kind == "PRIMARY KEY":
            table["primary_key"].update(c.lower() for c in columns)
            table["indexes"].append(
                IndexInfo(
                    name=constraint_name or f"PK_{table['name']}",
                    columns=columns,
                    unique=True,
                    clustered="NONCLUSTERED" not in rest.upper(),
                )
            )
        elif kind == "FOREIGN KEY":
            reference = _REFERENCES.search(rest)
            if reference:
                ref_schema, ref_name = _split_name(reference.group("ref"))
                table["foreign_keys"].append(
                    ForeignKeyInfo(
                        name=constraint_name,
                        columns=columns,
                        referenced_table=f"{ref_schema}.{ref_name}",
                        referenced_columns=_column_list(reference.group("refcols") or ""),
                    )
                )
        elif kind == "UNIQUE":
            table["indexes"].append(
                IndexInfo(
                    name=constraint_name or f"UQ_{table['name']}_{'_'.join(columns)}",
                    columns=columns,
                    unique=True,
                )
            )
        elif kind == "INDEX":
            index_match = re.match(r"\s*(\[[^\]]+\]|\w+)", rest)
            table["indexes"].append(
                IndexInfo(
                    name=_unquote(index_match.group(1)) if index_match else "unnamed",
                    columns=columns,
                )
            )


# .csproj


def extract_project_metadata(project_file: str) -> ProjectFileMetadata:
    """Read assembly name, version, target framework and package references"""

    def first(tag: str) -> str | None:
        match = re.search(rf"<{tag}>\s*(.*?)\s*</{tag}>", project_file, re.DOTALL)
        return match.group(1) if match else None

    packages = tuple(
        (m.group("name"), m.group("version") or "")
        for m in re.finditer(
            r'<PackageReference\s+Include="(?P<name>[^"]+)"(?:\s+Version="(?P<version>[^"]*)")?',
            project_file,
        )
    )
    return ProjectFileMetadata(
        assembly_name=first("AssemblyName"),
        version=first("Version"),
        target_framework=first("TargetFramework") or first("TargetFrameworks"),
        package_references=packages,
    )


class MetadataExtractor:
    """Selects the analyzer for a source kind and runs it"""

    def __init__(self, analyzers: list[MetadataAnalyzer] | None = None):
        analyzers = analyzers if analyzers is not None else [ApiAnalyzer(), SchemaAnalyzer()]
        self.analyzers = {analyzer.source_kind: analyzer for analyzer in analyzers}

    def extract(self, raw_text: str, source_kind: SourceKind | str) -> ExtractionResult:
        """
        Extract a metadata tree from raw source text

        Args:
            raw_text: API source code or database DDL
            source_kind: Which analyzer to use

        Returns:
            ExtractionResult with the (possibly partial) tree and warnings

        Raises:
            ValidationError: If raw_text is empty or the source kind is unknown
        """
        if not raw_text or not raw_text.strip():
            raise ValidationError("Source text must not be empty")

        try:
            source_kind = SourceKind(source_kind)
        except ValueError as e:
            raise ValidationError(f"Unknown source kind: {source_kind!r}") from e

        analyzer = self.analyzers.get(source_kind)
        if analyzer is None:
            raise ValidationError(f"No analyzer registered for source kind '{source_kind.value}'")

        result = analyzer.analyze(raw_text)
        if result.warnings:
            logger.info(
                f"Extracted {source_kind.value} metadata with {len(result.warnings)} warning(s)"
            )
        return result


_default_extractor = MetadataExtractor()


def extract(raw_text: str, source_kind: SourceKind | str) -> ExtractionResult:
    """Extract metadata using the built-in regex analyzers"""
    return _default_extractor.extract(raw_text, source_kind)
