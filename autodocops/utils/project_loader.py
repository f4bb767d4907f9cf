"""Utility to load project definitions from YAML files"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from autodocops.models.metadata import ProjectFileMetadata
from autodocops.models.project import ConnectionConfig, Language, Project
from autodocops.models.project_definition import ProjectDefinition
from autodocops.services.metadata_extractor import extract_project_metadata

logger = logging.getLogger(__name__)

LANGUAGE_ENV = "AUTODOCOPS_LANGUAGE"


@dataclass
class ProjectSources:
    """Source text read from the files a definition lists"""

    api_source: str | None = None
    schema_source: str | None = None
    project_metadata: ProjectFileMetadata | None = None


def load_project_definition(definition_path: str | Path = "project.yaml") -> ProjectDefinition:
    """
    Load a project definition from a YAML file

    Args:
        definition_path: Path to the project.yaml file

    Returns:
        ProjectDefinition object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the definition is invalid
    """
    definition_path = Path(definition_path)

    if not definition_path.exists():
        raise FileNotFoundError(f"Project definition file not found: {definition_path}")

    try:
        with open(definition_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError("Project definition file is empty")

        definition = ProjectDefinition(**data)

        # Allow environment variable to override the output language
        language_env = os.getenv(LANGUAGE_ENV)
        if language_env:
            language = Language(language_env.strip().lower())
            if definition.project.language != language:
                logger.info(
                    f"Overriding project.language from env: {language.value} "
                    f"(was: {definition.project.language.value})"
                )
                definition.project.language = language

        logger.info(f"Loaded project definition from {definition_path}")
        logger.info(f"  Project: {definition.project.name} ({definition.project.type.value})")
        logger.info(f"  Preset: {definition.documentation.preset.value}")

        return definition

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in project definition: {e}") from e
    except Exception as e:
        raise ValueError(f"Failed to load project definition: {e}") from e


def _read_all(base_dir: Path, names: list[str]) -> str | None:
    if not names:
        return None
    parts = []
    for name in names:
        path = base_dir / name
        parts.append(path.read_text(encoding="utf-8"))
        logger.debug(f"Read {path}")
    return "\n\n".join(parts)


def read_sources(definition: ProjectDefinition, base_dir: str | Path) -> ProjectSources:
    """Read the listed source files, resolved relative to base_dir"""
    base_dir = Path(base_dir)
    sources = definition.sources

    project_metadata = None
    if sources.project_file:
        csproj = (base_dir / sources.project_file).read_text(encoding="utf-8")
        project_metadata = extract_project_metadata(csproj)

    return ProjectSources(
        api_source=_read_all(base_dir, sources.api_files),
        schema_source=_read_all(base_dir, sources.schema_files),
        project_metadata=project_metadata,
    )


def build_project(definition: ProjectDefinition) -> Project:
    """Create a configured Project from a definition"""
    section = definition.project
    project = Project(
        name=section.name,
        description=section.description,
        type=section.type,
        preferred_language=section.language,
        version=section.version,
        created_by=section.owner,
        connection_config=ConnectionConfig(),
        documentation_config=definition.documentation.to_config(),
    )
    project.mark_configured(section.owner)
    return project
