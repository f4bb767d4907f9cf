"""CLI command that runs the documentation pipeline for a project definition"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from autodocops.exceptions import AutoDocOpsError, ValidationError
from autodocops.models.pipeline_result import PipelineResult
from autodocops.models.project import Project
from autodocops.services.service_factory import build_services
from autodocops.utils.project_loader import build_project, load_project_definition, read_sources

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI (stdout)"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _print_summary(project: Project, result: PipelineResult, db_path: str | None) -> None:
    print("\n" + "=" * 80)
    print("Documentation Generated")
    print("=" * 80)
    print(f"Project: {project.name} ({project.type.value}, v{project.version})")
    print(f"Status: {result.status.value}")
    print(f"Artifacts: {len(result.artifacts)} ({result.cache_hits} from cache)")
    for artifact in result.artifacts:
        source = "cache" if artifact.from_cache else "model"
        print(f"  • {artifact.artifact_type.value}: {len(artifact.content)} chars ({source})")
    print(f"Indexed documents: {len(result.indexed_document_ids)}")
    if result.warnings:
        print(f"\nWarnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  ⚠ {warning}")
    print(f"\nDuration: {result.duration_seconds:.2f}s")
    if db_path:
        print(f"Database path: {db_path}")
    print("=" * 80)


async def run(definition_path: str | Path, db_path: str | None = None) -> int:
    """
    Load a project definition and run the full pipeline

    Args:
        definition_path: Path to the project.yaml file
        db_path: SQLite database override

    Returns:
        int: Exit code (0 success, 1 pipeline failure, 2 invalid definition)
    """
    definition_path = Path(definition_path)

    try:
        definition = load_project_definition(definition_path)
        sources = read_sources(definition, definition_path.parent)
        project = build_project(definition)
    except (FileNotFoundError, ValueError) as e:
        print(f"✗ Invalid project definition: {e}")
        return EXIT_INVALID

    if sources.project_metadata is not None:
        package_count = len(sources.project_metadata.package_references)
        print(
            f"✓ Project file: {sources.project_metadata.assembly_name or 'unknown assembly'} "
            f"({sources.project_metadata.target_framework or 'unknown framework'}, "
            f"{package_count} package references)"
        )

    try:
        services = await build_services(db_path=db_path)
    except ValueError as e:
        print(f"✗ Failed to initialize services: {e}")
        return EXIT_FAILED

    try:
        await services.vector_store.save_project(project)
        result = await services.orchestrator.run(
            project,
            api_source=sources.api_source,
            schema_source=sources.schema_source,
            updated_by=definition.project.owner,
        )
    except ValidationError as e:
        print(f"✗ {e.kind}: {e.message}")
        return EXIT_INVALID
    except AutoDocOpsError as e:
        print(f"✗ Pipeline failed ({e.kind}): {e.message}")
        return EXIT_FAILED
    finally:
        await services.close()

    _print_summary(project, result, db_path or services.vector_store.db_path)
    return EXIT_OK


def main() -> None:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        prog="autodocops-run", description="Generate and index documentation for a project"
    )
    parser.add_argument("definition", help="Path to the project definition YAML file")
    parser.add_argument("--db-path", default=None, help="SQLite database path override")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    # Load .env file first (won't override existing env vars)
    if Path(".env").exists():
        load_dotenv()

    setup_logging(args.verbose)
    sys.exit(asyncio.run(run(args.definition, db_path=args.db_path)))


if __name__ == "__main__":
    main()
