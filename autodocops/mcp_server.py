"""MCP server exposing artifact generation, semantic search and chat"""

import asyncio
import logging
from typing import Any

import pydantic
from apscheduler.schedulers.background import BackgroundScheduler
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from starlette.requests import Request
from starlette.responses import JSONResponse

from autodocops.config import config
from autodocops.exceptions import (
    AutoDocOpsError,
    PermanentGenerationFailure,
    TransientGenerationFailure,
    ValidationError,
)
from autodocops.models.artifact import ArtifactType
from autodocops.models.query import SimilarityQuery
from autodocops.models.requests import ChatRequest, DocumentationRequest
from autodocops.models.search_result import ChatAnswer, SemanticSearchOutput
from autodocops.services.artifact_generator import ArtifactGenerator
from autodocops.services.cache_maintenance import CacheMaintenance
from autodocops.services.search import SearchService
from autodocops.services.service_factory import AppServices, build_services
from autodocops.services.telemetry import get_telemetry_service

logger = logging.getLogger(__name__)

CHAT_SLUG = ArtifactType.CHAT_ANSWER.slug

# MCP application and its tools
mcp = FastMCP(name="autodocops", version="1.0.0")

# Built lazily by the first tool call or by startup
_services: AppServices | None = None
_services_lock = asyncio.Lock()

# Background cache maintenance
_cache_maintenance: CacheMaintenance | None = None
_scheduler: BackgroundScheduler | None = None


async def _get_services() -> AppServices:
    """Get or initialize services"""
    global _services

    async with _services_lock:
        if _services is None:
            _services = await build_services()
    return _services


def status_for(exc: Exception) -> int:
    """HTTP status for a failure"""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, PermanentGenerationFailure):
        return 502
    if isinstance(exc, TransientGenerationFailure):
        return 503
    return 500


def failure_response(exc: Exception) -> tuple[int, dict[str, Any]]:
    """Structured failure body; only taxonomy errors expose their message"""
    if isinstance(exc, AutoDocOpsError):
        error = exc.to_dict()
    else:
        error = {"kind": "internal_error", "message": "Internal server error"}
    return status_for(exc), {"success": False, "error": error}


def _request_error(e: pydantic.ValidationError) -> ValidationError:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in e.errors()
    )
    return ValidationError(f"Invalid request body: {details}")


async def handle_documentation(
    slug: str, body: Any, generator: ArtifactGenerator
) -> tuple[int, dict[str, Any]]:
    """Generate the artifact named by a URL slug"""
    try:
        try:
            artifact_type = ArtifactType.from_slug(slug)
        except KeyError as e:
            raise ValidationError(f"Unknown documentation endpoint: {slug}") from e
        try:
            request = DocumentationRequest.model_validate(body)
        except pydantic.ValidationError as e:
            raise _request_error(e) from e

        artifact = await generator.generate(
            artifact_type,
            request.language,
            source_text=request.text,
            extra_params=request.extra_params or None,
            project_id=request.project_id,
        )
    except Exception as e:
        if not isinstance(e, AutoDocOpsError):
            logger.error(f"Unexpected error generating {slug}: {e}", exc_info=True)
        return failure_response(e)

    return 200, {
        "success": True,
        "artifact": artifact.model_dump(mode="json"),
        "message": f"{artifact_type.value} generated"
        + (" (from cache)" if artifact.from_cache else ""),
    }


async def handle_chat(body: Any, search: SearchService) -> tuple[int, dict[str, Any]]:
    """Answer a question grounded on the indexed documentation"""
    try:
        try:
            request = ChatRequest.model_validate(body)
        except pydantic.ValidationError as e:
            raise _request_error(e) from e

        answer = await search.answer_question(
            request.question,
            language=request.language,
            project_id=request.project_id,
            context=request.context,
        )
    except Exception as e:
        if not isinstance(e, AutoDocOpsError):
            logger.error(f"Unexpected error in semantic chat: {e}", exc_info=True)
        return failure_response(e)

    return 200, {"success": True, "answer": answer.answer, "context": answer.context}


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


@mcp.custom_route("/api/documentation/{slug}", methods=["POST"])
async def documentation_route(request: Request) -> JSONResponse:
    slug = request.path_params["slug"]
    body = await _json_body(request)
    if body is None:
        status, payload = failure_response(ValidationError("Request body must be JSON"))
        return JSONResponse(payload, status_code=status)

    try:
        services = await _get_services()
    except Exception as e:
        logger.error(f"Service initialization failed: {e}")
        return JSONResponse(
            {
                "success": False,
                "error": {"kind": "unavailable", "message": "Service not initialized"},
            },
            status_code=503,
        )

    if slug == CHAT_SLUG:
        status, payload = await handle_chat(body, services.search)
    else:
        status, payload = await handle_documentation(slug, body, services.generator)
    return JSONResponse(payload, status_code=status)


def _tool_error(e: AutoDocOpsError) -> ToolError:
    return ToolError(f"{e.kind}: {e.message}")


@mcp.tool()
async def generate_artifact(
    artifact_type: str,
    source_text: str,
    language: str = "es",
    extra_params: dict[str, Any] | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    """Generate a documentation artifact from source code, DDL or an OpenAPI document

    Args:
        artifact_type: openapi_spec, usage_guide, postman_collection, typescript_sdk,
            csharp_sdk, schema_documentation, er_diagram or data_dictionary
        source_text: Input text for the artifact
        language: Output language (es, en)
        extra_params: base_url (Postman), package_name (TypeScript SDK) or namespace (C# SDK)
        project_id: Owning project, if any

    Returns:
        dict: The generated artifact
    """
    services = await _get_services()
    try:
        artifact = await services.generator.generate(
            artifact_type,
            language,
            source_text=source_text,
            extra_params=extra_params,
            project_id=project_id,
        )
    except AutoDocOpsError as e:
        raise _tool_error(e) from e
    return artifact.model_dump(mode="json")


@mcp.tool()
async def semantic_search(
    query: str,
    limit: int | None = None,
    threshold: float | None = None,
    project_id: str | None = None,
) -> SemanticSearchOutput:
    """Search generated documentation by meaning

    Args:
        query: Natural language query
        limit: Maximum number of results (1-100)
        threshold: Minimum cosine similarity (-1.0 to 1.0)
        project_id: Restrict the search to one project

    Returns:
        SemanticSearchOutput: Ranked matches with query metadata
    """
    services = await _get_services()
    options: dict[str, Any] = {"text": query, "project_id": project_id}
    if limit is not None:
        options["limit"] = limit
    if threshold is not None:
        options["threshold"] = threshold
    try:
        search_query = SimilarityQuery(**options)
    except pydantic.ValidationError as e:
        raise _tool_error(_request_error(e)) from e

    try:
        return await services.search.query(search_query)
    except AutoDocOpsError as e:
        raise _tool_error(e) from e


@mcp.tool()
async def semantic_chat(
    question: str,
    language: str = "es",
    project_id: str | None = None,
    context: str | None = None,
) -> ChatAnswer:
    """Answer a question using the indexed documentation as context

    Args:
        question: The question
        language: Answer language (es, en)
        project_id: Project whose documentation is searched
        context: Context used when nothing relevant is indexed

    Returns:
        ChatAnswer: Answer, context and the documents it was grounded on
    """
    services = await _get_services()
    try:
        return await services.search.answer_question(
            question, language=language, project_id=project_id, context=context
        )
    except AutoDocOpsError as e:
        raise _tool_error(e) from e


# Health check endpoint
@mcp.custom_route("/", methods=["GET"])
@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    if _services is None:
        return JSONResponse({"status": "ok", "services": "not_initialized"})
    healthy = await _services.vector_store.health_check()
    return JSONResponse(
        {"status": "ok" if healthy else "degraded", "services": "initialized"},
        status_code=200 if healthy else 503,
    )


def _start_maintenance() -> None:
    """Begin purging expired cache entries in the background"""
    global _cache_maintenance, _scheduler

    try:
        services = asyncio.run(_get_services())
    except Exception as e:
        # Services are retried lazily on the first request
        logger.error(f"Services unavailable at startup, cache purge not scheduled: {e}")
        return

    _scheduler = BackgroundScheduler(daemon=True)
    _cache_maintenance = CacheMaintenance(services.caches)
    _cache_maintenance.schedule(_scheduler, config.cache_purge_interval_hours)
    _scheduler.start()


def _stop_maintenance() -> None:
    global _cache_maintenance, _scheduler

    if _cache_maintenance is not None:
        _cache_maintenance.unschedule()
        _cache_maintenance = None
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None


def main() -> None:
    """Entry point for the MCP server"""
    logging.basicConfig(level=logging.INFO)
    get_telemetry_service()
    _start_maintenance()

    try:
        mcp.run(transport="streamable-http", host=config.mcp_host, port=config.mcp_port)
    finally:
        _stop_maintenance()


if __name__ == "__main__":
    main()
