"""Unit tests for the HTTP boundary and MCP error mapping"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.requests import Request

from autodocops import mcp_server
from autodocops.exceptions import (
    InvalidTransitionError,
    PermanentGenerationFailure,
    TransientGenerationFailure,
    UnsupportedCombinationError,
    ValidationError,
)
from autodocops.mcp_server import (
    documentation_route,
    failure_response,
    handle_chat,
    handle_documentation,
    health_check,
    status_for,
)
from autodocops.services.search import SearchService


def _post(slug: str, body: bytes) -> Request:
    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {
        "type": "http",
        "method": "POST",
        "path": f"/api/documentation/{slug}",
        "path_params": {"slug": slug},
        "headers": [(b"content-type", b"application/json")],
        "query_string": b"",
    }
    return Request(scope, receive)


class TestErrorMapping:
    """Test failure kinds and HTTP statuses"""

    @pytest.mark.parametrize(
        "exc,status",
        [
            (ValidationError("empty"), 400),
            (UnsupportedCombinationError("openapi_spec", "fr"), 400),
            (InvalidTransitionError("created", "analyzing"), 400),
            (PermanentGenerationFailure("HTTP 401", status_code=401), 502),
            (TransientGenerationFailure("HTTP 503 after 3 attempts"), 503),
            (RuntimeError("bug"), 500),
        ],
    )
    def test_status_for(self, exc, status):
        assert status_for(exc) == status

    def test_taxonomy_errors_expose_kind_and_message(self):
        status, body = failure_response(TransientGenerationFailure("Timeout: read timed out"))

        assert status == 503
        assert body == {
            "success": False,
            "error": {
                "kind": "transient_generation_failure",
                "message": "Timeout: read timed out",
            },
        }

    def test_unexpected_errors_hide_details(self):
        status, body = failure_response(KeyError("secret internals"))

        assert status == 500
        assert body["error"] == {"kind": "internal_error", "message": "Internal server error"}


class TestHandleDocumentation:
    """Test the documentation endpoint handler"""

    @pytest.mark.asyncio
    async def test_generates_artifact_for_slug(self, generator):
        status, body = await handle_documentation(
            "generate-openapi",
            {"source_text": "public class OrdersController {}", "language": "en"},
            generator,
        )

        assert status == 200
        assert body["success"] is True
        assert body["artifact"]["artifact_type"] == "openapi_spec"
        assert body["artifact"]["language"] == "en"
        assert body["message"] == "openapi_spec generated"

    @pytest.mark.asyncio
    async def test_dotnet_alias_shares_openapi_generation(self, generator, model_client):
        request = {"source_text": "public class OrdersController {}", "language": "en"}
        status, body = await handle_documentation("analyze-dotnet", request, generator)

        assert status == 200
        assert body["artifact"]["artifact_type"] == "openapi_spec"

        _, again = await handle_documentation("generate-openapi", request, generator)

        assert again["artifact"]["from_cache"] is True
        assert model_client.calls == 1

    @pytest.mark.asyncio
    async def test_second_request_reports_cache(self, generator):
        request = {"spec_text": '{"openapi": "3.1.0"}'}
        await handle_documentation("generate-guides", request, generator)

        status, body = await handle_documentation("generate-guides", request, generator)

        assert status == 200
        assert body["artifact"]["from_cache"] is True
        assert body["message"] == "usage_guide generated (from cache)"

    @pytest.mark.asyncio
    async def test_unknown_slug(self, generator, model_client):
        status, body = await handle_documentation(
            "generate-graphql", {"source_text": "x"}, generator
        )

        assert status == 400
        assert body["error"]["kind"] == "validation_error"
        assert model_client.calls == 0

    @pytest.mark.asyncio
    async def test_empty_source(self, generator):
        status, body = await handle_documentation("analyze-sqlserver", {}, generator)

        assert status == 400
        assert body["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_language(self, generator):
        status, body = await handle_documentation(
            "generate-openapi", {"source_text": "class A {}", "language": "fr"}, generator
        )

        assert status == 400
        assert "language" in body["error"]["message"]

    @pytest.mark.asyncio
    async def test_missing_extra_param(self, generator):
        status, body = await handle_documentation(
            "generate-postman", {"spec_text": "{}"}, generator
        )

        assert status == 400
        assert "base_url" in body["error"]["message"]

    @pytest.mark.asyncio
    async def test_model_failure_maps_to_bad_gateway(self, make_model_client, generator):
        generator.model_client = make_model_client(
            error=PermanentGenerationFailure("HTTP 401", status_code=401)
        )

        status, body = await handle_documentation(
            "generate-er-diagram", {"source_text": "CREATE TABLE A (Id INT)"}, generator
        )

        assert status == 502
        assert body["error"]["kind"] == "permanent_generation_failure"


class TestHandleChat:
    """Test the semantic chat handler"""

    @pytest.mark.asyncio
    async def test_answers_from_supplied_context(self, vector_store, embedder, generator):
        search = SearchService(vector_store, embedder, generator)

        status, body = await handle_chat(
            {"question": "What is an order?", "context": "Orders have a total.", "language": "en"},
            search,
        )

        assert status == 200
        assert body == {
            "success": True,
            "answer": "generated output",
            "context": "Orders have a total.",
        }

    @pytest.mark.asyncio
    async def test_missing_question(self, vector_store, embedder, generator):
        search = SearchService(vector_store, embedder, generator)

        status, body = await handle_chat({"context": "x"}, search)

        assert status == 400
        assert "question" in body["error"]["message"]

    @pytest.mark.asyncio
    async def test_no_context_available(self, vector_store, embedder, generator):
        search = SearchService(vector_store, embedder, generator)

        status, body = await handle_chat({"question": "Anything indexed?"}, search)

        assert status == 400
        assert body["error"]["kind"] == "validation_error"


class TestRoutes:
    """Test the starlette routes with services patched in"""

    @pytest.mark.asyncio
    async def test_non_json_body_rejected(self):
        response = await documentation_route(_post("generate-openapi", b"not json"))

        assert response.status_code == 400
        assert json.loads(response.body)["error"]["kind"] == "validation_error"

    @pytest.mark.asyncio
    async def test_service_initialization_failure(self):
        failing = AsyncMock(side_effect=ValueError("An API key is required"))
        with patch("autodocops.mcp_server._get_services", failing):
            response = await documentation_route(
                _post("generate-openapi", b'{"source_text": "class A {}"}')
            )

        assert response.status_code == 503
        assert json.loads(response.body)["error"]["kind"] == "unavailable"

    @pytest.mark.asyncio
    async def test_chat_slug_dispatches_to_search(self, vector_store, embedder, generator):
        services = MagicMock()
        services.search = SearchService(vector_store, embedder, generator)
        body = b'{"question": "Which tables exist?", "context": "Customers, Orders"}'

        with patch("autodocops.mcp_server._get_services", AsyncMock(return_value=services)):
            response = await documentation_route(_post("semantic-chat", body))

        payload = json.loads(response.body)
        assert response.status_code == 200
        assert payload["answer"] == "generated output"

    @pytest.mark.asyncio
    async def test_health_before_initialization(self):
        with patch.object(mcp_server, "_services", None):
            response = await health_check(MagicMock())

        assert json.loads(response.body) == {"status": "ok", "services": "not_initialized"}
