"""Unit tests for model output post-processing"""

import pytest

from autodocops.models.artifact import ArtifactType
from autodocops.services.output_parser import OutputParser


@pytest.fixture
def parser():
    return OutputParser()


class TestFenceUnwrapping:
    """Test extraction of fenced artifact bodies"""

    def test_single_fence_unwrapped(self, parser):
        result = parser.process(ArtifactType.OPENAPI_SPEC, '```json\n{"openapi": "3.1.0"}\n```')

        assert result.content == '{"openapi": "3.1.0"}'
        assert result.unwrapped
        assert result.warnings == []

    def test_fence_surrounded_by_prose(self, parser):
        text = (
            "Here is the collection:\n\n"
            '```json\n{"info": {"name": "Shop"}}\n```\n\n'
            "Import it into Postman."
        )

        result = parser.process(ArtifactType.POSTMAN_COLLECTION, text)

        assert result.content == '{"info": {"name": "Shop"}}'
        assert result.unwrapped

    def test_multi_file_sdk_fences_joined(self, parser):
        text = (
            "client.ts:\n\n```typescript\nexport class Client {}\n```\n\n"
            "models.ts:\n\n```ts\nexport interface Order {}\n```\n"
        )

        result = parser.process(ArtifactType.TYPESCRIPT_SDK, text)

        assert result.content == "export class Client {}\n\nexport interface Order {}"

    def test_markdown_artifacts_untouched(self, parser):
        text = "# Guide\n\n```bash\ncurl https://api.example.com\n```\n"

        result = parser.process(ArtifactType.USAGE_GUIDE, text)

        assert result.content == text
        assert not result.unwrapped


class TestValidation:
    """Test non-fatal sanity checks"""

    def test_malformed_json_adds_warning(self, parser):
        result = parser.process(ArtifactType.OPENAPI_SPEC, '{"openapi": ')

        assert result.content == '{"openapi":'
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Output is not well-formed JSON")

    def test_er_diagram_accepted(self, parser):
        result = parser.process(
            ArtifactType.ER_DIAGRAM, "```mermaid\nerDiagram\n  CUSTOMER ||--o{ ORDER : places\n```"
        )

        assert result.content.startswith("erDiagram")
        assert result.warnings == []

    def test_er_diagram_without_declaration_warns(self, parser):
        result = parser.process(ArtifactType.ER_DIAGRAM, "graph TD\n  A --> B")

        assert result.warnings == ["Output does not start with an erDiagram declaration"]
