"""Post-processing of generated model output"""

import json
import logging
from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from autodocops.models.artifact import ArtifactType

logger = logging.getLogger(__name__)

# Fence info strings accepted as the body of each structured artifact type
_FENCE_LANGUAGES: dict[ArtifactType, frozenset[str]] = {
    ArtifactType.OPENAPI_SPEC: frozenset({"json"}),
    ArtifactType.POSTMAN_COLLECTION: frozenset({"json"}),
    ArtifactType.ER_DIAGRAM: frozenset({"mermaid"}),
    ArtifactType.TYPESCRIPT_SDK: frozenset({"typescript", "ts"}),
    ArtifactType.CSHARP_SDK: frozenset({"csharp", "cs", "c#"}),
}

_JSON_TYPES = frozenset({ArtifactType.OPENAPI_SPEC, ArtifactType.POSTMAN_COLLECTION})

# SDKs may legitimately span several files, one fence each
_MULTI_FILE_TYPES = frozenset({ArtifactType.TYPESCRIPT_SDK, ArtifactType.CSHARP_SDK})


@dataclass
class ProcessedOutput:
    """Artifact body after post-processing"""

    content: str
    warnings: list[str] = field(default_factory=list)
    unwrapped: bool = False


class OutputParser:
    """Strip markdown fences from structured artifacts and sanity-check them"""

    def __init__(self):
        self.md = MarkdownIt("commonmark")

    def process(self, artifact_type: ArtifactType, text: str) -> ProcessedOutput:
        """
        Post-process raw model output for one artifact type

        Markdown artifacts are returned unchanged. Structured artifacts have
        their fenced body extracted; JSON bodies that do not parse only add a
        warning.
        """
        artifact_type = ArtifactType(artifact_type)
        languages = _FENCE_LANGUAGES.get(artifact_type)
        if languages is None:
            return ProcessedOutput(content=text)

        result = ProcessedOutput(content=text.strip())
        tokens = self.md.parse(text)
        fences = [token for token in tokens if token.type == "fence"]
        block_tokens = [token for token in tokens if token.level == 0 and token.block]

        if len(fences) == 1 and len(block_tokens) == 1:
            # The whole output is one fenced block, whatever its language tag
            result.content = fences[0].content.strip()
            result.unwrapped = True
        else:
            matching = [
                token
                for token in fences
                if token.info.strip().split(" ")[0].lower() in languages
            ]
            if matching:
                if artifact_type in _MULTI_FILE_TYPES:
                    result.content = "\n\n".join(token.content.strip() for token in matching)
                else:
                    result.content = max(matching, key=lambda t: len(t.content)).content.strip()
                result.unwrapped = True

        if artifact_type in _JSON_TYPES:
            try:
                json.loads(result.content)
            except ValueError as e:
                result.warnings.append(f"Output is not well-formed JSON: {e}")

        if artifact_type == ArtifactType.ER_DIAGRAM and not result.content.lstrip().startswith(
            "erDiagram"
        ):
            result.warnings.append("Output does not start with an erDiagram declaration")

        for warning in result.warnings:
            logger.warning(f"{artifact_type.value}: {warning}")

        return result
