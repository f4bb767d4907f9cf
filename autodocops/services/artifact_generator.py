"""Cached generation of documentation artifacts"""

import asyncio
import json
import logging
import time
from typing import Any

from autodocops.config import config
from autodocops.exceptions import AutoDocOpsError, TransientGenerationFailure, ValidationError
from autodocops.models.artifact import Artifact, ArtifactType
from autodocops.models.metadata import ExtractionResult, SourceKind
from autodocops.models.project import Language
from autodocops.services.generation_cache import GenerationCache, cache_key
from autodocops.services.metadata_extractor import MetadataExtractor
from autodocops.services.model_client import ModelClient, ModelParams
from autodocops.services.output_parser import OutputParser
from autodocops.services.prompt_templates import PromptEngine
from autodocops.services.telemetry import TelemetryService
from autodocops.services.text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

# Artifact types whose input is raw source that the extractor understands
_EXTRACTABLE: dict[ArtifactType, SourceKind] = {
    ArtifactType.OPENAPI_SPEC: SourceKind.API,
    ArtifactType.SCHEMA_DOCUMENTATION: SourceKind.DATABASE,
    ArtifactType.ER_DIAGRAM: SourceKind.DATABASE,
    ArtifactType.DATA_DICTIONARY: SourceKind.DATABASE,
}

PARAMS_SEPARATOR = "\x1e"


def _validate_cached(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict) or not isinstance(value.get("content"), str):
        raise ValueError("Cached artifact must be an object with string content")
    if not isinstance(value.get("warnings", []), list):
        raise ValueError("Cached artifact warnings must be a list")
    return value


class ArtifactGenerator:
    """Render prompts and invoke the model through the generation cache"""

    def __init__(
        self,
        model_client: ModelClient,
        cache: GenerationCache | None = None,
        prompt_engine: PromptEngine | None = None,
        normalizer: TextNormalizer | None = None,
        output_parser: OutputParser | None = None,
        extractor: MetadataExtractor | None = None,
        telemetry: TelemetryService | None = None,
        model_params: ModelParams | None = None,
        prompt_max_tokens: int | None = None,
    ):
        self.model_client = model_client
        self.cache = cache or GenerationCache(namespace="artifact")
        if self.cache.validator is None:
            self.cache.validator = _validate_cached
        self.prompt_engine = prompt_engine or PromptEngine()
        self.normalizer = normalizer or TextNormalizer(model_name=config.generation_model)
        self.output_parser = output_parser or OutputParser()
        self.extractor = extractor or MetadataExtractor()
        self.telemetry = telemetry
        self.model_params = model_params or ModelParams()
        self.prompt_max_tokens = prompt_max_tokens or config.prompt_max_tokens

    def build_cache_key(
        self,
        source_text: str,
        artifact_type: ArtifactType,
        language: Language,
        extra_params: dict[str, Any] | None = None,
    ) -> str:
        """
        Cache key for a request

        The normalized input carries the caller parameters in canonical JSON,
        so requests differing only in base_url or namespace do not collide.
        """
        normalized = self.normalizer.normalize(source_text)
        if extra_params:
            canonical = json.dumps(extra_params, sort_keys=True, ensure_ascii=False, default=str)
            normalized = f"{normalized}{PARAMS_SEPARATOR}{canonical}"
        return cache_key(normalized, artifact_type.value, language.value)

    async def generate(
        self,
        artifact_type: ArtifactType | str,
        language: Language | str,
        source_text: str,
        extra_params: dict[str, Any] | None = None,
        project_id: str | None = None,
        metadata: ExtractionResult | None = None,
        timeout: float | None = None,
    ) -> Artifact:
        """
        Generate an artifact, reusing a cached result when one exists

        Args:
            artifact_type: Kind of artifact
            language: Output language
            source_text: Source code, DDL or OpenAPI text
            extra_params: Template parameters (base_url, package_name, namespace, ...)
            project_id: Owning project, if any
            metadata: Pre-extracted metadata; extracted here when None and applicable
            timeout: Overall bound in seconds, including time spent waiting on
                a concurrent identical request

        Raises:
            ValidationError: Empty input, unsupported combination or missing params
            TransientGenerationFailure: Model unavailable after retries, or timeout
            PermanentGenerationFailure: Model rejected the request
        """
        start_time = time.time()
        parameters = {
            "artifact_type": artifact_type,
            "language": language,
            "project_id": project_id,
        }

        try:
            artifact = await self._generate(
                artifact_type, language, source_text, extra_params, project_id, metadata, timeout
            )
        except AutoDocOpsError as e:
            if self.telemetry is not None:
                self.telemetry.log_operation("generate_artifact", parameters, error=e)
            raise

        if self.telemetry is not None:
            self.telemetry.log_operation(
                "generate_artifact",
                parameters,
                response={
                    "from_cache": artifact.from_cache,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
        return artifact

    async def _generate(
        self,
        artifact_type: ArtifactType | str,
        language: Language | str,
        source_text: str,
        extra_params: dict[str, Any] | None,
        project_id: str | None,
        metadata: ExtractionResult | None,
        timeout: float | None,
    ) -> Artifact:
        # All validation happens before the cache or the model are touched
        if not isinstance(source_text, str) or not source_text.strip():
            raise ValidationError("Source text must not be empty")
        self.prompt_engine.validate_params(artifact_type, language, extra_params)
        artifact_type = ArtifactType(artifact_type)
        language = Language(language)

        key = self.build_cache_key(source_text, artifact_type, language, extra_params)

        async def factory() -> dict[str, Any]:
            return await self._invoke_model(
                artifact_type, language, source_text, extra_params, metadata
            )

        try:
            if timeout is None:
                value, from_cache = await self.cache.get_or_create_with_status(key, factory)
            else:
                async with asyncio.timeout(timeout):
                    value, from_cache = await self.cache.get_or_create_with_status(key, factory)
        except TimeoutError as e:
            raise TransientGenerationFailure(
                f"Generating {artifact_type.value} exceeded {timeout}s"
            ) from e

        logger.info(
            f"Generated {artifact_type.value} ({language.value}) "
            f"{'from cache' if from_cache else 'from model'}"
        )

        return Artifact(
            content=value["content"],
            artifact_type=artifact_type,
            language=language,
            project_id=project_id,
            cache_key=key,
            from_cache=from_cache,
            warnings=list(value.get("warnings", [])),
        )

    async def _invoke_model(
        self,
        artifact_type: ArtifactType,
        language: Language,
        source_text: str,
        extra_params: dict[str, Any] | None,
        metadata: ExtractionResult | None,
    ) -> dict[str, Any]:
        if metadata is None and artifact_type in _EXTRACTABLE:
            metadata = self.extractor.extract(source_text, _EXTRACTABLE[artifact_type])
            for warning in metadata.warnings:
                logger.debug(f"Extraction warning for {artifact_type.value}: {warning.message}")

        prompt = self.prompt_engine.render(
            artifact_type,
            language,
            source_text=self.normalizer.truncate(source_text.strip(), self.prompt_max_tokens),
            metadata=metadata,
            extra_params=extra_params,
        )
        raw_output = await self.model_client.invoke(prompt, self.model_params)
        processed = self.output_parser.process(artifact_type, raw_output)
        return {"content": processed.content, "warnings": processed.warnings}
