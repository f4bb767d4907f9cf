"""Wires the pipeline services together from configuration"""

import logging
from dataclasses import dataclass, field

from autodocops.config import config
from autodocops.services.artifact_generator import ArtifactGenerator
from autodocops.services.embedder import (
    EmbeddingBackend,
    Embedder,
    FastEmbedBackend,
    RemoteEmbeddingBackend,
)
from autodocops.services.generation_cache import GenerationCache, SqliteCacheStore
from autodocops.services.model_client import ModelClient
from autodocops.services.pipeline_orchestrator import PipelineOrchestrator
from autodocops.services.search import SearchService
from autodocops.services.telemetry import TelemetryService, get_telemetry_service
from autodocops.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Shared service instances for one process"""

    model_client: ModelClient
    vector_store: VectorStore
    generator: ArtifactGenerator
    embedder: Embedder
    search: SearchService
    orchestrator: PipelineOrchestrator
    caches: list[GenerationCache] = field(default_factory=list)
    cache_store: SqliteCacheStore | None = None

    async def close(self) -> None:
        await self.embedder.close()
        await self.model_client.aclose()
        self.vector_store.close()
        if self.cache_store is not None:
            self.cache_store.close()


async def build_services(
    db_path: str | None = None,
    telemetry: TelemetryService | None = None,
) -> AppServices:
    """
    Create and initialize every service from config

    The artifact and embedding caches share one SQLite store when
    config.cache_db_path is set.

    Raises:
        ValueError: If no model API key is configured
    """
    telemetry = telemetry or get_telemetry_service()
    model_client = ModelClient()

    cache_store = SqliteCacheStore(config.cache_db_path) if config.cache_db_path else None
    artifact_cache = GenerationCache(store=cache_store, namespace="artifact")

    backend: EmbeddingBackend
    if config.embedding_provider.lower() == "fastembed":
        backend = FastEmbedBackend()
    else:
        backend = RemoteEmbeddingBackend(model_client)
    embedding_cache = GenerationCache(
        store=cache_store, namespace=f"embedding:{backend.model_name}"
    )
    embedder = Embedder(backend=backend, cache=embedding_cache)

    vector_store = VectorStore(db_path or config.db_path)
    await vector_store.initialize()

    generator = ArtifactGenerator(model_client, cache=artifact_cache, telemetry=telemetry)
    search = SearchService(vector_store, embedder, generator=generator, telemetry=telemetry)
    orchestrator = PipelineOrchestrator(generator, embedder, vector_store)

    logger.info(
        f"Services ready (model={config.generation_model}, "
        f"embeddings={config.embedding_provider}:{backend.model_name})"
    )
    return AppServices(
        model_client=model_client,
        vector_store=vector_store,
        generator=generator,
        embedder=embedder,
        search=search,
        orchestrator=orchestrator,
        caches=[artifact_cache, embedding_cache],
        cache_store=cache_store,
    )
