"""Embedding generation with normalization, truncation and caching"""

import asyncio
import logging
import math
from typing import Protocol

from fastembed import TextEmbedding

from autodocops.config import config
from autodocops.exceptions import PermanentGenerationFailure, ValidationError
from autodocops.services.generation_cache import GenerationCache, cache_key
from autodocops.services.model_client import ModelClient
from autodocops.services.text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)


class EmbeddingBackend(Protocol):
    """Something that turns texts into vectors"""

    model_name: str

    async def embed(self, texts: list[str]) -> list[list[float]]: ...

    async def close(self) -> None: ...


class RemoteEmbeddingBackend:
    """Embeddings from an OpenAI-compatible /embeddings endpoint"""

    def __init__(self, client: ModelClient, model_name: str | None = None):
        self.client = client
        self.model_name = model_name or config.embedding_model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return await self.client.embed(texts, model=self.model_name)

    async def close(self) -> None:
        await self.client.aclose()


class FastEmbedBackend:
    """Embeddings from a local model via fastembed"""

    def __init__(self, model_name: str | None = None, cache_dir: str | None = None):
        self.model_name = model_name or config.embedding_model
        self.cache_dir = cache_dir or config.fastembed_cache_dir
        self._model: TextEmbedding | None = None

    @property
    def model(self) -> TextEmbedding:
        if self._model is None:
            self._model = TextEmbedding(
                model_name=self.model_name, cache_dir=self.cache_dir, threads=6
            )
        return self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        # fastembed is synchronous and returns a generator of numpy arrays
        def run() -> list[list[float]]:
            return [embedding.tolist() for embedding in self.model.embed(texts)]

        return await asyncio.to_thread(run)

    async def close(self) -> None:
        """Drop the loaded model so its memory can be reclaimed"""
        self._model = None


def create_backend(provider: str | None = None) -> EmbeddingBackend:
    """Build the embedding backend named by config.embedding_provider"""
    provider = (provider or config.embedding_provider).lower()
    if provider == "fastembed":
        return FastEmbedBackend()
    if provider == "openai":
        return RemoteEmbeddingBackend(ModelClient())
    raise ValueError(f"Unknown embedding provider: {provider}")


class Embedder:
    """Generate embeddings for documents and queries with caching"""

    def __init__(
        self,
        backend: EmbeddingBackend | None = None,
        cache: GenerationCache | None = None,
        normalizer: TextNormalizer | None = None,
        max_tokens: int | None = None,
        dimension: int | None = None,
    ):
        """
        Initialize the embedder

        Args:
            backend: Embedding backend (default from config.embedding_provider)
            cache: Cache for vectors (default: in-memory, namespaced by model)
            normalizer: Text normalizer used before embedding
            max_tokens: Token budget for embedded text (default from config)
            dimension: Expected vector length; inferred from the first vector if None
        """
        self.backend = backend or create_backend()
        self.model_name = self.backend.model_name
        self.normalizer = normalizer or TextNormalizer()
        self.max_tokens = max_tokens or config.embedding_max_tokens
        if dimension is None and self.model_name == config.embedding_model:
            dimension = config.embedding_dimension
        self.dimension = dimension
        self.cache = cache or GenerationCache(
            namespace=f"embedding:{self.model_name}", validator=self._validate_vector
        )
        if self.cache.validator is None:
            self.cache.validator = self._validate_vector

    def _validate_vector(self, value: object) -> list[float]:
        if not isinstance(value, list) or not value:
            raise ValueError("Embedding must be a non-empty list")
        vector = [float(x) for x in value]
        if not all(math.isfinite(x) for x in vector):
            raise ValueError("Embedding contains non-finite values")
        if self.dimension is not None and len(vector) != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )
        return vector

    def _accept(self, vector: list[float]) -> list[float]:
        """Validate a freshly generated vector, fixing the dimension on first use"""
        if self.dimension is None and isinstance(vector, list) and vector:
            self.dimension = len(vector)
        try:
            return self._validate_vector(vector)
        except (TypeError, ValueError) as e:
            raise PermanentGenerationFailure(
                f"Invalid embedding from {self.model_name}: {e}"
            ) from e

    def prepare(self, text: str) -> str:
        """Normalize and truncate text to the embedding token budget"""
        if not text or not text.strip():
            raise ValidationError("Text to embed must not be empty")
        return self.normalizer.prepare(text, self.max_tokens)

    async def embed_text(self, text: str) -> list[float]:
        """
        Embed one text, normalized and truncated, through the cache

        Args:
            text: Text to embed

        Returns:
            list[float]: Embedding vector (1536 dimensions for text-embedding-3-small)
        """
        normalized = self.prepare(text)

        async def generate() -> list[float]:
            vectors = await self.backend.embed([normalized])
            return self._accept(vectors[0])

        vector = await self.cache.get_or_create(cache_key(normalized), generate)
        return list(vector)

    async def embed_batch(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """
        Embed many texts, calling the backend in batches

        Cached texts are served from the cache, duplicates are embedded once
        and texts another caller is already embedding are awaited.

        Args:
            texts: Texts to embed, in order
            batch_size: Number of texts per backend call (default from config)

        Returns:
            list[list[float]]: Embedding vectors in input order
        """
        if not texts:
            return []

        batch_size = batch_size or config.embedding_batch_size
        prepared = [self.prepare(text) for text in texts]
        keys = [cache_key(text) for text in prepared]
        text_for = dict(zip(keys, prepared, strict=True))

        async def generate(missing: list[str]) -> list[list[float]]:
            vectors: list[list[float]] = []
            for i in range(0, len(missing), batch_size):
                batch = [text_for[key] for key in missing[i : i + batch_size]]
                batch_vectors = await self.backend.embed(batch)
                if len(batch_vectors) != len(batch):
                    raise PermanentGenerationFailure(
                        f"Expected {len(batch)} embeddings, got {len(batch_vectors)}"
                    )
                vectors.extend(self._accept(vector) for vector in batch_vectors)
                logger.debug(f"Embedded {len(vectors)}/{len(missing)} texts")
            return vectors

        vectors = await self.cache.get_or_create_many(keys, generate)
        return [list(vectors[key]) for key in keys]

    async def close(self) -> None:
        await self.backend.close()
