"""Shared fakes for the model, embedding backend, tokenizer and clock"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from autodocops.services.artifact_generator import ArtifactGenerator
from autodocops.services.embedder import Embedder
from autodocops.services.generation_cache import GenerationCache
from autodocops.services.text_normalizer import TextNormalizer
from autodocops.services.vector_store import VectorStore


class FakeEncoder:
    """Tokenizer stand-in: every four characters form one token"""

    def __init__(self, chunk: int = 4):
        self.chunk = chunk
        self.vocab: dict[str, int] = {}
        self.pieces: list[str] = []

    def encode(self, text: str) -> list[int]:
        tokens = []
        for i in range(0, len(text), self.chunk):
            piece = text[i : i + self.chunk]
            if piece not in self.vocab:
                self.vocab[piece] = len(self.pieces)
                self.pieces.append(piece)
            tokens.append(self.vocab[piece])
        return tokens

    def decode(self, tokens: list[int]) -> str:
        return "".join(self.pieces[token] for token in tokens)


class FakeModelClient:
    """Records prompts and answers with a canned or computed response"""

    def __init__(self, response="generated output", delay: float = 0.0, error=None):
        self.response = response
        self.delay = delay
        self.error = error
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def invoke(self, prompt, params=None, timeout=None):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(prompt)
        return self.response


# Small vocabulary so related texts get related vectors
KEYWORDS = ("api", "endpoint", "product", "order", "table", "column", "customer", "sdk")


class FakeEmbeddingBackend:
    """Keyword-count embeddings with a constant bias component"""

    model_name = "fake-embedding"

    def __init__(self):
        self.calls: list[list[str]] = []
        self.closed = False

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(text) for text in texts]

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(word)) for word in KEYWORDS] + [1.0]

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def normalizer():
    return TextNormalizer(encoder=FakeEncoder())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def embedding_backend():
    return FakeEmbeddingBackend()


@pytest.fixture
def embedder(embedding_backend, normalizer):
    return Embedder(backend=embedding_backend, cache=GenerationCache(), normalizer=normalizer)


@pytest.fixture
def generator(model_client, normalizer):
    return ArtifactGenerator(model_client, cache=GenerationCache(), normalizer=normalizer)


@pytest.fixture
async def vector_store():
    store = VectorStore(db_path=":memory:")
    await store.initialize()
    yield store
    store.close()


@pytest.fixture
def char_normalizer():
    """Normalizer whose tokens are single characters"""
    return TextNormalizer(encoder=FakeEncoder(chunk=1))


@pytest.fixture
def make_model_client():
    return FakeModelClient


@pytest.fixture
def make_backend():
    return FakeEmbeddingBackend
