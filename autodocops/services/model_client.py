"""OpenAI-compatible chat completion and embedding client with retry logic"""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from autodocops.config import config
from autodocops.exceptions import PermanentGenerationFailure, TransientGenerationFailure

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class ModelParams(BaseModel):
    """Sampling parameters for one chat completion"""

    model: str = Field(default_factory=lambda: config.generation_model)
    temperature: float = Field(default_factory=lambda: config.temperature, ge=0.0, le=2.0)
    max_tokens: int = Field(default_factory=lambda: config.max_tokens, ge=1)


def is_transient_status(status_code: int) -> bool:
    """Rate limits, request timeouts and server errors are worth retrying"""
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


class ModelClient:
    """Async client for an OpenAI-compatible API"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize client with configuration

        Args:
            api_key: Provider API key (default from config)
            base_url: API base URL (default from config)
            timeout: Per-request timeout in seconds (default from config)
            max_retries: Attempts for transient failures (default from config)
            backoff_seconds: Base delay for exponential backoff (default from config)
            transport: Optional httpx transport, used by tests

        Raises:
            ValueError: If no API key is configured
        """
        api_key = api_key or config.openai_api_key
        if not api_key:
            raise ValueError("An API key is required (set OPENAI_API_KEY)")

        self.max_retries = max_retries if max_retries is not None else config.max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else config.retry_backoff_seconds
        )
        self.client = httpx.AsyncClient(
            base_url=(base_url or config.openai_base_url).rstrip("/") + "/",
            timeout=httpx.Timeout(timeout or config.request_timeout_seconds),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def invoke(
        self,
        prompt: str,
        params: ModelParams | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Run a chat completion for a single user prompt

        Args:
            prompt: Prompt text
            params: Sampling parameters (defaults from config)
            timeout: Overall bound in seconds across all attempts

        Returns:
            The content of the first choice

        Raises:
            TransientGenerationFailure: Retries exhausted or overall timeout hit
            PermanentGenerationFailure: Non-retryable status or malformed response
        """
        params = params or ModelParams()
        payload = {
            "model": params.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        data = await self._bounded(self._post_with_retries("chat/completions", payload), timeout)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise PermanentGenerationFailure(f"Malformed chat completion response: {e!r}") from e
        if not isinstance(content, str):
            raise PermanentGenerationFailure("Chat completion content is not a string")
        return content

    async def embed(
        self, text: str | list[str], model: str | None = None, timeout: float | None = None
    ) -> list[float] | list[list[float]]:
        """
        Create embeddings

        Args:
            text: A single text, or a list of texts for a batch request
            model: Embedding model (default from config)
            timeout: Overall bound in seconds across all attempts

        Returns:
            One vector for a single text, or one vector per input text in order
        """
        payload = {"model": model or config.embedding_model, "input": text}
        data = await self._bounded(self._post_with_retries("embeddings", payload), timeout)

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [[float(x) for x in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PermanentGenerationFailure(f"Malformed embedding response: {e!r}") from e

        expected = 1 if isinstance(text, str) else len(text)
        if len(vectors) != expected:
            raise PermanentGenerationFailure(
                f"Expected {expected} embedding(s), got {len(vectors)}"
            )
        return vectors[0] if isinstance(text, str) else vectors

    async def _bounded(self, coro, timeout: float | None) -> Any:
        if timeout is None:
            return await coro
        try:
            async with asyncio.timeout(timeout):
                return await coro
        except TimeoutError as e:
            raise TransientGenerationFailure(f"Model call exceeded {timeout}s") from e

    async def _post_with_retries(self, path: str, payload: dict[str, Any]) -> Any:
        """Execute a POST with retry logic, returning the decoded JSON body"""
        last_message = ""
        last_status: int | None = None

        for attempt in range(self.max_retries):
            try:
                response = await self.client.post(path, json=payload)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                error_type = "Timeout" if isinstance(e, httpx.TimeoutException) else "Network error"
                last_message = f"{error_type}: {e}"
                last_status = None
            else:
                if 200 <= response.status_code < 300:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise PermanentGenerationFailure(
                            f"Response from {path} is not valid JSON",
                            status_code=response.status_code,
                            attempts=attempt + 1,
                        ) from e

                # Client errors other than rate limiting are not retried
                if not is_transient_status(response.status_code):
                    logger.warning(f"Client error {response.status_code} from {path}")
                    raise PermanentGenerationFailure(
                        f"HTTP {response.status_code} from {path}",
                        status_code=response.status_code,
                        attempts=attempt + 1,
                    )

                last_message = f"HTTP {response.status_code}"
                last_status = response.status_code

            if attempt < self.max_retries - 1:
                wait_time = self.backoff_seconds * 2**attempt
                logger.warning(
                    f"{last_message} from {path}, "
                    f"retry {attempt + 1}/{self.max_retries} after {wait_time}s"
                )
                await asyncio.sleep(wait_time)

        logger.error(f"All {self.max_retries} attempts failed for {path}: {last_message}")
        raise TransientGenerationFailure(
            f"{last_message} after {self.max_retries} attempts",
            status_code=last_status,
            attempts=self.max_retries,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ModelClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
