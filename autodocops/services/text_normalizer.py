"""Whitespace normalization and token-budget truncation"""

import logging
import re
from typing import Protocol

import tiktoken

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_LAST_WORD = re.compile(r"\s+\S*\Z")


class TokenEncoder(Protocol):
    """The subset of a tiktoken Encoding used for truncation"""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TextNormalizer:
    """Normalize text and cut it to a token budget on a whole-word boundary"""

    def __init__(self, encoder: TokenEncoder | None = None, model_name: str | None = None):
        if encoder is not None:
            self.encoder = encoder
            return

        # Initialize tiktoken encoder for OpenAI models
        try:
            self.encoder = tiktoken.encoding_for_model(model_name or "")
        except KeyError:
            # Fallback to cl100k_base (used by gpt-3.5, gpt-4 and the embedding-3 models)
            self.encoder = tiktoken.get_encoding("cl100k_base")

    @staticmethod
    def normalize(text: str) -> str:
        """Collapse whitespace runs to single spaces and trim the ends"""
        return _WHITESPACE.sub(" ", text).strip()

    def count_tokens(self, text: str) -> int:
        """Count tokens in text using the configured encoder"""
        return len(self.encoder.encode(text))

    def truncate(self, text: str, max_tokens: int) -> str:
        """
        Truncate text to at most max_tokens tokens

        The cut lands after the last whole word that fits, where words are
        separated by any whitespace. The one exception is a first word longer
        than the whole budget, which is cut at the token boundary.
        """
        if max_tokens < 1:
            raise ValueError("max_tokens must be positive")

        tokens = self.encoder.encode(text)
        if len(tokens) <= max_tokens:
            return text

        # Partial multi-byte characters decode to U+FFFD
        prefix = self.encoder.decode(tokens[:max_tokens]).rstrip("\ufffd")

        next_char = text[len(prefix)] if text.startswith(prefix) and len(prefix) < len(text) else ""
        if prefix[-1:].isspace() or next_char.isspace():
            truncated = prefix.rstrip()
        else:
            boundary = _LAST_WORD.search(prefix)
            kept = prefix[: boundary.start()] if boundary else ""
            truncated = kept if kept.strip() else prefix

        logger.debug(
            f"Truncated text from {len(tokens)} tokens to budget {max_tokens} "
            f"({len(text)} -> {len(truncated)} chars)"
        )
        return truncated

    def prepare(self, text: str, max_tokens: int) -> str:
        """Normalize then truncate, the form used for cache keys and model input"""
        return self.truncate(self.normalize(text), max_tokens)
