"""Generation cache entry model"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A cached generation result with its validity window"""

    key: str = Field(min_length=64, max_length=64, description="SHA256 hex digest cache key")
    value: Any = Field(description="Cached content (artifact text or embedding vector)")
    created_at: datetime = Field(description="When the value was produced")
    expires_at: datetime = Field(description="After this instant the entry is a miss")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
