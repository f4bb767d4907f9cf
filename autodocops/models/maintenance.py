"""Models for background cache maintenance"""

from datetime import datetime

from pydantic import BaseModel, Field


class PurgeResult(BaseModel):
    """Result of one expired-entry purge cycle"""

    success: bool = Field(description="Whether every cache was purged")
    purged: dict[str, int] = Field(
        default_factory=dict, description="Entries removed per cache namespace"
    )
    start_time: datetime = Field(description="When the purge started")
    end_time: datetime = Field(description="When the purge ended")
    duration_seconds: float = Field(description="Duration in seconds")
    error: str | None = Field(default=None, description="Error message if failed")

    @property
    def total_purged(self) -> int:
        return sum(self.purged.values())
