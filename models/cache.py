# models/cache.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    key: str = Field(..., description="sha256 of the normalized message")
    payload: str = Field(..., description="Serialized intent JSON")
    version: int
    createdAt: datetime
    updatedAt: datetime

    def is_valid(self, version: int, ttl_seconds: Optional[float] = None, now: Optional[datetime] = None) -> bool:
        if self.version != version:
            return False
        if ttl_seconds is None:
            return True
        now = now or datetime.now(timezone.utc)
        updated = self.updatedAt
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return now - updated < timedelta(seconds=ttl_seconds)
