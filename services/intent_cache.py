# FILE: services/intent_cache.py
"""
Intent Cache

- Remembers model-resolved intents keyed by a hash of the normalized message
- Entries carry the schema version they were written under; other versions are misses
- Entries older than the TTL are misses
- Every failure (table setup, read, write, decode) degrades to a miss or a no-op
"""

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from core.intent import INTENT_SCHEMA_VERSION, dump_intent, load_intent
from models.cache import CacheEntry

logger = logging.getLogger("intent_cache")


def cache_key(text: str, user_id: Optional[int] = None, scope_by_user: bool = True) -> str:
    normalized = (text or "").strip().lower()
    if scope_by_user and user_id is not None:
        normalized = f"{user_id}:{normalized}"
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Stores
# -----------------------------
class InMemoryIntentCacheStore:
    """Process-local store. Used by tests and when no database is configured."""

    def __init__(self):
        self.entries: Dict[str, CacheEntry] = {}
        self.ensure_calls = 0

    async def ensure_schema(self) -> None:
        self.ensure_calls += 1

    async def fetch(self, key: str) -> Optional[CacheEntry]:
        return self.entries.get(key)

    async def upsert(self, key: str, payload: str, version: int) -> None:
        now = _utcnow()
        existing = self.entries.get(key)
        self.entries[key] = CacheEntry(
            key=key,
            payload=payload,
            version=version,
            createdAt=existing.createdAt if existing else now,
            updatedAt=now,
        )


class PrismaIntentCacheStore:
    """Raw SQL over a connected prisma-client-py `Prisma` instance."""

    CREATE_TABLE = """
        CREATE TABLE IF NOT EXISTS intent_cache (
            message_hash TEXT PRIMARY KEY,
            intent_json TEXT NOT NULL,
            version INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """

    SELECT = """
        SELECT message_hash, intent_json, version, created_at, updated_at
        FROM intent_cache WHERE message_hash = $1
    """

    UPSERT = """
        INSERT INTO intent_cache (message_hash, intent_json, version, updated_at)
        VALUES ($1, $2, $3, NOW())
        ON CONFLICT (message_hash) DO UPDATE SET
            intent_json = EXCLUDED.intent_json,
            version = EXCLUDED.version,
            updated_at = EXCLUDED.updated_at
    """

    def __init__(self, db: Any):
        self.db = db

    async def ensure_schema(self) -> None:
        await self.db.execute_raw(self.CREATE_TABLE)

    async def fetch(self, key: str) -> Optional[CacheEntry]:
        rows = await self.db.query_raw(self.SELECT, key)
        if not rows:
            return None
        row = rows[0]
        return CacheEntry(
            key=row["message_hash"],
            payload=row["intent_json"],
            version=int(row["version"]),
            createdAt=row["created_at"],
            updatedAt=row["updated_at"],
        )

    async def upsert(self, key: str, payload: str, version: int) -> None:
        await self.db.execute_raw(self.UPSERT, key, payload, version)


# -----------------------------
# Cache
# -----------------------------
class IntentCache:
    def __init__(
        self,
        store,
        *,
        version: int = INTENT_SCHEMA_VERSION,
        ttl_seconds: Optional[float] = None,
        timeout: float = 5.0,
        scope_by_user: bool = True,
    ):
        self.store = store
        self.version = version
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.scope_by_user = scope_by_user
        self._ready: Optional[asyncio.Future] = None

    def key_for(self, text: str, user_id: Optional[int] = None) -> str:
        return cache_key(text, user_id, self.scope_by_user)

    async def ensure_ready(self) -> None:
        """
        One table setup per process. Concurrent first callers share the same
        in-flight future; a failure clears it so the next call starts over.
        """
        if self._ready is None:
            self._ready = asyncio.ensure_future(self._init())
        ready = self._ready
        try:
            await asyncio.shield(ready)
        except Exception:
            if self._ready is ready:
                self._ready = None
            raise

    async def _init(self) -> None:
        await asyncio.wait_for(self.store.ensure_schema(), timeout=self.timeout)

    async def get(self, text: str, user_id: Optional[int] = None):
        try:
            await self.ensure_ready()
        except Exception as e:
            logger.warning("Intent cache unavailable", extra={"event": "cache_init_failed", "error": str(e)})
            return None

        key = self.key_for(text, user_id)
        try:
            entry = await asyncio.wait_for(self.store.fetch(key), timeout=self.timeout)
        except Exception as e:
            logger.warning("Intent cache read failed", extra={"event": "cache_read_failed", "error": str(e)})
            return None

        if entry is None or not entry.is_valid(self.version, self.ttl_seconds):
            return None

        try:
            return load_intent(entry.payload)
        except (ValidationError, ValueError) as e:
            logger.warning("Cached intent no longer decodes", extra={"event": "cache_read_failed", "error": str(e)})
            return None

    async def put(self, text: str, intent, user_id: Optional[int] = None) -> None:
        try:
            await self.ensure_ready()
        except Exception as e:
            logger.warning("Intent cache unavailable", extra={"event": "cache_init_failed", "error": str(e)})
            return

        key = self.key_for(text, user_id)
        try:
            await asyncio.wait_for(self.store.upsert(key, dump_intent(intent), self.version), timeout=self.timeout)
        except Exception as e:
            logger.warning("Intent cache write failed", extra={"event": "cache_write_failed", "error": str(e)})
