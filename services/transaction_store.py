# FILE: services/transaction_store.py
"""
Transaction stores.

Both stores expose the same two coroutines:

    upsert_user(profile: UserProfile) -> None
    insert_transaction(payload: TransactionPayload) -> StoredTransaction

Display ids are allocated by the store (a database trigger in production), so
two concurrent inserts for one user can collide on (userId, displayId). The
collision surfaces as the store's own error; callers decide what to do with it.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from models.transaction import StoredTransaction, TransactionPayload, UserProfile


def create_db():
    """
    A disconnected prisma-client-py `Prisma` instance.
    Imported here so the rest of the app never needs a generated client.
    """
    from prisma import Prisma

    return Prisma()


# -----------------------------
# Prisma (Postgres)
# -----------------------------
class PrismaTransactionStore:
    def __init__(self, db: Any):
        self.db = db

    async def upsert_user(self, profile: UserProfile) -> None:
        data = profile.model_dump(exclude={"id"}, exclude_none=True)
        await self.db.user.upsert(
            where={"id": profile.id},
            data={"create": {"id": profile.id, **data}, "update": data},
        )

    async def insert_transaction(self, payload: TransactionPayload) -> StoredTransaction:
        record = await self.db.transaction.create(
            data={
                "user": {"connect": {"id": payload.userId}},
                "amount": payload.amount,
                "currency": payload.currency,
                "merchant": payload.merchant,
                "category": payload.category,
                "description": payload.description,
                "transactionDate": payload.transactionDate,
            }
        )
        return StoredTransaction(id=str(record.id), displayId=record.displayId)


# -----------------------------
# In-memory
# -----------------------------
class DisplayIdConflict(Exception):
    """Shaped like the Postgres unique-violation the trigger path produces."""

    code = "23505"

    def __init__(self, user_id: int, display_id: int):
        super().__init__(
            'duplicate key value violates unique constraint "unique_user_display_id" '
            f"(user_id, display_id)=({user_id}, {display_id})"
        )
        self.meta = {"target": "unique_user_display_id"}


class InMemoryTransactionStore:
    """
    Allocates MAX(displayId)+1 per user with a suspension point between the read
    and the write, so concurrent inserts race exactly like the trigger-less path.
    """

    def __init__(self):
        self.users: Dict[int, UserProfile] = {}
        self.records: List[Dict[str, Any]] = []

    async def upsert_user(self, profile: UserProfile) -> None:
        self.users[profile.id] = profile

    async def insert_transaction(self, payload: TransactionPayload) -> StoredTransaction:
        current = max(
            (r["displayId"] for r in self.records if r["userId"] == payload.userId),
            default=0,
        )
        await asyncio.sleep(0)
        display_id = current + 1

        if any(r["userId"] == payload.userId and r["displayId"] == display_id for r in self.records):
            raise DisplayIdConflict(payload.userId, display_id)

        record = payload.model_dump()
        record.update(
            id=str(uuid.uuid4()),
            displayId=display_id,
            createdAt=datetime.now(timezone.utc),
        )
        self.records.append(record)
        return StoredTransaction(id=record["id"], displayId=display_id)

    def for_user(self, user_id: int) -> List[Dict[str, Any]]:
        return [r for r in self.records if r["userId"] == user_id]
