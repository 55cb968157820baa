# FILE: services/transaction_service.py
"""
Transaction Persistence

- Inserts a transaction, retrying only when the per-user display id collided
- Exponential backoff with jitter between retries
- Every store call is bounded by a timeout; a timeout is fatal, never retried
- Terminal outcomes are raised as PersistenceRaceConditionError / PersistenceFatalError
"""

import asyncio
import logging
import random
import time
from typing import Optional

from core.errors import PersistenceFatalError, PersistenceRaceConditionError
from models.transaction import InsertResult, TransactionPayload, UserProfile

logger = logging.getLogger("transaction_service")

DISPLAY_ID_CONSTRAINT = "unique_user_display_id"
UNIQUE_VIOLATION_CODES = ("P2002", "23505")
_UNIQUE_VIOLATION_TEXT = ("duplicate key value violates unique constraint", "unique constraint failed")


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    return str(message) if message else str(error)


def is_display_id_conflict(error: BaseException) -> bool:
    """
    True only for a unique violation on (userId, displayId).
    Decided from the error's code / meta / message, never from its class.
    """
    message = _error_message(error)
    if DISPLAY_ID_CONSTRAINT in message:
        return True

    meta = getattr(error, "meta", None) or getattr(error, "data", None)
    signature = f"{message} {meta or ''}"
    names_display_id = "display_id" in signature or "displayId" in signature
    if not names_display_id:
        return False

    code = str(getattr(error, "code", "") or "")
    if code in UNIQUE_VIOLATION_CODES:
        return True
    lower = message.lower()
    return any(text in lower for text in _UNIQUE_VIOLATION_TEXT)


def backoff_delay(attempt: int, base_delay: float = 0.1, max_delay: float = 2.0) -> float:
    """Seconds to wait after failed attempt number `attempt` (1-based), jitter included."""
    wait = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return wait + random.uniform(0, wait * 0.4)


async def insert_transaction_with_retry(
    store,
    payload: TransactionPayload,
    *,
    max_attempts: int = 8,
    timeout: float = 10.0,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
) -> InsertResult:
    started = time.perf_counter()
    attempt = 0

    while True:
        attempt += 1
        try:
            stored = await asyncio.wait_for(store.insert_transaction(payload), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Transaction insert timed out",
                extra={
                    "event": "database_error",
                    "user_id": payload.userId,
                    "attempt": attempt,
                    "retryable": False,
                    "error": f"timeout after {timeout}s",
                },
            )
            raise PersistenceFatalError("store timeout", attempts=attempt, user_id=payload.userId)
        except Exception as e:
            if not is_display_id_conflict(e):
                logger.error(
                    "Transaction insert failed",
                    extra={
                        "event": "database_error",
                        "user_id": payload.userId,
                        "attempt": attempt,
                        "retryable": False,
                        "error": _error_message(e),
                    },
                )
                raise PersistenceFatalError(_error_message(e), attempts=attempt, user_id=payload.userId) from e

            if attempt >= max_attempts:
                logger.error(
                    "Display id retries exhausted",
                    extra={
                        "event": "max_retries_exceeded",
                        "error_type": "race_condition",
                        "user_id": payload.userId,
                        "attempts": attempt,
                        "reason": "display_id_race_condition",
                        "error": _error_message(e),
                    },
                )
                raise PersistenceRaceConditionError(
                    f"display id race not resolved after {attempt} attempts",
                    attempts=attempt,
                    user_id=payload.userId,
                ) from e

            wait = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "Display id collision, retrying",
                extra={
                    "event": "retry_attempt",
                    "user_id": payload.userId,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "backoff_ms": round(wait * 1000, 1),
                    "reason": "display_id_race_condition",
                    "error": _error_message(e),
                },
            )
            await asyncio.sleep(wait)
            continue

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        return InsertResult(
            transactionId=stored.id,
            displayId=stored.displayId,
            attempts=attempt,
            durationMs=duration_ms,
        )


async def save_transaction(
    store,
    payload: TransactionPayload,
    profile: Optional[UserProfile] = None,
    *,
    max_attempts: int = 8,
    timeout: float = 10.0,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
) -> InsertResult:
    """Upsert the owner, then insert with display-id retry."""
    profile = profile or UserProfile(id=payload.userId)
    try:
        await asyncio.wait_for(store.upsert_user(profile), timeout=timeout)
    except Exception as e:
        reason = f"timeout after {timeout}s" if isinstance(e, asyncio.TimeoutError) else _error_message(e)
        logger.error(
            "User upsert failed",
            extra={"event": "database_error", "user_id": payload.userId, "retryable": False, "error": reason},
        )
        raise PersistenceFatalError(reason, attempts=1, user_id=payload.userId) from e

    result = await insert_transaction_with_retry(
        store,
        payload,
        max_attempts=max_attempts,
        timeout=timeout,
        base_delay=base_delay,
        max_delay=max_delay,
    )
    logger.info(
        "Transaction saved",
        extra={
            "event": "transaction_saved",
            "user_id": payload.userId,
            "transaction_id": result.transactionId,
            "display_id": result.displayId,
            "attempts": result.attempts,
            "duration_ms": result.durationMs,
        },
    )
    return result
