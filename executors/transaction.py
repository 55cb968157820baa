import logging

from config import SAVE_MAX_ATTEMPTS, STORE_TIMEOUT_SECONDS
from core.errors import PersistenceError
from core.intent import ResolvedMessage
from executors.base import BaseExecutor
from models.transaction import SaveResult, TransactionPayload, UserProfile
from services.transaction_service import save_transaction
from services.utils import deep_serialize

logger = logging.getLogger("transaction_executor")

MISSING_AMOUNT_MESSAGE = 'I couldn\'t find an amount in that message. Try something like "Spent $12 on lunch".'
AMEND_MESSAGE = "Tell me which transaction number to change and I'll update it."


class TransactionExecutor(BaseExecutor):
    """
    Persists transaction intents.
    Persistence failures never escape: they become a user-safe SaveResult.
    """

    def __init__(
        self,
        store,
        *,
        max_attempts: int = SAVE_MAX_ATTEMPTS,
        timeout: float = STORE_TIMEOUT_SECONDS,
        base_delay: float = 0.1,
        max_delay: float = 2.0,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.base_delay = base_delay
        self.max_delay = max_delay

    async def execute(self, message: ResolvedMessage) -> dict:
        response = self.envelope(message)
        save = await self._save(message)
        response["data"] = deep_serialize(save)
        response["message"] = save.message
        return response

    async def _save(self, message: ResolvedMessage) -> SaveResult:
        intent = message.result.intent

        if intent.action == "amend":
            return SaveResult(success=False, message=AMEND_MESSAGE)

        try:
            payload = TransactionPayload.from_intent(message.user_id, intent, message.reference)
        except ValueError as e:
            logger.info(
                "Transaction intent not persistable",
                extra={"event": "invalid_payload", "user_id": message.user_id, "error": str(e)},
            )
            return SaveResult(success=False, message=MISSING_AMOUNT_MESSAGE)

        profile = UserProfile(id=message.user_id, **((message.meta or {}).get("profile") or {}))

        try:
            result = await save_transaction(
                self.store,
                payload,
                profile,
                max_attempts=self.max_attempts,
                timeout=self.timeout,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
            )
        except PersistenceError as e:
            logger.error(
                "Transaction not saved",
                extra={
                    "event": "error",
                    "error_type": e.error_type,
                    "user_id": message.user_id,
                    "attempts": e.attempts,
                    "reason": e.reason,
                },
            )
            return SaveResult(success=False, message=e.user_message)

        label = f"#{result.displayId}" if result.displayId is not None else "it"
        return SaveResult(
            success=True,
            message=f"Saved {label}: {payload.amount} {payload.currency} at {payload.merchant} ({payload.category}).",
            transactionId=result.transactionId,
            displayId=result.displayId,
            durationMs=result.durationMs,
        )
