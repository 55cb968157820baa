import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal

from core.errors import FATAL_USER_MESSAGE, RACE_CONDITION_USER_MESSAGE
from core.intent import IntentParseResult, ResolvedMessage, TransactionEntities, TransactionIntent
from executors.transaction import AMEND_MESSAGE, MISSING_AMOUNT_MESSAGE, TransactionExecutor
from services.transaction_store import InMemoryTransactionStore

REFERENCE = datetime(2025, 2, 15, 12, tzinfo=timezone.utc)


def _message(amount=Decimal("45"), action="log", profile=None):
    intent = TransactionIntent(
        action=action,
        confidence="high",
        entities=TransactionEntities(
            amount=amount,
            currency="USD",
            merchant="Trader Joe's",
            category="groceries",
            transactionDate="2025-02-14T00:00:00.000Z",
        ),
    )
    return ResolvedMessage(
        user_id=42,
        raw_input="Spent $45 at Trader Joe's yesterday",
        reference=REFERENCE,
        result=IntentParseResult(intent=intent),
        meta={"profile": profile} if profile else None,
    )


class RacingStore(InMemoryTransactionStore):
    async def insert_transaction(self, payload):
        raise Exception('duplicate key value violates unique constraint "unique_user_display_id"')


class DownStore(InMemoryTransactionStore):
    async def insert_transaction(self, payload):
        raise ConnectionError("could not connect to server: Connection refused")


def _errors(caplog):
    return [r for r in caplog.records if getattr(r, "event", None) == "error"]


def test_successful_save():
    store = InMemoryTransactionStore()
    executor = TransactionExecutor(store)

    response = asyncio.run(executor.execute(_message(profile={"username": "sam"})))

    assert response["type"] == "transaction"
    assert response["data"]["success"] is True
    assert response["data"]["displayId"] == 1
    assert response["intent"]["entities"]["amount"] == 45.0
    assert "#1" in response["message"]
    assert store.users[42].username == "sam"
    (record,) = store.for_user(42)
    assert record["merchant"] == "Trader Joe's"


def test_race_exhaustion_becomes_user_safe_message(caplog):
    caplog.set_level(logging.INFO)
    executor = TransactionExecutor(RacingStore(), max_attempts=2, base_delay=0.001, max_delay=0.001)

    response = asyncio.run(executor.execute(_message()))

    assert response["data"]["success"] is False
    assert response["message"] == RACE_CONDITION_USER_MESSAGE
    assert "unique_user_display_id" not in response["message"]
    assert [r.error_type for r in _errors(caplog)] == ["race_condition"]


def test_fatal_failure_becomes_user_safe_message(caplog):
    caplog.set_level(logging.INFO)
    executor = TransactionExecutor(DownStore())

    response = asyncio.run(executor.execute(_message()))

    assert response["data"]["success"] is False
    assert response["message"] == FATAL_USER_MESSAGE
    assert "Connection refused" not in response["message"]
    assert [r.error_type for r in _errors(caplog)] == ["fatal"]


def test_missing_amount_is_not_persisted():
    store = InMemoryTransactionStore()
    response = asyncio.run(TransactionExecutor(store).execute(_message(amount=None)))

    assert response["data"]["success"] is False
    assert response["message"] == MISSING_AMOUNT_MESSAGE
    assert store.records == []


def test_amend_is_not_saved_as_a_new_transaction():
    store = InMemoryTransactionStore()
    response = asyncio.run(TransactionExecutor(store).execute(_message(action="amend")))

    assert response["message"] == AMEND_MESSAGE
    assert store.records == []
