# FILE: services/intent_validator.py
"""
Intent Validator

- Fills defaults and canonicalizes values on a resolved intent
- Never rejects: every adjustment is applied and recorded as an enhancement tag
- Never mutates its argument; works on a deep copy
- Idempotent: validating its own output records nothing new
"""

from datetime import datetime
from typing import List, Tuple

from core.intent import InsightIntent, TransactionIntent
from services.canonicalizer import canonicalize_category, infer_category
from services.date_resolver import find_date_candidates, parse_datetime
from services.extractors import extract_amount
from services.timeframe import snap_to_grain, to_iso


def validate_intent(intent, original_text: str, reference: datetime) -> Tuple[object, List[str]]:
    enhancements: List[str] = []
    validated = intent.model_copy(deep=True)

    if isinstance(validated, TransactionIntent):
        _validate_transaction(validated, original_text, reference, enhancements)
    elif isinstance(validated, InsightIntent):
        _validate_insight(validated, original_text, reference, enhancements)

    return validated, enhancements


# -----------------------------
# Transaction
# -----------------------------
def _validate_transaction(intent: TransactionIntent, text: str, reference: datetime, enhancements: List[str]) -> None:
    entities = intent.entities

    had_currency = bool(entities.currency)
    if not had_currency:
        entities.currency = "USD"
        enhancements.append("default-currency:USD")
    entities.currency = entities.currency.strip().upper()

    if entities.amount is None:
        extracted = extract_amount(text)
        if extracted:
            entities.amount = extracted.amount
            # A bare number never overrides a currency the intent already named.
            if extracted.explicit_currency or not had_currency:
                entities.currency = extracted.currency
            enhancements.append("regex-extracted-amount")

    if entities.amount is not None and entities.amount < 0:
        entities.amount = abs(entities.amount)
        enhancements.append("abs-amount")

    if entities.category:
        normalized = canonicalize_category(entities.category)
        if normalized != entities.category:
            entities.category = normalized
            enhancements.append("normalized-category")
    else:
        inferred = infer_category(text)
        if inferred:
            entities.category = inferred
            enhancements.append(f"inferred-category:{inferred}")
        else:
            entities.category = "other"
            enhancements.append("default-category:other")

    if not entities.description:
        entities.description = text
        enhancements.append("default-description")

    if entities.transactionDate:
        normalized = to_iso(parse_datetime(entities.transactionDate, reference))
        if normalized != entities.transactionDate:
            entities.transactionDate = normalized
            enhancements.append("normalized-transaction-date")
    else:
        candidates = find_date_candidates(text, reference)
        if candidates:
            entities.transactionDate = to_iso(candidates[0].start)
            enhancements.append("parsed-transaction-date")


# -----------------------------
# Insight
# -----------------------------
def _validate_insight(intent: InsightIntent, text: str, reference: datetime, enhancements: List[str]) -> None:
    filters = intent.filters

    if filters.category:
        normalized = canonicalize_category(filters.category)
        if normalized != filters.category:
            filters.category = normalized
            enhancements.append("normalized-category")
    else:
        inferred = infer_category(text)
        if inferred:
            filters.category = inferred
            enhancements.append(f"inferred-category:{inferred}")

    if filters.startDate and filters.endDate:
        start = parse_datetime(filters.startDate, reference)
        end = parse_datetime(filters.endDate, reference)
        if start > end:
            start, end = end, start
            enhancements.append("swapped-date-range")
        filters.startDate = to_iso(start)
        filters.endDate = to_iso(end)
    elif filters.startDate:
        filters.startDate = to_iso(parse_datetime(filters.startDate, reference))
    elif filters.endDate:
        filters.endDate = to_iso(parse_datetime(filters.endDate, reference))

    timeframe = filters.timeframe
    if timeframe:
        start = parse_datetime(timeframe.start, reference)
        end = parse_datetime(timeframe.end, reference)
        if start > end:
            start, end = end, start
            enhancements.append("swapped-timeframe-dates")
        snapped_start, snapped_end = snap_to_grain(start, end, timeframe.grain)
        new_start, new_end = to_iso(snapped_start), to_iso(snapped_end)
        if (new_start, new_end) != (timeframe.start, timeframe.end):
            timeframe.start, timeframe.end = new_start, new_end
            enhancements.append(f"normalized-{timeframe.grain.value}-boundaries")

    if not intent.question:
        intent.question = text
        enhancements.append("default-question")

    if (
        filters.minAmount is not None
        and filters.maxAmount is not None
        and filters.minAmount > filters.maxAmount
    ):
        filters.minAmount, filters.maxAmount = filters.maxAmount, filters.minAmount
        enhancements.append("swapped-amount-range")
