# FILE: services/rule_detector.py
"""
Rule-based intent detection.

Scores a transaction reading and an insight reading of the same message from
keyword tables and extracted entities, then keeps the stronger one. Pure and
deterministic: the only input besides the text is the list of date candidates
already resolved against the caller's reference instant.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from core.date_grain import DateGrain
from core.intent import (
    ComparisonTarget,
    InsightFilters,
    InsightIntent,
    OtherIntent,
    Timeframe,
    TransactionEntities,
    TransactionIntent,
)
from services.date_resolver import DateCandidate
from services.extractors import (
    QUERY_SIGNALS,
    TRANSACTION_VERBS,
    detect_category,
    detect_query_type,
    extract_amount,
    extract_merchant,
    is_open_ended,
    mentions,
    mentions_any,
)
from services.timeframe import previous_period, to_iso

EMPTY_MESSAGE_REASON = "Empty message"
UNCLASSIFIED_REASON = "Unable to classify message intent via rules"

RuleIntent = Union[TransactionIntent, InsightIntent, OtherIntent]


@dataclass
class Detection:
    score: float
    intent: RuleIntent
    rules: List[str] = field(default_factory=list)


# -----------------------------
# Helpers
# -----------------------------
def _transaction_confidence(score: float) -> str:
    if score >= 3.5:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def _insight_confidence(score: float) -> str:
    if score >= 3:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def extract_timeframe(candidates: Sequence[DateCandidate]) -> Optional[Timeframe]:
    """First candidate wins; its grain comes from the matched words."""
    if not candidates:
        return None
    best = candidates[0]
    end = best.end if best.end is not None else best.start
    return Timeframe(
        text=best.text,
        start=to_iso(best.start),
        end=to_iso(end),
        grain=DateGrain.infer(best.text),
    )


def _merchant(text: str, candidates: Sequence[DateCandidate]) -> Optional[str]:
    return extract_merchant(text, stop_phrases=[c.text for c in candidates])


# -----------------------------
# Candidates
# -----------------------------
def detect_transaction(text: str, candidates: Sequence[DateCandidate]) -> Optional[Detection]:
    lower = text.lower()
    rules: List[str] = []

    amount = extract_amount(text)
    if amount:
        rules.append("transaction:amount")

    has_verb = mentions_any(lower, TRANSACTION_VERBS)
    if has_verb:
        rules.append("transaction:verb")

    merchant = _merchant(text, candidates)
    if merchant:
        rules.append("transaction:merchant")

    category = detect_category(lower)
    if category:
        rules.append("transaction:category")

    timeframe = extract_timeframe(candidates)
    if timeframe:
        rules.append("transaction:date")

    if not amount and not (has_verb and merchant):
        return None

    score = 0.0
    if amount:
        score += 2
    if has_verb:
        score += 1.5
    if merchant:
        score += 1
    if category:
        score += 0.5
    if timeframe:
        score += 0.5

    intent = TransactionIntent(
        action="log",
        confidence=_transaction_confidence(score),
        entities=TransactionEntities(
            amount=amount.amount if amount else None,
            currency=amount.currency if amount else "USD",
            merchant=merchant,
            category=category,
            transactionDate=timeframe.start if timeframe else None,
            description=text,
        ),
    )
    return Detection(score, intent, rules)


def detect_insight(text: str, candidates: Sequence[DateCandidate]) -> Optional[Detection]:
    lower = text.lower()
    rules: List[str] = []

    if not mentions_any(lower, QUERY_SIGNALS):
        return None

    query_type = detect_query_type(lower)
    rules.append(f"insight:queryType:{query_type}")

    timeframe = extract_timeframe(candidates)
    if timeframe:
        rules.append("insight:timeframe")

    merchant = _merchant(text, candidates)
    if merchant:
        rules.append("insight:merchant")

    category = detect_category(lower)
    if category:
        rules.append("insight:category")

    score = 0.0
    if query_type in ("sum", "average"):
        score += 2
    if query_type in ("trend", "comparison"):
        score += 2.5
    if timeframe:
        score += 1
    if merchant:
        score += 0.5
    if category:
        score += 0.5

    filters = InsightFilters(merchant=merchant, category=category, timeframe=timeframe)
    if timeframe:
        # Open-ended ("so far", "till now"): from the beginning of history through `end`.
        if not is_open_ended(lower):
            filters.startDate = timeframe.start
        filters.endDate = timeframe.end

    wants_comparison = query_type == "comparison" or mentions(lower, "vs") or mentions(lower, "than last")
    if wants_comparison and timeframe:
        start, end = _bounds(candidates[0])
        compare_start, compare_end = previous_period(start, end)
        filters.compareTo = ComparisonTarget(
            startDate=to_iso(compare_start),
            endDate=to_iso(compare_end),
            label="previous_period",
        )
        rules.append("insight:comparison:auto")

    intent = InsightIntent(
        confidence=_insight_confidence(score),
        queryType=query_type,
        filters=filters,
        question=text,
        followUps=[],
    )
    return Detection(score, intent, rules)


def _bounds(candidate: DateCandidate):
    return candidate.start, candidate.end if candidate.end is not None else candidate.start


# -----------------------------
# Entry point
# -----------------------------
def detect_intent(text: str, candidates: Sequence[DateCandidate] = ()) -> Detection:
    normalized = (text or "").strip()
    if not normalized:
        return Detection(0.0, OtherIntent(confidence="high", reason=EMPTY_MESSAGE_REASON), [])

    transaction = detect_transaction(normalized, candidates)
    insight = detect_insight(normalized, candidates)

    if transaction and (not insight or transaction.score >= insight.score):
        return transaction
    if insight:
        return insight

    return Detection(0.0, OtherIntent(confidence="low", reason=UNCLASSIFIED_REASON), [])
