# core/intent.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.date_grain import DateGrain

# Bump whenever the serialized intent shape changes; cached entries written
# under an older version are ignored.
INTENT_SCHEMA_VERSION = 1

Confidence = Literal["high", "medium", "low"]
InsightQueryType = Literal["sum", "average", "count", "trend", "comparison", "list"]

CONFIDENCE_LEVELS = ("high", "medium", "low")


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# -----------------------------
# Transaction
# -----------------------------
class TransactionEntities(_Strict):
    amount: Optional[Decimal] = Field(None, description="Amount spent, non-negative once validated")
    currency: Optional[str] = Field(None, description="ISO-4217 code")
    merchant: Optional[str] = Field(None)
    category: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    transactionDate: Optional[str] = Field(None, description="ISO-8601 instant")
    timezone: Optional[str] = Field(None, description="IANA timezone name")


class TransactionIntent(_Strict):
    kind: Literal["transaction"] = "transaction"
    action: Literal["log", "amend"] = "log"
    confidence: Confidence
    entities: TransactionEntities = Field(default_factory=TransactionEntities)
    reason: Optional[str] = None


# -----------------------------
# Insight
# -----------------------------
class Timeframe(_Strict):
    text: str = ""
    start: str
    end: str
    grain: DateGrain = DateGrain.CUSTOM


class ComparisonTarget(_Strict):
    startDate: str
    endDate: str
    label: Optional[str] = None


class InsightFilters(_Strict):
    merchant: Optional[str] = None
    category: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    timeframe: Optional[Timeframe] = None
    compareTo: Optional[ComparisonTarget] = None
    minAmount: Optional[Decimal] = None
    maxAmount: Optional[Decimal] = None
    lastN: Optional[int] = None


class InsightIntent(_Strict):
    kind: Literal["insight"] = "insight"
    confidence: Confidence
    queryType: InsightQueryType = "sum"
    filters: InsightFilters = Field(default_factory=InsightFilters)
    followUps: List[str] = Field(default_factory=list)
    question: Optional[str] = None
    reason: Optional[str] = None


# -----------------------------
# Other
# -----------------------------
class OtherIntent(_Strict):
    kind: Literal["other"] = "other"
    confidence: Confidence
    reason: str


Intent = Annotated[
    Union[TransactionIntent, InsightIntent, OtherIntent],
    Field(discriminator="kind"),
]

INTENT_ADAPTER: TypeAdapter = TypeAdapter(Intent)


def dump_intent(intent: Any) -> str:
    """Serialize an intent to the JSON payload stored in the cache."""
    return INTENT_ADAPTER.dump_json(intent, exclude_none=True).decode("utf-8")


def load_intent(payload: Union[str, bytes, Dict[str, Any]]) -> Any:
    """Strict tagged-union decode. Raises pydantic.ValidationError on mismatch."""
    if isinstance(payload, dict):
        return INTENT_ADAPTER.validate_python(payload)
    return INTENT_ADAPTER.validate_json(payload)


# -----------------------------
# Diagnostics / results
# -----------------------------
class Diagnostics(BaseModel):
    rulesFired: List[str] = Field(default_factory=list)
    usedLLM: bool = False
    cacheHit: bool = False
    latencyMs: Optional[float] = None


class IntentParseResult(BaseModel):
    intent: Intent
    diagnostics: Diagnostics = Field(default_factory=Diagnostics)
    enhancements: List[str] = Field(default_factory=list)


class ResolvedMessage(BaseModel):
    """
    A passive container for one inbound message and what it resolved to.
    Executors read it; they never re-classify.
    """

    user_id: int
    raw_input: str
    reference: datetime
    result: IntentParseResult

    # Optional profile/transport metadata
    meta: Optional[Dict[str, Any]] = None

    @property
    def kind(self) -> str:
        return self.result.intent.kind
