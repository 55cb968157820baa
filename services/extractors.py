# FILE: services/extractors.py
"""
Deterministic entity extraction from raw message text.

- Amount + currency (symbol, currency word, or bare number after a spending verb)
- Merchant (text after at/from/in/to)
- Category (ordered keyword table)
- Keyword tables shared by the rule detector

Nothing here touches I/O or the clock.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# -----------------------------
# Keyword tables
# -----------------------------
TRANSACTION_VERBS: List[str] = [
    "spent",
    "pay",
    "paid",
    "bought",
    "purchase",
    "purchased",
    "transfer",
    "tip",
    "charge",
]

QUERY_SIGNALS: List[str] = [
    "how much",
    "how many",
    "show me",
    "list",
    "display",
    "what did i spend",
    "compare",
    "versus",
    "vs",
    "trend",
    "increase",
    "decrease",
    "summary",
    "?",
]

# Order matters: the first type with a hit wins.
METRIC_KEYWORDS: Dict[str, List[str]] = {
    "sum": ["how much", "total", "overall", "spend", "spent", "sum"],
    "average": ["average", "avg", "typical"],
    "count": ["how many", "count", "number of"],
    "trend": ["trend", "over time", "trajectory"],
    "comparison": ["compare", "vs", "versus", "difference", "than last"],
    "list": ["show", "list", "transactions", "display"],
}

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "groceries": ["grocery", "groceries", "supermarket", "market", "trader joe", "whole foods"],
    "dining": ["dining", "restaurant", "food", "meal", "coffee", "cafe", "dinner", "lunch", "breakfast"],
    "transport": ["transport", "uber", "lyft", "taxi", "bus", "train", "gas", "fuel"],
    "shopping": ["shopping", "retail", "store", "mall", "fashion", "clothes"],
    "bills": ["bill", "bills", "utility", "utilities", "electric", "internet", "rent", "subscription"],
    "entertainment": ["entertainment", "movie", "cinema", "concert", "streaming", "netflix"],
    "healthcare": ["health", "doctor", "pharmacy", "medicine", "clinic", "hospital"],
    "education": ["education", "school", "course", "tuition", "class"],
    "travel": ["travel", "flight", "hotel", "airbnb", "ticket"],
}

OPEN_ENDED_RE = re.compile(
    r"\b(?:til|till|until)\s+now\b|\bso far\b|\bto date\b|\bto today\b|\bup to now\b|\bthrough now\b",
    re.IGNORECASE,
)

# -----------------------------
# Currency maps
# -----------------------------
CURRENCY_SYMBOLS: Dict[str, str] = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "₤": "GBP",
    "₹": "INR",
    "د.إ": "AED",
    "دإ": "AED",
    "ر.س": "SAR",
    "رس": "SAR",
    "﷼": "SAR",
}

CURRENCY_WORDS: Dict[str, str] = {
    "usd": "USD",
    "dollar": "USD",
    "eur": "EUR",
    "euro": "EUR",
    "gbp": "GBP",
    "pound": "GBP",
    "aed": "AED",
    "dirham": "AED",
    "sar": "SAR",
    "riyal": "SAR",
    "egp": "EGP",
    "inr": "INR",
    "rupee": "INR",
    "rs": "INR",
}

_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"
_SYMBOL_RE = re.compile(r"([$€£₤₹]|د\.?إ|ر\.?س|﷼)\s?" + _NUMBER)
_WORD_RE = re.compile(
    _NUMBER + r"\s?(usd|dollars?|eur|euros?|gbp|pounds?|aed|dirhams?|sar|riyals?|egp|inr|rupees?|rs)\b",
    re.IGNORECASE,
)
_PLAIN_RE = re.compile(r"\b(?:spent|paid|pay|bought)\s+" + _NUMBER, re.IGNORECASE)

_MERCHANT_RE = re.compile(
    r"(?<![A-Za-z0-9])(?:at|from|in|to)\s+(?=([A-Za-z0-9][A-Za-z0-9 &'’.-]{2,40}))",
    re.IGNORECASE,
)
_MERCHANT_STOP_RE = re.compile(r"\b(?:for|on|because|since)\b", re.IGNORECASE)

# A merchant made only of these is a leftover, not a name.
MERCHANT_FILLER_WORDS = frozenset(
    {
        "the", "a", "an", "my", "our", "your", "this", "that", "these", "those",
        "all", "total", "last", "past", "date", "now", "today", "me", "it",
    }
)


@dataclass(frozen=True)
class AmountMatch:
    amount: Decimal
    currency: str
    # False when no symbol or currency word was present and `currency` is a default.
    explicit_currency: bool = True
    span: Tuple[int, int] = (0, 0)


# -----------------------------
# Helpers
# -----------------------------
def mentions(lower: str, keyword: str) -> bool:
    """
    Keyword hit on lowercased text. Alphabetic keywords must start at a word
    boundary so "vs" does not fire inside "cvs"; punctuation is a plain substring.
    """
    if not keyword:
        return False
    if not keyword[0].isalnum():
        return keyword in lower
    return re.search(r"(?<![a-z0-9])" + re.escape(keyword), lower) is not None


def mentions_any(lower: str, keywords: Iterable[str]) -> bool:
    return any(mentions(lower, kw) for kw in keywords)


def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


# -----------------------------
# Extractors
# -----------------------------
def extract_amount(text: str) -> Optional[AmountMatch]:
    if not text:
        return None

    m = _SYMBOL_RE.search(text)
    if m:
        amount = _to_decimal(m.group(2))
        if amount is not None:
            return AmountMatch(amount, CURRENCY_SYMBOLS.get(m.group(1), "USD"), True, m.span())

    m = _WORD_RE.search(text)
    if m:
        amount = _to_decimal(m.group(1))
        if amount is not None:
            unit = m.group(2).lower()
            if unit not in CURRENCY_WORDS and unit.endswith("s"):
                unit = unit[:-1]
            return AmountMatch(amount, CURRENCY_WORDS.get(unit, "USD"), True, m.span())

    m = _PLAIN_RE.search(text)
    if m:
        amount = _to_decimal(m.group(1))
        if amount is not None:
            # Bare number: the currency is only a default.
            return AmountMatch(amount, "USD", False, m.span(1))

    return None


def _phrase_spans(lowered: str, phrases: Sequence[str]) -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    for phrase in phrases:
        if phrase and phrase.strip():
            spans.extend(m.span() for m in re.finditer(re.escape(phrase.lower()), lowered))
    return spans


def _is_filler(merchant: str) -> bool:
    words = re.findall(r"[a-z0-9']+", merchant.lower())
    return all(word in MERCHANT_FILLER_WORDS for word in words)


def extract_merchant(text: str, stop_phrases: Sequence[str] = ()) -> Optional[str]:
    """
    First run of text after at/from/in/to, cut at a connector word
    ("for", "on", ...) or where any of `stop_phrases` (e.g. a detected date
    span) begins. A stop phrase that swallows the preposition itself
    ("to date", "up to now") leaves nothing. Runs of filler words are skipped.
    """
    if not text:
        return None

    spans = _phrase_spans(text.lower(), stop_phrases)

    for m in _MERCHANT_RE.finditer(text):
        start, end = m.start(1), m.end(1)

        connector = _MERCHANT_STOP_RE.search(text, start, end)
        if connector:
            end = connector.start()

        for span_start, span_end in spans:
            if span_start < end and span_end > m.start():
                end = min(end, max(span_start, start))

        merchant = text[start:end].strip(" .,-")
        if len(merchant) < 2 or _is_filler(merchant):
            continue
        return merchant

    return None


def detect_category(lower: str) -> Optional[str]:
    for category, keywords in CATEGORY_KEYWORDS.items():
        if mentions_any(lower, keywords):
            return category
    return None


def detect_query_type(lower: str) -> str:
    for query_type, keywords in METRIC_KEYWORDS.items():
        if mentions_any(lower, keywords):
            return query_type
    return "sum"


def is_open_ended(text: str) -> bool:
    return OPEN_ENDED_RE.search(text or "") is not None
