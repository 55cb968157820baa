"""
Date Resolver Service

- Converts natural language time expressions into concrete UTC ranges
- Grounds every relative reference on the caller's reference instant, never the system clock
- Falls back to dateparser for absolute dates ("March 3", "from Jan 1 to Jan 15")
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import dateparser
from dateparser.search import search_dates
from dateutil.relativedelta import relativedelta

from services.extractors import extract_amount
from services.timeframe import (
    end_of_day,
    ensure_utc,
    last_day_of_month,
    parse_instant,
    start_of_day,
)

Range = Tuple[datetime, datetime]


@dataclass(frozen=True)
class DateCandidate:
    text: str
    start: datetime
    end: Optional[datetime] = None
    index: int = 0


_PHRASE_RE = re.compile(
    r"\b(?:today|yesterday"
    r"|(?:this|current|last|previous|past)\s+(?:week|month|quarter|year)"
    r"|(?:last|past|previous)\s+\d{1,3}\s+(?:days?|weeks?|months?))\b",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_BETWEEN_RE = re.compile(
    r"\b(?:from|between)\s+([A-Za-z0-9,\s/-]+?)\s+(?:to|and)\s+([A-Za-z0-9/-]+(?:[\s,]+[A-Za-z0-9/-]+){0,2})",
    re.IGNORECASE,
)
_NOW_RE = re.compile(r"\b(?:(?:til|till|until|up to|through)\s+now|so far|to date)\b", re.IGNORECASE)
_DATEISH_RE = re.compile(
    r"[a-z]{3,}|\d{1,4}[/-]\d{1,2}",
    re.IGNORECASE,
)
_MONTH_OR_WEEKDAY_RE = re.compile(
    r"\b(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
    r"|mon(?:day)?|tue(?:s(?:day)?)?|wed(?:nesday)?|thu(?:rs(?:day)?)?|fri(?:day)?|sat(?:urday)?|sun(?:day)?)\b",
    re.IGNORECASE,
)
# Abbreviations and month names that are also everyday English words ("may return
# it", "a sun hat"). These only count next to a day number or a date word.
AMBIGUOUS_DATE_WORDS = frozenset(
    {
        "jan", "feb", "mar", "march", "apr", "may", "jun", "jul", "aug", "sep", "sept",
        "oct", "nov", "dec", "mon", "tue", "tues", "wed", "thu", "thurs", "fri", "sat", "sun",
    }
)
_DATE_LEAD_RE = re.compile(
    r"\b(?:on|last|this|next|since|before|after|until|till|by|early|mid|late)\s+$",
    re.IGNORECASE,
)
_DAY_BEFORE_RE = re.compile(r"\b\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?$", re.IGNORECASE)
_DAY_AFTER_RE = re.compile(r"\.?\s*(?:\d{1,2}(?:st|nd|rd|th)?|\d{4})\b", re.IGNORECASE)
_NUMERIC_DATE_RE = re.compile(r"\d{1,4}[/-]\d{1,2}")


def _parser_settings(reference: datetime) -> dict:
    # dateparser wants a naive RELATIVE_BASE; everything here is UTC.
    return {
        "RELATIVE_BASE": ensure_utc(reference).replace(tzinfo=None),
        "PREFER_DATES_FROM": "past",
        "RETURN_AS_TIMEZONE_AWARE": False,
    }


def parse_natural_date(text: str, reference: datetime) -> Optional[datetime]:
    """dateparser wrapper; returns an aware UTC datetime or None."""
    if not text or not text.strip():
        return None
    parsed = dateparser.parse(text.strip(), languages=["en"], settings=_parser_settings(reference))
    if parsed is None:
        return None
    return ensure_utc(parsed)


def parse_datetime(value: Optional[str], reference: datetime) -> datetime:
    """ISO first, then dateutil, then dateparser; the reference instant if all fail."""
    parsed = parse_instant(value)
    if parsed is not None:
        return parsed
    if isinstance(value, str):
        parsed = parse_natural_date(value, reference)
        if parsed is not None:
            return parsed
    return ensure_utc(reference)


def _month_range(anchor: datetime) -> Range:
    first = start_of_day(anchor.replace(day=1))
    last = end_of_day(anchor.replace(day=last_day_of_month(anchor.year, anchor.month)))
    return first, last


def _quarter_range(anchor: datetime) -> Range:
    first_month = ((anchor.month - 1) // 3) * 3 + 1
    first = start_of_day(anchor.replace(month=first_month, day=1))
    last = end_of_day(
        anchor.replace(month=first_month + 2, day=last_day_of_month(anchor.year, first_month + 2))
    )
    return first, last


def resolve_date_range(text: str, reference: datetime) -> Optional[Range]:
    """
    Resolve a relative date phrase into (start, end) against `reference`.
    Returns None if no recognized pattern is found.
    """
    text = " ".join(text.lower().split())
    now = ensure_utc(reference)
    today = start_of_day(now)

    if text in ("today", "current day"):
        return today, end_of_day(today)

    if text == "yesterday":
        d = today - timedelta(days=1)
        return d, end_of_day(d)

    if text in ("this week", "current week"):
        start = today - timedelta(days=today.weekday())  # Monday
        return start, end_of_day(start + timedelta(days=6))  # Sunday

    if text in ("last week", "previous week", "past week"):
        start = today - timedelta(days=today.weekday() + 7)
        return start, end_of_day(start + timedelta(days=6))

    if text in ("this month", "current month"):
        return _month_range(today)

    if text in ("last month", "previous month", "past month"):
        return _month_range(today - relativedelta(months=1))

    if text in ("this quarter", "current quarter"):
        return _quarter_range(today)

    if text in ("last quarter", "previous quarter", "past quarter"):
        return _quarter_range(today - relativedelta(months=3))

    if text in ("this year", "current year"):
        return today.replace(month=1, day=1), end_of_day(today.replace(month=12, day=31))

    if text in ("last year", "previous year", "past year"):
        year = today.year - 1
        return today.replace(year=year, month=1, day=1), end_of_day(today.replace(year=year, month=12, day=31))

    m = re.fullmatch(r"(?:last|past|previous) (\d{1,3}) (day|week|month)s?", text)
    if m:
        n, unit = int(m.group(1)), m.group(2)
        if unit == "day":
            delta = relativedelta(days=n)
        elif unit == "week":
            delta = relativedelta(weeks=n)
        else:
            delta = relativedelta(months=n)
        return start_of_day(now - delta), now

    return None


def _looks_like_date(text: str) -> bool:
    return _DATEISH_RE.search(text) is not None


def _parse_side(text: str, reference: datetime) -> Optional[datetime]:
    """Parse one side of a from/to span, dropping trailing words until it parses."""
    tokens = text.replace(",", " ").split()
    while tokens:
        candidate = " ".join(tokens)
        if _looks_like_date(candidate):
            parsed = parse_natural_date(candidate, reference)
            if parsed is not None:
                return parsed
        tokens = tokens[:-1]
    return None


def _overlaps(span: Tuple[int, int], taken: List[Tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in taken)


def find_date_candidates(text: str, reference: datetime) -> List[DateCandidate]:
    """
    Every date expression found in `text`, ordered by position.
    Open-ended "... now" phrases only count when nothing else was found.
    """
    if not text:
        return []

    found: List[DateCandidate] = []
    taken: List[Tuple[int, int]] = []

    for m in _BETWEEN_RE.finditer(text):
        left, right = m.group(1).strip(), m.group(2).strip()
        if not (_looks_like_date(left) and _looks_like_date(right)):
            continue
        start = _parse_side(left, reference)
        end = _parse_side(right, reference)
        if start is None or end is None:
            continue
        found.append(DateCandidate(m.group(0), start_of_day(start), end_of_day(end), m.start()))
        taken.append(m.span())

    for m in _PHRASE_RE.finditer(text):
        if _overlaps(m.span(), taken):
            continue
        resolved = resolve_date_range(m.group(0), reference)
        if resolved:
            found.append(DateCandidate(m.group(0), resolved[0], resolved[1], m.start()))
            taken.append(m.span())

    for m in _ISO_DATE_RE.finditer(text):
        if _overlaps(m.span(), taken):
            continue
        parsed = parse_instant(m.group(1))
        if parsed is not None:
            day = start_of_day(parsed)
            found.append(DateCandidate(m.group(1), day, end_of_day(day), m.start()))
            taken.append(m.span())

    if not found:
        found.extend(_search_dates(text, reference))

    if not found:
        m = _NOW_RE.search(text)
        if m:
            now = ensure_utc(reference)
            found.append(DateCandidate(m.group(0), now, now, m.start()))

    found.sort(key=lambda c: c.index)
    return found


def _mask_amount(text: str) -> str:
    """Blank out the money amount so its digits are never read as a day."""
    amount = extract_amount(text)
    if amount is None:
        return text
    start, end = amount.span
    return text[:start] + " " * (end - start) + text[end:]


def _anchored(text: str, start: int, end: int) -> bool:
    before, after = text[:start], text[end:]
    return bool(
        _DATE_LEAD_RE.search(before)
        or _DAY_BEFORE_RE.search(before)
        or _DAY_AFTER_RE.match(after)
    )


def is_date_span(text: str, span_text: str, index: int) -> bool:
    """
    Keep spans that carry a d/m style date or name a month/weekday.
    Ambiguous words ("may", "sun", "mar") need a day number or a date word
    right beside them.
    """
    if _NUMERIC_DATE_RE.search(span_text):
        return True
    if index < 0:
        text, index = span_text, 0
    for m in _MONTH_OR_WEEKDAY_RE.finditer(span_text):
        if m.group(0).lower() not in AMBIGUOUS_DATE_WORDS:
            return True
        if _anchored(text, index + m.start(), index + m.end()):
            return True
    return False


def _search_dates(text: str, reference: datetime) -> List[DateCandidate]:
    masked = _mask_amount(text)
    results = search_dates(masked, languages=["en"], settings=_parser_settings(reference)) or []
    candidates: List[DateCandidate] = []
    cursor = 0
    for span_text, parsed in results:
        index = masked.find(span_text, cursor)
        if index >= 0:
            cursor = index + len(span_text)
        # dateparser is generous ("45", "on", "now", "may").
        if not is_date_span(masked, span_text, index):
            continue
        original = text[index:index + len(span_text)] if index >= 0 else span_text
        start = ensure_utc(parsed)
        end = end_of_day(start) if start == start_of_day(start) else start
        candidates.append(DateCandidate(original, start, end, max(index, 0)))
    return candidates
