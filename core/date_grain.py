# core/date_grain.py
from enum import Enum


class DateGrain(str, Enum):
    """
    Temporal granularity a timeframe snaps to.
    """

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"

    # -----------------------------
    # Semantic helpers (SAFE)
    # -----------------------------
    @classmethod
    def infer(cls, span_text: str) -> "DateGrain":
        """
        Grain from the recognized date span, most specific keyword first.
        """
        text = (span_text or "").lower()
        if "quarter" in text:
            return cls.QUARTER
        if "year" in text:
            return cls.YEAR
        if "month" in text:
            return cls.MONTH
        if "week" in text:
            return cls.WEEK
        if "day" in text or "today" in text or "yesterday" in text:
            return cls.DAY
        return cls.CUSTOM

    def is_custom(self) -> bool:
        return self is DateGrain.CUSTOM
