# FILE: services/canonicalizer.py
"""
Category Canonicalization

- Maps free-form category labels (rules or model output) onto the fixed category set
- Infers a category from message text when none was given
"""

from difflib import get_close_matches
from typing import Dict, List, Optional

from services.extractors import CATEGORY_KEYWORDS, mentions_any

VALID_CATEGORIES: List[str] = [
    "groceries",
    "dining",
    "transport",
    "shopping",
    "bills",
    "entertainment",
    "healthcare",
    "education",
    "travel",
    "other",
]

# -----------------------------
# Aliases
# -----------------------------
CATEGORY_ALIASES: Dict[str, str] = {
    "food": "dining",
    "restaurant": "dining",
    "restaurants": "dining",
    "coffee": "dining",
    "uber": "transport",
    "gas": "transport",
    "transportation": "transport",
    "movie": "entertainment",
    "movies": "entertainment",
    "netflix": "entertainment",
    "rent": "bills",
    "utilities": "bills",
    "subscription": "bills",
    "subscriptions": "bills",
    "health": "healthcare",
    "medical": "healthcare",
}

# Merchant names only the inference pass knows about.
_EXTRA_KEYWORDS: Dict[str, List[str]] = {
    "groceries": ["safeway"],
    "dining": ["starbucks"],
    "transport": ["parking"],
    "shopping": ["amazon", "target"],
    "entertainment": ["spotify"],
    "healthcare": ["dental"],
    "education": ["udemy", "coursera"],
    "travel": ["booking"],
}

INFERENCE_KEYWORDS: Dict[str, List[str]] = {
    category: keywords + _EXTRA_KEYWORDS.get(category, [])
    for category, keywords in CATEGORY_KEYWORDS.items()
}


def canonicalize_category(category: Optional[str]) -> str:
    """
    Known category -> itself, alias -> its target, near-miss spelling -> closest
    known category, anything else -> "other".
    """
    if not category:
        return "other"

    category = category.strip().lower()

    if category in VALID_CATEGORIES:
        return category

    if category in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[category]

    close_matches = get_close_matches(category, VALID_CATEGORIES, n=1, cutoff=0.7)
    if close_matches:
        return close_matches[0]

    return "other"


def infer_category(text: str) -> Optional[str]:
    lower = (text or "").lower()
    for category, keywords in INFERENCE_KEYWORDS.items():
        if mentions_any(lower, keywords):
            return category
    return None
