# FILE: services/fallback_classifier.py
"""
Fallback Classifier

Resolves a message the rules could not classify confidently:

1. cache lookup (schema version + TTL checked by the cache)
2. text-generation call under a timeout
3. fence stripping, JSON decode, confidence sanitizing, strict tagged-union validation
4. cache write

Every failure returns None; the caller keeps the rule result.
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from agents.intent_agent import TextGenerator, build_user_content
from core.intent import CONFIDENCE_LEVELS, load_intent
from services.timeframe import to_iso

logger = logging.getLogger("fallback_classifier")

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

# Top-level keys each variant accepts; the model sometimes echoes the whole schema.
_VARIANT_KEYS = {
    "transaction": ("kind", "action", "confidence", "entities", "reason"),
    "insight": ("kind", "confidence", "queryType", "filters", "followUps", "question", "reason"),
    "other": ("kind", "confidence", "reason"),
}


class ModelOutputError(ValueError):
    pass


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw.strip()).replace("```", "").strip()


def sanitize_confidence(value: Any) -> str:
    return value if value in CONFIDENCE_LEVELS else "medium"


def decode_model_output(raw: str):
    """
    Raw model text -> validated intent.
    Raises ModelOutputError, json.JSONDecodeError or pydantic.ValidationError.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ModelOutputError("Empty model response")

    parsed = json.loads(strip_code_fences(raw))
    if not isinstance(parsed, dict):
        raise ModelOutputError(f"Expected a JSON object, got {type(parsed).__name__}")

    kind = parsed.get("kind")
    if kind not in _VARIANT_KEYS:
        raise ModelOutputError(f"Unknown intent kind: {kind!r}")

    data: Dict[str, Any] = {k: parsed[k] for k in _VARIANT_KEYS[kind] if parsed.get(k) is not None}
    data["confidence"] = sanitize_confidence(parsed.get("confidence"))
    if kind == "other" and not data.get("reason"):
        data["reason"] = "Model classified message as other"

    return load_intent(data)


async def classify_with_model(
    text: str,
    *,
    reference: datetime,
    generate: Optional[TextGenerator],
    cache=None,
    user_id: Optional[int] = None,
    timeout: float = 15.0,
) -> Optional[Tuple[Any, bool]]:
    """
    Returns (intent, cache_hit) or None when the model path produced nothing usable.
    """
    if cache is not None:
        cached = await cache.get(text, user_id)
        if cached is not None:
            return cached, True

    if generate is None:
        return None

    content = build_user_content(text, to_iso(reference))
    try:
        raw = await asyncio.wait_for(generate(content), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Model fallback timed out",
            extra={"event": "llm_fallback_failed", "error": "timeout", "timeout_s": timeout},
        )
        return None
    except Exception as e:
        logger.warning("Model fallback failed", extra={"event": "llm_fallback_failed", "error": str(e)})
        return None

    try:
        intent = decode_model_output(raw)
    except (ModelOutputError, ValueError, ValidationError) as e:
        logger.warning(
            "Model output rejected",
            extra={"event": "llm_decode_failed", "error": str(e), "raw": str(raw)[:500]},
        )
        return None

    if cache is not None:
        await cache.put(text, intent, user_id)

    return intent, False
