# FILE: services/intent_parser.py
"""
Intent pipeline.

text -> date candidates -> rule detector
     -> (low confidence, fallback enabled) cache / model fallback
     -> validator
     -> IntentParseResult with diagnostics and enhancement tags
"""

import logging
import time
from datetime import datetime
from typing import Optional

from agents.intent_agent import TextGenerator
from core.intent import Diagnostics, IntentParseResult
from services.date_resolver import find_date_candidates
from services.fallback_classifier import classify_with_model
from services.intent_validator import validate_intent
from services.rule_detector import detect_intent
from services.timeframe import ensure_utc

logger = logging.getLogger("intent_parser")


async def parse_intent(
    text: str,
    *,
    reference: datetime,
    user_id: Optional[int] = None,
    cache=None,
    generate: Optional[TextGenerator] = None,
    disable_fallback: bool = False,
    llm_timeout: float = 15.0,
) -> IntentParseResult:
    started = time.perf_counter()
    reference = ensure_utc(reference)
    normalized = (text or "").strip()

    candidates = find_date_candidates(normalized, reference) if normalized else []
    detection = detect_intent(normalized, candidates)
    diagnostics = Diagnostics(rulesFired=list(detection.rules))
    intent = detection.intent

    # Empty input resolves to Other/high, so it never reaches the fallback.
    if intent.confidence == "low" and not disable_fallback:
        resolved = await classify_with_model(
            normalized,
            reference=reference,
            generate=generate,
            cache=cache,
            user_id=user_id,
            timeout=llm_timeout,
        )
        if resolved is not None:
            intent, cache_hit = resolved
            diagnostics.usedLLM = True
            diagnostics.cacheHit = cache_hit

    intent, enhancements = validate_intent(intent, normalized, reference)
    diagnostics.latencyMs = round((time.perf_counter() - started) * 1000, 2)

    logger.info(
        "Intent resolved",
        extra={
            "event": "intent_resolved",
            "kind": intent.kind,
            "confidence": intent.confidence,
            "used_llm": diagnostics.usedLLM,
            "cache_hit": diagnostics.cacheHit,
            "rules": diagnostics.rulesFired,
        },
    )
    return IntentParseResult(intent=intent, diagnostics=diagnostics, enhancements=enhancements)
