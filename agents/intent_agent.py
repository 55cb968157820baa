# FILE: agents/intent_agent.py
"""
Model-backed intent classification agent.

Only consulted when the rule detector is not confident. The agent returns raw
text; decoding and validation happen in services/fallback_classifier.py so a
malformed answer never escapes as an exception.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from pydantic_ai import Agent
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

from config import GEMINI_MODEL_NAME, LLM_MAX_REQUESTS_PER_MINUTE, get_env_var

logger = logging.getLogger("intent_agent")

TextGenerator = Callable[[str], Awaitable[str]]

SYSTEM_PROMPT = """You are a financial intent parser for a personal finance assistant.
Classify the user's message and answer with ONE JSON object, no prose, no code fences.

Schema (only include fields that apply):
{
  "kind": "transaction" | "insight" | "other",
  "confidence": "high" | "medium" | "low",
  "action": "log" | "amend",                       // transaction only
  "entities": {                                    // transaction only
    "amount": number,
    "currency": "ISO-4217 code",
    "merchant": string,
    "category": "groceries|dining|transport|shopping|bills|entertainment|healthcare|education|travel|other",
    "description": string,
    "transactionDate": "ISO-8601 datetime",
    "timezone": "IANA timezone"
  },
  "queryType": "sum" | "average" | "count" | "trend" | "comparison" | "list",   // insight only
  "filters": {                                     // insight only
    "merchant": string,
    "category": string,
    "startDate": "ISO-8601 datetime",
    "endDate": "ISO-8601 datetime",
    "minAmount": number,
    "maxAmount": number,
    "lastN": number
  },
  "followUps": [string],                           // insight only
  "question": string,                              // insight only
  "reason": string                                 // required for "other"
}

Rules:
- "transaction": the user is recording money they spent or want to correct a past entry (action "amend").
- "insight": the user is asking about past spending (totals, averages, counts, trends, comparisons, lists).
- "other": greetings, help requests, anything unrelated to spending.
- Resolve relative dates ("yesterday", "last month") against REFERENCE_DATETIME.
- Amounts are positive numbers without currency symbols.
"""


# -----------------------------
# API Rate Limiting
# -----------------------------
class APIRateLimiter:
    def __init__(self, max_requests_per_minute: int = 15):
        self.max_requests = max_requests_per_minute
        self.requests: List[float] = []
        self.lock = asyncio.Lock()

    async def acquire(self):
        async with self.lock:
            now = time.monotonic()
            self.requests = [t for t in self.requests if now - t < 60]

            if len(self.requests) >= self.max_requests:
                wait_time = 60 - (now - min(self.requests))
                logger.warning(f"Rate limit reached, waiting {wait_time:.2f} seconds")
                await asyncio.sleep(wait_time)
                now = time.monotonic()
                self.requests = [t for t in self.requests if now - t < 60]

            self.requests.append(now)


def build_user_content(text: str, reference_iso: str) -> str:
    return f"REFERENCE_DATETIME: {reference_iso}\n\nUSER_MESSAGE:\n{text}"


def build_intent_agent(api_key: Optional[str] = None) -> Agent:
    provider = GoogleProvider(api_key=api_key or get_env_var("GOOGLE_API_KEY"))
    model = GoogleModel(GEMINI_MODEL_NAME, provider=provider)
    return Agent(
        model,
        system_prompt=SYSTEM_PROMPT,
        output_type=str,
        model_settings={"temperature": 0.0},
    )


def make_text_generator(
    agent: Agent,
    rate_limiter: Optional[APIRateLimiter] = None,
) -> TextGenerator:
    """Wrap the agent as `async generate(content) -> str`."""
    limiter = rate_limiter or APIRateLimiter(LLM_MAX_REQUESTS_PER_MINUTE)

    async def generate(content: str) -> str:
        await limiter.acquire()
        result = await agent.run(content)
        return result.output

    return generate
