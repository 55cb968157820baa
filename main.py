import asyncio
import json
import sys
from datetime import datetime, timezone

from config import GOOGLE_API_KEY, LLM_TIMEOUT_SECONDS
from core.intent import ResolvedMessage
from core.log_format import configure_logging
from executors.resolved import ResolvedIntentExecutor
from executors.transaction import TransactionExecutor
from services.intent_cache import InMemoryIntentCacheStore, IntentCache
from services.intent_parser import parse_intent
from services.transaction_store import InMemoryTransactionStore

DEMO_MESSAGES = [
    "Spent $45 at Trader Joe's yesterday",
    "How much did I spend on groceries last month?",
    "Compare my dining this month vs last month",
    "hello there",
]


async def main(messages):
    generate = None
    if GOOGLE_API_KEY:
        from agents.intent_agent import build_intent_agent, make_text_generator

        generate = make_text_generator(build_intent_agent(GOOGLE_API_KEY))

    cache = IntentCache(InMemoryIntentCacheStore())
    transactions = TransactionExecutor(InMemoryTransactionStore())
    resolved = ResolvedIntentExecutor()
    reference = datetime.now(timezone.utc)

    for text in messages:
        result = await parse_intent(
            text,
            reference=reference,
            user_id=1,
            cache=cache,
            generate=generate,
            llm_timeout=LLM_TIMEOUT_SECONDS,
        )
        message = ResolvedMessage(user_id=1, raw_input=text, reference=reference, result=result)
        executor = transactions if message.kind == "transaction" else resolved
        response = await executor.execute(message)
        print(f"> {text}")
        print(json.dumps(response, indent=2, default=str))


if __name__ == "__main__":
    configure_logging()
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main(sys.argv[1:] or DEMO_MESSAGES))
