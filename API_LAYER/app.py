# app.py
import logging
from asyncio import Lock
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from config import (
    DATABASE_URL,
    DEBUG,
    GOOGLE_API_KEY,
    INTENT_CACHE_SCOPE_BY_USER,
    INTENT_CACHE_TTL_SECONDS,
    LLM_TIMEOUT_SECONDS,
    STORE_TIMEOUT_SECONDS,
)
from core.intent import ResolvedMessage
from core.log_format import configure_logging
from executors.resolved import ResolvedIntentExecutor
from executors.transaction import TransactionExecutor
from services.intent_cache import InMemoryIntentCacheStore, IntentCache, PrismaIntentCacheStore
from services.intent_parser import parse_intent
from services.transaction_store import InMemoryTransactionStore, PrismaTransactionStore, create_db

# -----------------------------
# Structured Logging Setup
# -----------------------------
configure_logging()
logger = logging.getLogger("intent_ledger_api")

# -----------------------------
# FastAPI App
# -----------------------------
app = FastAPI(title="Intent Ledger API", version="1.0")

# -----------------------------
# Stores + Executors (Lifecycle managed)
# -----------------------------
db = None
intent_cache: Optional[IntentCache] = None
text_generator = None

transaction_executor: Optional[TransactionExecutor] = None
resolved_executor: Optional[ResolvedIntentExecutor] = None

DB_CONNECTED: bool = False
DB_ERROR: Optional[str] = None

# -----------------------------
# Metrics
# -----------------------------
metrics_lock = Lock()
request_counters = {
    "transaction": 0,
    "insight": 0,
    "other": 0,
    "saved": 0,
    "save_failed": 0,
    "used_llm": 0,
    "cache_hits": 0,
    "total": 0,
    "errors": 0,
}


# -----------------------------
# Pydantic Models
# -----------------------------
class ProcessRequest(BaseModel):
    text: str
    userId: int
    referenceTimestamp: Optional[datetime] = Field(None, description="Anchor for relative dates; defaults to now")
    profile: Optional[Dict[str, Any]] = Field(None, description="username / firstName / lastName / telegramChatId")
    disableFallback: bool = False


# -----------------------------
# Startup / Shutdown Events
# -----------------------------
def _use_in_memory(reason: str) -> None:
    global intent_cache, transaction_executor, DB_CONNECTED, DB_ERROR
    DB_CONNECTED = False
    DB_ERROR = reason
    intent_cache = IntentCache(
        InMemoryIntentCacheStore(),
        ttl_seconds=INTENT_CACHE_TTL_SECONDS,
        timeout=STORE_TIMEOUT_SECONDS,
        scope_by_user=INTENT_CACHE_SCOPE_BY_USER,
    )
    transaction_executor = TransactionExecutor(InMemoryTransactionStore())


@app.on_event("startup")
async def startup():
    global db, DB_CONNECTED, DB_ERROR
    global intent_cache, text_generator, transaction_executor, resolved_executor

    resolved_executor = ResolvedIntentExecutor()

    if GOOGLE_API_KEY:
        from agents.intent_agent import build_intent_agent, make_text_generator

        text_generator = make_text_generator(build_intent_agent(GOOGLE_API_KEY))
    else:
        logger.warning("GOOGLE_API_KEY not set; model fallback disabled.")

    if not DATABASE_URL:
        logger.warning("DATABASE_URL not set; using in-memory stores.")
        _use_in_memory("DATABASE_URL not set")
        return

    try:
        db = create_db()
        await db.connect()
        DB_CONNECTED = True
        DB_ERROR = None
        logger.info("✅ Prisma DB connected")

        intent_cache = IntentCache(
            PrismaIntentCacheStore(db),
            ttl_seconds=INTENT_CACHE_TTL_SECONDS,
            timeout=STORE_TIMEOUT_SECONDS,
            scope_by_user=INTENT_CACHE_SCOPE_BY_USER,
        )
        transaction_executor = TransactionExecutor(PrismaTransactionStore(db))

    except Exception as e:
        logger.exception("❌ Failed to connect Prisma DB")
        if DEBUG:
            raise
        _use_in_memory(str(e))


@app.on_event("shutdown")
async def shutdown():
    global DB_CONNECTED
    if DB_CONNECTED and db is not None:
        await db.disconnect()
        DB_CONNECTED = False
        logger.info("✅ Prisma DB disconnected")


# -----------------------------
# API Endpoints
# -----------------------------
@app.get("/")
async def root():
    return {"message": "Intent Ledger API is running."}


@app.get("/health")
async def health() -> Dict[str, Any]:
    info = {
        "status": "ok",
        "db_connected": DB_CONNECTED,
        "llm_fallback": text_generator is not None,
    }
    if DB_ERROR:
        info["db_error"] = DB_ERROR
    return info


@app.get("/metrics")
async def metrics() -> Dict[str, Any]:
    async with metrics_lock:
        return request_counters.copy()


@app.post("/process")
async def process_request(request: ProcessRequest):
    async with metrics_lock:
        request_counters["total"] += 1

    try:
        logger.info(
            f"[REQUEST_START] user_id={request.userId}, text_length={len(request.text)}"
        )

        reference = request.referenceTimestamp or datetime.now(timezone.utc)

        # -----------------
        # Resolution
        # -----------------
        result = await parse_intent(
            request.text,
            reference=reference,
            user_id=request.userId,
            cache=intent_cache,
            generate=text_generator,
            disable_fallback=request.disableFallback,
            llm_timeout=LLM_TIMEOUT_SECONDS,
        )
        message = ResolvedMessage(
            user_id=request.userId,
            raw_input=request.text,
            reference=reference,
            result=result,
            meta={"profile": request.profile} if request.profile else None,
        )

        logger.info(
            f"[INTENT] user_id={message.user_id}, kind={message.kind}, "
            f"confidence={result.intent.confidence}, rules={result.diagnostics.rulesFired}"
        )

        # -----------------
        # Execution
        # -----------------
        if message.kind == "transaction":
            response = await transaction_executor.execute(message)
            saved = bool(response.get("data", {}).get("success"))
        else:
            response = await resolved_executor.execute(message)
            saved = None

        async with metrics_lock:
            request_counters[message.kind] += 1
            if saved is True:
                request_counters["saved"] += 1
            elif saved is False:
                request_counters["save_failed"] += 1
            if result.diagnostics.usedLLM:
                request_counters["used_llm"] += 1
            if result.diagnostics.cacheHit:
                request_counters["cache_hits"] += 1

        return response

    except Exception as e:
        async with metrics_lock:
            request_counters["errors"] += 1

        logger.exception(
            f"[ERROR] user_id={request.userId}, exception={e}"
        )

        raise HTTPException(
            status_code=500,
            detail=str(e) if DEBUG else "An unexpected error occurred",
        )


# -----------------------------
# Entrypoint
# -----------------------------
if __name__ == "__main__":
    import uvicorn

    from config import PORT

    uvicorn.run("API_LAYER.app:app", host="0.0.0.0", port=PORT, workers=1)
