import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

def get_env_var(name: str) -> str:
    """Get environment variable or raise a clear error if missing."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"❌ Missing required environment variable: {name}\n"
            f"👉 Did you copy .env.example to .env and fill in your keys?"
        )
    return value


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# Model fallback (optional: without a key the rule result always stands)
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-1.5-flash")

# Optional vars (with defaults)
DEBUG = _flag("DEBUG", "false")
PORT = int(os.getenv("PORT", "8000"))

# Without a database the API falls back to in-memory stores
DATABASE_URL = os.getenv("DATABASE_URL")

INTENT_CACHE_TTL_SECONDS = int(os.getenv("INTENT_CACHE_TTL_SECONDS", "86400"))
INTENT_CACHE_SCOPE_BY_USER = _flag("INTENT_CACHE_SCOPE_BY_USER", "true")

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "15"))
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))
SAVE_MAX_ATTEMPTS = int(os.getenv("SAVE_MAX_ATTEMPTS", "8"))
LLM_MAX_REQUESTS_PER_MINUTE = int(os.getenv("LLM_MAX_REQUESTS_PER_MINUTE", "15"))
