import os
from dotenv import load_dotenv

load_dotenv()

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))

# --- Database ---
# Only sqlite:/// URLs are supported; relative paths resolve against the backend dir
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///tasks.db")


def database_path_from_url(url: str) -> str:
    """Turn a sqlite:/// URL into a filesystem path."""
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        raise ValueError(f"Unsupported DATABASE_URL (expected {prefix}...): {url}")
    path = url[len(prefix):]
    if not os.path.isabs(path):
        path = os.path.join(BACKEND_DIR, path)
    return path


DATABASE_PATH = database_path_from_url(DATABASE_URL)

# --- Sessions ---
DEFAULT_SESSION_SECRET = "change-this-session-secret"
SESSION_SECRET = os.getenv("SESSION_SECRET", DEFAULT_SESSION_SECRET)
SESSION_MAX_AGE = 14 * 24 * 60 * 60  # 14 days

# --- AI ---
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
AI_MODEL = os.getenv("AI_MODEL", "claude-sonnet-4-5")
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "1024"))

# --- HTTP ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def require_api_key() -> str:
    """Return the AI API key, or fail process start if it is not configured."""
    if not ANTHROPIC_API_KEY or ANTHROPIC_API_KEY == "your-api-key-here":
        raise RuntimeError("ANTHROPIC_API_KEY must be set")
    return ANTHROPIC_API_KEY
