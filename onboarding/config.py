"""
Configuration module for the onboarding interview engine.
Centralizes environment variables, logging setup, and constants.
"""
import os
import logging
from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ============================================================================
# Environment Configuration
# ============================================================================

# Environment identifier (production, staging, development, etc.)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "production")

# ============================================================================
# Database Configuration
# ============================================================================

# Optional: without it the app runs on in-memory repositories
DATABASE_URL = os.environ.get("DATABASE_URL")

# Question catalog loaded into the in-memory repository when there is no database
CATALOG_PATH = os.environ.get(
    "CATALOG_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures", "onboarding_catalog.json"),
)

# ============================================================================
# Language Model Configuration
# ============================================================================

GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

# The assistant, competitor suggestions and summaries need credentials for google-genai
LLM_ENABLED = bool(
    os.environ.get("GOOGLE_API_KEY")
    or os.environ.get("GEMINI_API_KEY")
    or os.environ.get("GOOGLE_GENAI_USE_VERTEXAI")
)

# Hard cap on consecutive function calls in one assistant turn
MAX_FUNCTION_CALLS = _int_env("MAX_FUNCTION_CALLS", 5)

# ============================================================================
# Action Configuration
# ============================================================================

# Per-invocation timeout for a single action (seconds)
ACTION_TIMEOUT_SECONDS = _float_env("ACTION_TIMEOUT_SECONDS", 30.0)

# Outbound HTTP timeout used by the built-in crawling actions (seconds)
HTTP_TIMEOUT_SECONDS = _float_env("HTTP_TIMEOUT_SECONDS", 10.0)

CRAWLER_USER_AGENT = os.environ.get(
    "CRAWLER_USER_AGENT",
    "Mozilla/5.0 (compatible; OnboardingBot/1.0)",
)

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# Application Constants
# ============================================================================

# Retry hint (seconds) returned with a busy response
BUSY_RETRY_AFTER_SECONDS = 1

# Max characters of a single external data entry shown to the assistant
EXTERNAL_DATA_PREVIEW_CHARS = 400

# Transcript messages replayed to the assistant on each turn
ASSISTANT_CONTEXT_MESSAGES = _int_env("ASSISTANT_CONTEXT_MESSAGES", 40)
