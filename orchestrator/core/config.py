"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# Runtime environment. "development" exposes error details in HTTP responses.
APP_ENV: str = os.getenv("APP_ENV", "development").strip() or "development"

# Conversation memory
MAX_MESSAGES_PER_SESSION: int = _env_int("MAX_MESSAGES_PER_SESSION", 50)
MAX_SESSION_AGE_SECONDS: float = _env_float("MAX_SESSION_AGE_SECONDS", 24 * 60 * 60)
SWEEP_INTERVAL_SECONDS: float = _env_float("SWEEP_INTERVAL_SECONDS", 60 * 60)
SUMMARY_MAX_CHARS: int = 500
SUMMARY_TOPIC_CHARS: int = 100
HISTORY_WINDOW: int = 6

# Request limits
MAX_MESSAGE_CHARS: int = 10_000
MAX_SESSION_ID_CHARS: int = 100

# Plugins
PLUGIN_TIMEOUT_SECONDS: float = _env_float("PLUGIN_TIMEOUT_SECONDS", 20.0)
TOOLS_HTTP_TIMEOUT: float = 15.0
HEALTH_HTTP_TIMEOUT: float = 5.0

# Open-Meteo weather API (no key required)
OPEN_METEO_GEOCODE: str = "https://geocoding-api.open-meteo.com/v1/search"
OPEN_METEO_FORECAST: str = "https://api.open-meteo.com/v1/forecast"

# Chunking defaults (tuning these affects retrieval quality)
CHUNK_SIZE: int = _env_int("CHUNK_SIZE", 1000)
CHUNK_OVERLAP: int = _env_int("CHUNK_OVERLAP", 200)
MIN_CHUNK_LENGTH: int = 50

# Index writes
UPSERT_BATCH_SIZE: int = 100
UPSERT_PACING_SECONDS: float = 0.1

# Retrieval
RAG_TOP_K: int = 3
SEARCH_DEFAULT_LIMIT: int = 5
RELEVANCE_THRESHOLD: float = _env_float("RELEVANCE_THRESHOLD", 0.7)
RAG_AUTO_INDEX: bool = _env_bool("RAG_AUTO_INDEX", True)

# Prompt budget (token estimate = ceil(chars / CHARS_PER_TOKEN))
PROMPT_MAX_TOKENS: int = _env_int("PROMPT_MAX_TOKENS", 3500)
CHARS_PER_TOKEN: int = 4

# Completion defaults
LLM_MAX_TOKENS: int = 1000
LLM_TEMPERATURE: float = 0.7
LLM_API_TIMEOUT: float = 60.0

# Documents for the knowledge base
DATA_DIR: str = os.getenv("DATA_DIR", "data").strip() or "data"
ALLOWED_EXTENSIONS: frozenset[str] = frozenset({".md", ".txt", ".pdf", ".xlsx", ".xls"})

# Milvus (from env). When MILVUS_URI is empty an in-process index is used.
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
COLLECTION_NAME: str = os.getenv("COLLECTION_NAME", "knowledge_base").strip() or "knowledge_base"

# Vector collection: default embedding dim (e.g. sentence-transformers/all-MiniLM-L6-v2 = 384)
VECTOR_DIM: int = _env_int("VECTOR_DIM", 384)

# Hugging Face (embeddings / fallback chat)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
EMBED_API_TIMEOUT: float = 30.0

# HF LLM (fallback when OPENAI_API_KEY is not set). Router chat completions require a chat model.
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)

# OpenAI. When set, completions and embeddings use OpenAI instead of Hugging Face.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
OPENAI_EMBED_MODEL: str = (
    os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small").strip() or "text-embedding-3-small"
)

# RAG applicability heuristic: case-insensitive substrings and regex patterns.
RAG_KEYWORDS: tuple[str, ...] = (
    "how to", "explain", "tutorial", "guide", "documentation", "example",
    "best practice", "implement", "create", "build", "setup", "configure",
    "install", "typescript", "express", "nodejs", "api", "database",
    "security", "authentication", "rest", "interface", "function", "class",
    "method", "variable", "import", "export",
)
RAG_PATTERNS: tuple[str, ...] = (
    r"how\s+(?:to|do|can)\s+\w+",
    r"what\s+is\s+(?:typescript|express|nodejs|javascript|api|database|interface|function|class)",
    r"explain\s+\w+",
    r"create\s+(?:a|an)?\s*(?:typescript|express|nodejs|api|interface|function|class)",
    r"implement\s+\w+",
)
