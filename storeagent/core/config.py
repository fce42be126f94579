"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# MongoDB (from env)
MONGODB_URI: str = os.getenv("MONGODB_URI", "").strip()
MONGODB_DB: str = os.getenv("MONGODB_DB", "storeagent").strip() or "storeagent"
STORE_TIMEOUT_MS: int = int(os.getenv("STORE_TIMEOUT_MS", "5000"))

# Collections
PRODUCTS: str = "products"
CATEGORIES: str = "categories"
ORDERS: str = "orders"
USERS: str = "users"
DRAFTS: str = "drafts"
MEMORY: str = "memory"

ORDER_STATUSES: tuple[str, ...] = ("pending", "completed", "cancelled")
USER_ROLES: tuple[str, ...] = ("admin", "user")
PRIVILEGED_ROLE: str = "admin"

# Listing / pagination
DEFAULT_PAGE_SIZE: int = 20
MAX_PAGE_SIZE: int = 100

# OpenAI (planner + synthesis). Tool calling requires OpenAI.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)

# Hugging Face router chat (text fallback when OPENAI_API_KEY is not set)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"

# API timeouts (seconds)
LLM_API_TIMEOUT: float = 60.0

# Orchestrator
MAX_AGENTIC_ROUNDS: int = int(os.getenv("MAX_AGENTIC_ROUNDS", "5"))
AGENT_MAX_TOKENS: int = 512
SYNTHESIS_MAX_TOKENS: int = 400
QUERY_GEN_MAX_TOKENS: int = 300
# Only bounds what is replayed to the planner; the stored transcript is unbounded.
HISTORY_MAX_MESSAGES: int = int(os.getenv("HISTORY_MAX_MESSAGES", "20"))
