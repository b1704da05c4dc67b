"""
Micro-Tutor: Configuration
All environment variables and constants. Single source of truth.
No other file reads os.environ directly.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ─── Paths ───────────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if present (real environment wins)
load_dotenv(BASE_DIR / ".env", override=False)

# ─── API Keys ────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# ─── Provider Selection ──────────────────────────────────────────────────────
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
# Options: openai (only option for now)

# ─── LLM Settings ────────────────────────────────────────────────────────────
# One full JSON payload per turn, so the token budget is larger than a chat reply
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4.1-mini")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "800"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ─── Lesson Settings ─────────────────────────────────────────────────────────
LESSON_SUBJECT = os.getenv("LESSON_SUBJECT", "Beginner French Language and Culture")
TOTAL_QUESTIONS = int(os.getenv("TOTAL_QUESTIONS", "5"))
MIN_OPTIONS = 3
MAX_OPTIONS = 4
TEACH_MAX_WORDS = 120  # Teaching content limit passed to the generator

# Re-prompt the generator this many times after a schema violation
MAX_GENERATION_RETRIES = int(os.getenv("MAX_GENERATION_RETRIES", "1"))

# ─── Session Settings ────────────────────────────────────────────────────────
SESSION_TIMEOUT_MINUTES = int(os.getenv("SESSION_TIMEOUT_MINUTES", "30"))

# ─── CORS ────────────────────────────────────────────────────────────────────
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# ─── Logging ─────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
