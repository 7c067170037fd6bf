"""
config.py — runtime settings for the assessment engine.

Every value can be overridden from the environment (or a .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw and raw.strip() else default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw and raw.strip() else default


# ─────────────────────────────────────────────
# Language model
# ─────────────────────────────────────────────

GROQ_API_KEY        = os.getenv("GROQ_API_KEY")
GROQ_MODEL          = os.getenv("GROQ_MODEL", "openai/gpt-oss-120b")
LLM_TEMPERATURE     = _float_env("LLM_TEMPERATURE", 0.7)
PROFILE_TEMPERATURE = _float_env("PROFILE_TEMPERATURE", 0.2)
LLM_TIMEOUT_SECONDS = _float_env("LLM_TIMEOUT_SECONDS", 60.0)

# ─────────────────────────────────────────────
# Questionnaire
# ─────────────────────────────────────────────

OPTIONS_PER_QUESTION = _int_env("OPTIONS_PER_QUESTION", 5)
OTHER_OPTION         = "Other"

# "regenerate": ask the model for the missing options, pad what is still missing
# "pad":        pad with generic placeholders only
OPTION_FILL_POLICY = os.getenv("OPTION_FILL_POLICY", "regenerate")

INITIAL_PREDICTED_QUESTIONS  = 5
DETAILED_PREDICTED_QUESTIONS = 10

# ─────────────────────────────────────────────
# Readiness + diagnosis
# ─────────────────────────────────────────────

MIN_TOTAL_RESPONSES    = _int_env("MIN_TOTAL_RESPONSES", 8)
MIN_RESPONSES_PER_AREA = _int_env("MIN_RESPONSES_PER_AREA", 2)
DIAGNOSIS_BATCH_SIZE   = _int_env("DIAGNOSIS_BATCH_SIZE", 3)

# "baseline": 50 + similarity * 50
# "weighted": similarity scaled by specificity / consistency / completeness
CONFIDENCE_POLICY = os.getenv("CONFIDENCE_POLICY", "baseline")

# ─────────────────────────────────────────────
# API sessions
# ─────────────────────────────────────────────

MAX_SESSIONS        = _int_env("MAX_SESSIONS", 1000)
SESSION_TTL_SECONDS = _int_env("SESSION_TTL_SECONDS", 60 * 60)
ALLOWED_ORIGINS     = os.getenv("ALLOWED_ORIGINS", "*").strip()
