"""
Application settings.

Every value is read once from the environment at import time. Malformed
numeric values fall back to the default with a warning instead of failing
startup.
"""

import os
import logging

logger = logging.getLogger(__name__)


class Settings:
    """Centralized settings with environment variable overrides"""

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Empty means the packaged engine/data/credit_cards.json
    CARD_CATALOG_PATH = os.getenv("CARD_CATALOG_PATH") or None

    _default_retention_hours = 24
    try:
        SESSION_RETENTION_HOURS = float(os.getenv("SESSION_RETENTION_HOURS", str(_default_retention_hours)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid SESSION_RETENTION_HOURS value; falling back to default %s",
            _default_retention_hours,
        )
        SESSION_RETENTION_HOURS = _default_retention_hours

    _default_sweep_interval = 3600
    try:
        SESSION_SWEEP_INTERVAL_SECONDS = float(
            os.getenv("SESSION_SWEEP_INTERVAL_SECONDS", str(_default_sweep_interval))
        )
    except (TypeError, ValueError):
        logger.warning(
            "Invalid SESSION_SWEEP_INTERVAL_SECONDS value; falling back to default %s seconds",
            _default_sweep_interval,
        )
        SESSION_SWEEP_INTERVAL_SECONDS = _default_sweep_interval

    # Comma separated, tried in order; the template provider is always appended last
    PHRASING_PROVIDERS = [
        name.strip().lower()
        for name in os.getenv("PHRASING_PROVIDERS", "openai,ollama,huggingface").split(",")
        if name.strip()
    ]

    _default_timeout = 5
    try:
        PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", str(_default_timeout)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid PROVIDER_TIMEOUT_SECONDS value; falling back to default %s seconds",
            _default_timeout,
        )
        PROVIDER_TIMEOUT_SECONDS = _default_timeout

    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")

    _default_temperature = 0.7
    try:
        LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", str(_default_temperature)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_TEMPERATURE value; falling back to default %s",
            _default_temperature,
        )
        LLM_TEMPERATURE = _default_temperature

    _default_max_tokens = 300
    try:
        LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", str(_default_max_tokens)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_MAX_TOKENS value; falling back to default %s",
            _default_max_tokens,
        )
        LLM_MAX_TOKENS = _default_max_tokens

    _default_max_retries = 1
    try:
        LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", str(_default_max_retries)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_MAX_RETRIES value; falling back to default %s",
            _default_max_retries,
        )
        LLM_MAX_RETRIES = _default_max_retries

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

    OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/")
    OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama2:7b")

    HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
    HUGGINGFACE_MODEL = os.getenv("HUGGINGFACE_MODEL", "microsoft/DialoGPT-large")
    HUGGINGFACE_URL = "https://api-inference.huggingface.co/models"

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]


settings = Settings()
