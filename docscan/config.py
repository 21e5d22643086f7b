"""Centralized configuration for the document scanning agent."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


def bootstrap_runtime_dirs() -> None:
    OUTPUTS_DIR.mkdir(parents=True, exist_ok=True)


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


# LLM provider configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "grok")
OFFLINE_MODE = env_flag("OFFLINE_MODE")

GROK_API_KEY = os.getenv("GROK_API_KEY", "")
GROK_ENDPOINT = os.getenv(
    "GROK_ENDPOINT",
    "https://cmu-llm-api-resource.services.ai.azure.com/openai/v1/",
)
GROK_MODEL = os.getenv("GROK_MODEL", "grok-3")

AZURE_ENDPOINT = os.getenv("AZURE_ENDPOINT", "")
AZURE_API_KEY = os.getenv("AZURE_API_KEY", "")
AZURE_API_VERSION = os.getenv("AZURE_API_VERSION", "2024-12-01-preview")
AZURE_MODEL = os.getenv("AZURE_MODEL", "o4-mini")

# Generation and reliability
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.0"))
RESPONSE_TOKEN_LIMIT = int(os.getenv("RESPONSE_TOKEN_LIMIT", "4000"))
LLM_DISABLE_THINKING = env_flag("LLM_DISABLE_THINKING", "1")
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "4"))
LLM_BACKOFF_BASE_S = float(os.getenv("LLM_BACKOFF_BASE_S", "1.0"))
LLM_BACKOFF_MAX_S = float(os.getenv("LLM_BACKOFF_MAX_S", "15.0"))
LLM_MIN_CALL_INTERVAL_S = float(os.getenv("LLM_MIN_CALL_INTERVAL_S", "0.5"))

# Cursor window budgets
CURSOR_MAX_ELEMENTS = int(os.getenv("CURSOR_MAX_ELEMENTS", "50"))
CURSOR_MAX_BYTES = int(os.getenv("CURSOR_MAX_BYTES", str(1024 * 8)))

# Scan loop limits
DEFAULT_MAX_STEPS = int(os.getenv("DEFAULT_MAX_STEPS", "128"))
MAX_STEPS_LIMIT = int(os.getenv("MAX_STEPS_LIMIT", "512"))
DEFAULT_MAX_FOUND = int(os.getenv("DEFAULT_MAX_FOUND", "20"))
SNAPSHOT_EVIDENCE_LIMIT = int(os.getenv("SNAPSHOT_EVIDENCE_LIMIT", "5"))
MAX_SUMMARY_LENGTH = int(os.getenv("MAX_SUMMARY_LENGTH", "500"))
MAX_EXCERPT_LENGTH = int(os.getenv("MAX_EXCERPT_LENGTH", "1000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class ScanLimits:
    """Budgets for one scan run. Defaults come from the environment."""

    max_elements: int = CURSOR_MAX_ELEMENTS
    max_bytes: int = CURSOR_MAX_BYTES
    default_max_steps: int = DEFAULT_MAX_STEPS
    max_steps_limit: int = MAX_STEPS_LIMIT
    max_found: int = DEFAULT_MAX_FOUND
    snapshot_evidence_limit: int = SNAPSHOT_EVIDENCE_LIMIT
    max_summary_length: int = MAX_SUMMARY_LENGTH
    max_excerpt_length: int = MAX_EXCERPT_LENGTH
    response_token_limit: int = RESPONSE_TOKEN_LIMIT

    def resolve_max_steps(self, requested: int | None) -> int:
        if requested is None:
            return max(1, min(self.default_max_steps, self.max_steps_limit))
        return max(1, min(requested, self.max_steps_limit))
