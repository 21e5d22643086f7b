"""Provider-agnostic text-generation client used by the scan loop."""

from __future__ import annotations

import json
import logging
import os
import random
import re
import time
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class LLMServiceError(RuntimeError):
    """Raised when an LLM call fails after retries."""


@dataclass(frozen=True)
class ChatMessage:
    role: str
    text: str


@dataclass(frozen=True)
class GenerationSettings:
    temperature: float = 0.0
    max_output_tokens: int | None = None
    # Provider-specific passthrough, sent as-is in the request body.
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LLMResponse:
    text: str
    input_tokens: int
    output_tokens: int
    model: str = ""


def default_settings(max_output_tokens: int | None = None) -> GenerationSettings:
    from docscan.config import GENERATION_TEMPERATURE, LLM_DISABLE_THINKING, RESPONSE_TOKEN_LIMIT

    limit = max_output_tokens or RESPONSE_TOKEN_LIMIT
    extra: dict[str, Any] = {}
    if LLM_DISABLE_THINKING:
        extra = {"options": {"think": False, "num_predict": limit}}
    return GenerationSettings(
        temperature=GENERATION_TEMPERATURE,
        max_output_tokens=limit,
        extra=extra,
    )


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    return [{"role": message.role, "content": message.text} for message in messages]


class LLMClient:
    """Abstract base class for LLM providers."""

    provider: str = "base"
    _last_call_ts: float = 0.0

    def _throttle(self) -> None:
        from docscan.config import LLM_MIN_CALL_INTERVAL_S

        if LLM_MIN_CALL_INTERVAL_S <= 0:
            return
        elapsed = time.time() - self._last_call_ts
        if elapsed < LLM_MIN_CALL_INTERVAL_S:
            time.sleep(LLM_MIN_CALL_INTERVAL_S - elapsed)

    def _sleep_backoff(self, attempt: int) -> None:
        from docscan.config import LLM_BACKOFF_BASE_S, LLM_BACKOFF_MAX_S

        base = max(0.1, LLM_BACKOFF_BASE_S)
        max_wait = max(base, LLM_BACKOFF_MAX_S)
        wait = min(max_wait, base * (2**attempt))
        jitter = random.uniform(0.0, base)  # nosec B311
        time.sleep(wait + jitter)

    def _is_retryable_error(self, exc: Exception) -> tuple[bool, str]:
        name = exc.__class__.__name__
        status_code = getattr(exc, "status_code", None)
        body = str(exc).lower()
        retryable_status = {408, 409, 429, 500, 502, 503, 504}
        retryable_name_markers = (
            "RateLimitError",
            "APITimeoutError",
            "APIConnectionError",
            "InternalServerError",
        )

        if status_code in retryable_status:
            return True, f"status={status_code}"
        if any(marker in name for marker in retryable_name_markers):
            return True, name
        if "rate limit" in body or "too many requests" in body or "timeout" in body:
            return True, name
        return False, name

    def _chat_completion_with_retry(self, client, kwargs: dict):
        from docscan.config import LLM_MAX_RETRIES

        attempts = max(1, LLM_MAX_RETRIES + 1)
        for attempt in range(attempts):
            try:
                self._throttle()
                resp = client.chat.completions.create(**kwargs)
                self._last_call_ts = time.time()
                return resp
            except Exception as exc:
                retryable, reason = self._is_retryable_error(exc)
                is_last = attempt == attempts - 1
                if not retryable or is_last:
                    msg = (
                        f"{self.__class__.__name__} failed after "
                        f"{attempt + 1}/{attempts} attempts: {exc}"
                    )
                    raise LLMServiceError(msg) from exc
                log.warning(
                    "%s transient error (attempt %d/%d, reason=%s). Retrying...",
                    self.__class__.__name__,
                    attempt + 1,
                    attempts,
                    reason,
                )
                self._sleep_backoff(attempt)

        raise LLMServiceError(f"{self.__class__.__name__} failed unexpectedly.")

    def _to_response(self, resp, model: str) -> LLMResponse:
        usage = resp.usage
        return LLMResponse(
            text=resp.choices[0].message.content or "",
            input_tokens=getattr(usage, "prompt_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "completion_tokens", 0) if usage else 0,
            model=getattr(resp, "model", None) or model,
        )

    def generate(
        self,
        messages: list[ChatMessage],
        settings: GenerationSettings | None = None,
    ) -> LLMResponse:
        raise NotImplementedError


class GrokClient(LLMClient):
    provider = "grok"

    def __init__(self) -> None:
        from docscan.config import GROK_API_KEY, GROK_ENDPOINT

        if not GROK_API_KEY:
            raise ValueError("GROK_API_KEY is required when LLM_PROVIDER=grok.")

        from openai import OpenAI

        self._client = OpenAI(base_url=GROK_ENDPOINT, api_key=GROK_API_KEY)

    def generate(
        self,
        messages: list[ChatMessage],
        settings: GenerationSettings | None = None,
    ) -> LLMResponse:
        from docscan.config import GROK_MODEL

        settings = settings or default_settings()
        kwargs: dict = {
            "model": GROK_MODEL,
            "messages": to_openai_messages(messages),
            "temperature": settings.temperature,
        }
        if settings.max_output_tokens is not None:
            kwargs["max_tokens"] = settings.max_output_tokens
        if settings.extra:
            kwargs["extra_body"] = dict(settings.extra)

        resp = self._chat_completion_with_retry(self._client, kwargs)
        return self._to_response(resp, GROK_MODEL)


class AzureOpenAIClient(LLMClient):
    provider = "azure_openai"

    def __init__(self) -> None:
        from openai import AzureOpenAI

        from docscan.config import AZURE_API_KEY, AZURE_API_VERSION, AZURE_ENDPOINT

        if not AZURE_API_KEY:
            raise ValueError("AZURE_API_KEY is required when LLM_PROVIDER=azure_openai.")
        if not AZURE_ENDPOINT:
            raise ValueError("AZURE_ENDPOINT is required when LLM_PROVIDER=azure_openai.")

        self._client = AzureOpenAI(
            api_version=AZURE_API_VERSION,
            azure_endpoint=AZURE_ENDPOINT,
            api_key=AZURE_API_KEY,
        )

    def generate(
        self,
        messages: list[ChatMessage],
        settings: GenerationSettings | None = None,
    ) -> LLMResponse:
        from docscan.config import AZURE_MODEL

        settings = settings or default_settings()
        deploy = AZURE_MODEL
        kwargs: dict = {"model": deploy, "messages": to_openai_messages(messages)}
        # Reasoning deployments reject temperature and use a different token cap name.
        if deploy.startswith("o"):
            if settings.max_output_tokens is not None:
                kwargs["max_completion_tokens"] = settings.max_output_tokens
        else:
            kwargs["temperature"] = settings.temperature
            if settings.max_output_tokens is not None:
                kwargs["max_tokens"] = settings.max_output_tokens

        resp = self._chat_completion_with_retry(self._client, kwargs)
        return self._to_response(resp, deploy)


class MockOfflineClient(LLMClient):
    """Deterministic stand-in that answers both scan phases without a network."""

    provider = "mock"

    def _json_messages(self, messages: list[ChatMessage]) -> list[dict]:
        payloads: list[dict] = []
        for message in messages:
            if message.role != "user":
                continue
            try:
                payload = json.loads(message.text)
            except json.JSONDecodeError:
                continue
            if isinstance(payload, dict):
                payloads.append(payload)
        return payloads

    def _goal_terms(self, goal: str) -> list[str]:
        return [word.lower() for word in _WORD_RE.findall(goal) if len(word) >= 4]

    def _scan_payload(self, payloads: list[dict]) -> dict:
        by_type = {payload.get("type"): payload for payload in payloads}
        task = by_type.get("task", {})
        snapshot = by_type.get("snapshot", {})
        batch = by_type.get("batch", {})
        terms = self._goal_terms(str(task.get("goal", "")))
        seen = set(snapshot.get("recentEvidencePointers", []))

        evidence = []
        for item in batch.get("items", []):
            markdown = str(item.get("markdown", ""))
            if item.get("pointer") in seen or item.get("itemType") == "heading":
                continue
            if any(term in markdown.lower() for term in terms):
                evidence.append(
                    {
                        "pointer": item.get("pointer"),
                        "excerpt": markdown,
                        "reason": "Mentions a term from the task.",
                    }
                )

        decision = "continue"
        if not batch.get("hasMoreBatches") and not evidence and not snapshot.get("evidenceCount"):
            decision = "not_found"
        return {"decision": decision, "newEvidence": evidence}

    def _adjudicate_payload(self, prompt: str) -> dict:
        evidence: list = []
        marker = "Evidence (JSON):"
        if marker in prompt:
            line = prompt.split(marker, 1)[1].strip().splitlines()[0]
            try:
                evidence = json.loads(line)
            except json.JSONDecodeError:
                evidence = []
        if not evidence:
            return {"decision": "not_found", "summary": "No evidence to choose from."}
        first = evidence[0]
        return {
            "decision": "success",
            "semanticPointerFrom": first.get("pointer"),
            "whyThis": first.get("rationale") or "First collected candidate.",
            "markdown": first.get("excerpt"),
            "summary": f"Offline deterministic pick among {len(evidence)} candidates.",
        }

    def generate(
        self,
        messages: list[ChatMessage],
        settings: GenerationSettings | None = None,
    ) -> LLMResponse:
        del settings
        payloads = self._json_messages(messages)
        if any(payload.get("type") == "batch" for payload in payloads):
            body = self._scan_payload(payloads)
        else:
            body = self._adjudicate_payload(messages[-1].text if messages else "")
        return LLMResponse(text=json.dumps(body, ensure_ascii=False), input_tokens=0, output_tokens=0, model="mock")


def get_llm_client() -> LLMClient:
    from docscan.config import LLM_PROVIDER, OFFLINE_MODE

    provider = os.getenv("LLM_PROVIDER", LLM_PROVIDER).strip().lower()
    offline = os.getenv("OFFLINE_MODE", "1" if OFFLINE_MODE else "0").strip().lower() in {
        "1",
        "true",
        "yes",
    }
    if offline:
        return MockOfflineClient()

    if provider == "grok":
        return GrokClient()
    if provider == "azure_openai":
        return AzureOpenAIClient()
    if provider == "mock":
        return MockOfflineClient()
    raise ValueError(f"Unknown LLM_PROVIDER={provider!r}")
