"""LLM completion providers behind a small protocol."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Protocol

import structlog

from jobtrack.config import AppConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LLMCompletion:
    """Raw text answer plus token accounting for one call."""

    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated_cost_usd: float = 0.0


class LLMUsage:
    """Thread-safe running total of tokens and cost across a scan."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls = 0
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.estimated_cost_usd = 0.0

    def add(self, completion: LLMCompletion) -> None:
        with self._lock:
            self.calls += 1
            self.prompt_tokens += completion.prompt_tokens
            self.completion_tokens += completion.completion_tokens
            self.estimated_cost_usd += completion.estimated_cost_usd


class LLMProvider(Protocol):
    """Protocol that any LLM provider must implement."""

    def complete(self, prompt: str) -> LLMCompletion: ...


# ── OpenAI Provider ───────────────────────────────────────


class OpenAIProvider:
    """OpenAI chat-completions backend (GPT-4o-mini, GPT-4o, etc.)."""

    _SYSTEM_PROMPT = (
        "You triage a job seeker's inbox. You only ever answer in the exact "
        "two-line format the user asks for, with no extra text."
    )

    def __init__(self, config: AppConfig) -> None:
        from openai import OpenAI

        if not config.llm_api_key.get_secret_value():
            raise RuntimeError("LLM_API_KEY (or OPENAI_API_KEY) is not set")

        self._config = config
        self._client = OpenAI(
            api_key=config.llm_api_key.get_secret_value(),
            timeout=config.llm_timeout_sec,
            max_retries=0,  # one call per message; failures degrade instead
        )

    def complete(self, prompt: str) -> LLMCompletion:
        cfg = self._config
        resp = self._client.chat.completions.create(
            model=cfg.llm_model,
            timeout=cfg.llm_timeout_sec,
            temperature=0,
            messages=[
                {"role": "system", "content": self._SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )

        content = (resp.choices[0].message.content or "").strip()

        usage = getattr(resp, "usage", None)
        prompt_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        completion_tokens = int(getattr(usage, "completion_tokens", 0) or 0)
        estimated_cost = (
            (prompt_tokens / 1_000_000.0) * cfg.cost_input_per_mtok
            + (completion_tokens / 1_000_000.0) * cfg.cost_output_per_mtok
        )
        return LLMCompletion(
            text=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            estimated_cost_usd=estimated_cost,
        )


# ── Factory ───────────────────────────────────────────────

_PROVIDERS: dict[str, type] = {
    "openai": OpenAIProvider,
}


def create_llm_provider(config: AppConfig) -> LLMProvider:
    """Instantiate the configured LLM provider."""
    provider_cls = _PROVIDERS.get(config.llm_provider.lower())
    if provider_cls is None:
        raise ValueError(
            f"Unknown LLM provider: {config.llm_provider!r}. "
            f"Available: {', '.join(_PROVIDERS)}"
        )
    return provider_cls(config)


def resolve_llm_provider(config: AppConfig) -> LLMProvider | None:
    """Return the configured provider, or None when disabled or misconfigured.

    A missing provider is not fatal: the status classifier degrades to its
    default answer for every message.
    """
    if not config.llm_enabled:
        logger.info("llm_disabled")
        return None
    try:
        provider = create_llm_provider(config)
    except Exception as exc:
        logger.warning("llm_provider_init_failed", error=str(exc))
        return None
    logger.info("llm_provider_ready", provider=config.llm_provider, model=config.llm_model)
    return provider


# ── Hard-timeout wrapper ──────────────────────────────────


def complete_with_timeout(
    provider: LLMProvider,
    prompt: str,
    timeout_sec: int = 45,
) -> LLMCompletion:
    """Call the provider with a hard thread-based timeout.

    This guards against the SDK's own timeout being unreliable.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(provider.complete, prompt)
    try:
        return future.result(timeout=timeout_sec)
    except FuturesTimeoutError:
        # A running call cannot be cancelled: it keeps its own thread, outside
        # the scan pool's limit, until the client's request timeout ends it.
        future.cancel()
        raise RuntimeError(f"LLM hard-timeout after {timeout_sec}s")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
