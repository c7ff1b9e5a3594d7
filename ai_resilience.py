"""Gemini call wrapper: retry, circuit breaker, reply cache, usage estimate.

call_gemini() is the only path from the app to the Gemini API. It refuses
to call while the circuit is open, serves cached replies when a TTL is
given, retries quota and availability errors with tenacity, and logs a
rough token and cost estimate for every real call.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time

from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Errors worth another attempt: quota, overload, deadline, dropped connection
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    google_exceptions.TooManyRequests,
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)


class CircuitOpenError(RuntimeError):
    """Gemini is failing; the call was refused without a request."""


class RetryableGeminiError(Exception):
    """A Gemini error that tenacity should retry."""


# ── Reply cache ─────────────────────────────────────────────

class ReplyCache:
    """Gemini replies keyed by model and prompt, each with its own expiry."""

    MAX_ENTRIES = 500

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, str]] = {}  # key -> (expires_at, reply)
        self._lock = threading.Lock()

    @staticmethod
    def key_for(model: str, prompt: str) -> str:
        return hashlib.sha256(f"{model}\n{prompt}".encode()).hexdigest()

    def get(self, key: str) -> str | None:
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry[0] <= now:
                del self._entries[key]
                return None
            return entry[1]

    def put(self, key: str, reply: str, ttl: int) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.MAX_ENTRIES:
                soonest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[soonest]
            self._entries[key] = (time.time() + ttl, reply)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# ── Circuit breaker ─────────────────────────────────────────

class GeminiCircuit:
    """Stops calling Gemini after repeated failures.

    ``closed`` lets calls through. FAILURE_THRESHOLD failures in a row open
    the circuit; once RECOVERY_TIMEOUT seconds pass it turns ``half_open``
    and lets a trial call through. A trial success closes it, a trial
    failure opens it again straight away.
    """

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60.0  # seconds

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = "closed"
        self._failures = 0
        self._opened_at = 0.0

    def _advance(self) -> str:
        if self._state == "open" and time.time() - self._opened_at >= self.RECOVERY_TIMEOUT:
            self._state = "half_open"
        return self._state

    @property
    def state(self) -> str:
        with self._lock:
            return self._advance()

    def allows_call(self) -> bool:
        return self.state != "open"

    def record_success(self) -> None:
        with self._lock:
            self._state = "closed"
            self._failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._advance() == "half_open" or self._failures >= self.FAILURE_THRESHOLD:
                self._state = "open"
                self._opened_at = time.time()

    def reset(self) -> None:
        with self._lock:
            self._state = "closed"
            self._failures = 0
            self._opened_at = 0.0


_circuit = GeminiCircuit()
_replies = ReplyCache()


# ── Usage estimate ──────────────────────────────────────────

# USD per 1M tokens, input and output averaged
MODEL_PRICING: dict[str, float] = {
    "gemini-1.5-flash": 0.075,
    "gemini-1.5-flash-8b": 0.0375,
    "gemini-1.5-pro": 1.25,
    "gemini-2.0-flash": 0.1,
}
UNKNOWN_MODEL_PRICE = 1.0


def estimate_tokens(text: str) -> int:
    """About four characters per token; never less than one."""
    return max(1, len(text) // 4)


def estimate_usage(model: str, prompt: str, reply: str, latency_ms: int) -> dict:
    prompt_tokens = estimate_tokens(prompt)
    reply_tokens = estimate_tokens(reply)
    price = MODEL_PRICING.get(model, UNKNOWN_MODEL_PRICE)
    return {
        "model": model,
        "prompt_tokens_est": prompt_tokens,
        "reply_tokens_est": reply_tokens,
        "cost_estimate_usd": round((prompt_tokens + reply_tokens) * price / 1_000_000, 6),
        "latency_ms": latency_ms,
        "cache_hit": False,
    }


# ── Calling Gemini ──────────────────────────────────────────

def _generate(model: str, prompt: str, api_key: str) -> str:
    """One generate_content request, no retry or cache."""
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model).generate_content(prompt).text


@retry(
    retry=retry_if_exception_type(RetryableGeminiError),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _generate_with_retry(model: str, prompt: str, api_key: str) -> str:
    try:
        return _generate(model, prompt, api_key)
    except RETRYABLE_ERRORS as exc:
        raise RetryableGeminiError(f"{type(exc).__name__}: {exc}") from exc


def call_gemini(model: str, prompt: str, api_key: str, cache_ttl: int = 0) -> tuple[str, dict]:
    """Send ``prompt`` to ``model`` and return ``(reply_text, usage)``.

    Raises CircuitOpenError without a request while the circuit is open;
    any other failure is re-raised after it counts against the circuit.
    A positive ``cache_ttl`` caches the reply for that many seconds.
    """
    if not _circuit.allows_call():
        raise CircuitOpenError("Gemini circuit is open; skipping request")

    key = ReplyCache.key_for(model, prompt)
    if cache_ttl > 0:
        cached = _replies.get(key)
        if cached is not None:
            return cached, {"model": model, "cache_hit": True, "latency_ms": 0, "cost_estimate_usd": 0.0}

    started = time.time()
    try:
        reply = _generate_with_retry(model, prompt, api_key)
    except Exception:
        _circuit.record_failure()
        raise
    _circuit.record_success()

    if cache_ttl > 0:
        _replies.put(key, reply, cache_ttl)

    usage = estimate_usage(model, prompt, reply, int((time.time() - started) * 1000))
    logger.info(
        "Gemini call model=%s latency=%dms tokens~%d cost~$%.6f",
        model, usage["latency_ms"], usage["prompt_tokens_est"] + usage["reply_tokens_est"],
        usage["cost_estimate_usd"],
    )
    return reply, usage


def get_circuit() -> GeminiCircuit:
    return _circuit


def get_reply_cache() -> ReplyCache:
    return _replies
