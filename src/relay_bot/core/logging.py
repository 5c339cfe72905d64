"""Logging helpers and per-run counters for relay-bot."""

import json
import logging
from collections import Counter
from threading import Event, Lock

# Set while --debug-ai is active
_ai_debug = Event()

# Full upstream payloads go to their own logger so they can be routed separately
_ai_logger = logging.getLogger("relay_bot.ai_debug")


def set_ai_debug(enabled: bool) -> None:
    """Turn logging of full upstream payloads on or off."""
    if enabled:
        _ai_debug.set()
    else:
        _ai_debug.clear()


def is_ai_debug() -> bool:
    return _ai_debug.is_set()


def log_upstream_request(endpoint: str, request: dict) -> None:
    """Log the JSON body about to be posted upstream (AI debug only)."""
    if not is_ai_debug():
        return
    _ai_logger.info(
        f"UPSTREAM_REQUEST -> {endpoint}\n{json.dumps(request, indent=2, ensure_ascii=False)}"
    )


def log_upstream_response(status: int, body: str) -> None:
    """Log the raw body the upstream answered with (AI debug only)."""
    if not is_ai_debug():
        return
    _ai_logger.info(f"UPSTREAM_RESPONSE <- HTTP {status}\n{body}")


class SessionStats:
    """Counters for one run of the relay.

    One instance is created by RelayService and handed to every component.
    Safe to bump from several threads.
    """

    COUNTERS = (
        "received",
        "logged",
        "log_failures",
        "triggers",
        "queries_ok",
        "queries_failed",
        "segments_sent",
    )

    def __init__(self):
        self._counts: Counter[str] = Counter()
        self._api_calls: Counter[str] = Counter()
        self._lock = Lock()

    def increment(self, name: str, amount: int = 1) -> int:
        """Bump a counter and return its new value."""
        if name not in self.COUNTERS:
            raise ValueError(f"Unknown counter: {name}")
        with self._lock:
            self._counts[name] += amount
            return self._counts[name]

    def count_api_call(self, model: str) -> None:
        with self._lock:
            self._api_calls[model] += 1

    def __getitem__(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    @property
    def api_calls(self) -> dict[str, int]:
        with self._lock:
            return dict(self._api_calls)

    def summary_line(self) -> str:
        """All counters as `name=value` pairs, for SESSION_STATS log lines."""
        with self._lock:
            parts = [f"{name}={self._counts[name]}" for name in self.COUNTERS]
            parts.extend(f"api[{model}]={n}" for model, n in sorted(self._api_calls.items()))
        return " ".join(parts)
