"""
UsageStats - shared, lock-protected usage counters for a run.

One instance is created per run and handed around by reference: the model
boundary reports requests and tokens into it, the tool executor counts tool
calls, and at the end of the run it is merged into the caller's accumulator.
Parallel tool completions may update it from several threads, so every
mutation happens under a lock.
"""

import threading
from typing import Any


class UsageStats:
    """Mutable usage counters; merge is additive."""

    _COUNTERS = (
        "requests_for_run",
        "tool_calls_for_run",
        "request_tokens",
        "response_tokens",
        "total_tokens",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests_for_run = 0
        self._tool_calls_for_run = 0
        self._request_tokens = 0
        self._response_tokens = 0
        self._total_tokens = 0
        self._details: dict[str, int] = {}

    # ------------------------------------------------------------------ reads

    @property
    def requests_for_run(self) -> int:
        return self._requests_for_run

    @property
    def tool_calls_for_run(self) -> int:
        return self._tool_calls_for_run

    @property
    def request_tokens(self) -> int:
        return self._request_tokens

    @property
    def response_tokens(self) -> int:
        return self._response_tokens

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def details(self) -> dict[str, int]:
        with self._lock:
            return dict(self._details)

    # --------------------------------------------------------------- updates

    def increment_requests_for_run(self, value: int = 1) -> "UsageStats":
        with self._lock:
            self._requests_for_run += value
        return self

    def increment_tool_calls_for_run(self, value: int = 1) -> "UsageStats":
        with self._lock:
            self._tool_calls_for_run += value
        return self

    def increment_request_tokens(self, value: int) -> "UsageStats":
        with self._lock:
            self._request_tokens += value
        return self

    def increment_response_tokens(self, value: int) -> "UsageStats":
        with self._lock:
            self._response_tokens += value
        return self

    def increment_total_tokens(self, value: int) -> "UsageStats":
        with self._lock:
            self._total_tokens += value
        return self

    def add_details(self, details: dict[str, int] | None) -> "UsageStats":
        if details:
            with self._lock:
                for key, value in details.items():
                    self._details[key] = self._details.get(key, 0) + value
        return self

    def record_model_usage(
        self,
        request_tokens: int = 0,
        response_tokens: int = 0,
        total_tokens: int | None = None,
        requests: int = 1,
    ) -> "UsageStats":
        """Record one model round-trip in a single locked update."""
        with self._lock:
            self._requests_for_run += requests
            self._request_tokens += request_tokens
            self._response_tokens += response_tokens
            self._total_tokens += (
                total_tokens if total_tokens is not None else request_tokens + response_tokens
            )
        return self

    def merge(self, other: "UsageStats | None") -> "UsageStats":
        """Add another accumulator's counters into this one."""
        if other is None or other is self:
            return self
        snapshot = other.to_dict()
        with self._lock:
            self._requests_for_run += snapshot["requests_for_run"]
            self._tool_calls_for_run += snapshot["tool_calls_for_run"]
            self._request_tokens += snapshot["request_tokens"]
            self._response_tokens += snapshot["response_tokens"]
            self._total_tokens += snapshot["total_tokens"]
            for key, value in snapshot["details"].items():
                self._details[key] = self._details.get(key, 0) + value
        return self

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            data: dict[str, Any] = {
                name: getattr(self, f"_{name}") for name in self._COUNTERS
            }
            data["details"] = dict(self._details)
        return data

    def __repr__(self) -> str:
        counters = ", ".join(f"{k}={v}" for k, v in self.to_dict().items() if k != "details")
        return f"UsageStats({counters})"


__all__ = ["UsageStats"]
