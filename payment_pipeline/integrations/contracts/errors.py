"""
Failure taxonomy shared by every integration client and the checkout saga.

Clients translate transport errors into one of these; the saga never looks
at message strings, only at ``kind``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    UNAVAILABLE = "upstream_unavailable"
    REJECTED = "upstream_rejected"
    PERSISTENCE = "persistence_unavailable"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.REJECTED


class PipelineError(Exception):
    kind: FailureKind = FailureKind.UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        system: str = "unknown",
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.system = system
        self.status_code = status_code
        self.payload = payload or {}

    def __str__(self) -> str:
        return f"[{self.system}] {self.message}"


class UpstreamUnavailable(PipelineError):
    """Network failure, timeout, throttling or 5xx. Safe to redeliver."""
    kind = FailureKind.UNAVAILABLE


class UpstreamRejected(PipelineError):
    """4xx or validation failure. Redelivery would repeat it."""
    kind = FailureKind.REJECTED


class PersistenceUnavailable(PipelineError):
    """The durable store could not be read or written."""
    kind = FailureKind.PERSISTENCE

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("system", "store")
        super().__init__(message, **kwargs)
