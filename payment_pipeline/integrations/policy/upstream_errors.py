"""
Translate httpx failures into the pipeline's failure taxonomy.

Timeouts, connection errors, 429 and 5xx are retryable (UpstreamUnavailable);
any other 4xx, or a response we cannot make sense of, is a rejection.
"""

from __future__ import annotations

import logging

import httpx

from payment_pipeline.integrations.contracts.errors import (
    PipelineError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from payment_pipeline.integrations.policy.response_wrappers import IntegrationResponseError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 425, 429}


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in _RETRYABLE_STATUS


def translate_http_error(exc: Exception, *, system: str) -> PipelineError:
    if isinstance(exc, PipelineError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        body = _safe_body(exc.response)
        logger.error("HTTP error from %s: %s %s", system, status_code, body)
        error_cls = UpstreamUnavailable if is_retryable_status(status_code) else UpstreamRejected
        return error_cls(
            f"{system} answered HTTP {status_code}",
            system=system,
            status_code=status_code,
            payload={"body": body},
        )

    if isinstance(exc, httpx.TimeoutException):
        logger.error("Timeout talking to %s: %s", system, exc)
        return UpstreamUnavailable(f"{system} timed out", system=system)

    if isinstance(exc, httpx.RequestError):
        logger.error("Request error connecting to %s: %s", system, exc)
        return UpstreamUnavailable(f"could not reach {system}: {exc}", system=system)

    if isinstance(exc, IntegrationResponseError):
        logger.error("Unexpected response shape from %s: %s", system, exc)
        return UpstreamRejected(str(exc), system=system, payload=exc.payload)

    logger.exception("Unexpected error in %s client", system)
    return UpstreamUnavailable(f"unexpected {type(exc).__name__} from {system}: {exc}", system=system)


def _safe_body(response: httpx.Response) -> str:
    try:
        return response.text[:500]
    except Exception:  # pragma: no cover - streaming bodies
        return "<unreadable body>"
