from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request, Response
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from agency_billing.core.security import decode_token


REQUEST_FIELDS = ("request_id", "user_id", "role", "path", "method", "status_code", "latency_ms")
BILLING_FIELDS = (
    "client_id",
    "invoice_id",
    "invoice_number",
    "payment_id",
    "amount",
    "remaining",
    "count",
)

request_logger = logging.getLogger("agency_billing.request")
security_logger = logging.getLogger("agency_billing.security")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; request and billing extras are lifted to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in REQUEST_FIELDS + BILLING_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)
    # RequestLoggingMiddleware already writes one line per request.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _token_claims(request: Request) -> dict:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return {}
    try:
        return decode_token(token.strip())
    except (JWTError, ValueError, TypeError):
        return {}


def _request_fields(request: Request, request_id: str, started: float) -> dict[str, Any]:
    claims = _token_claims(request)
    subject = claims.get("sub")
    return {
        "request_id": request_id,
        "user_id": str(subject) if subject is not None else None,
        "role": claims.get("role"),
        "path": request.url.path,
        "method": request.method,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags every request with an ``X-Request-Id`` and logs its outcome.

    Refused billing actions (403 for an authenticated caller) are also
    written to the security logger.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            request_logger.exception("unhandled_exception", extra=_request_fields(request, request_id, started))
            raise

        fields = _request_fields(request, request_id, started)
        fields["status_code"] = response.status_code
        request_logger.info("request", extra=fields)
        if response.status_code == 403 and fields["user_id"]:
            security_logger.warning("billing_action_forbidden", extra=fields)

        response.headers["X-Request-Id"] = request_id
        return response
