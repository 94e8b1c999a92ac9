from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import BaseModel, ValidationError

from agency_billing.core import rbac
from agency_billing.core.security import decode_token
from agency_billing.models.enums import Role

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
logger = logging.getLogger("security")


class RequestUser(BaseModel):
    """Identity asserted by the auth service through the bearer token."""

    id: str
    email: Optional[str] = None
    role: Role


def _log_auth_event(event: str, *, request: Request, extra: Optional[dict] = None) -> None:
    payload = {
        "event": event,
        "request_id": request.headers.get("x-request-id"),
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else None,
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def get_current_user(request: Request, token: str = Security(oauth2_scheme)) -> RequestUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
    except JWTError:
        _log_auth_event("token_invalid", request=request)
        raise credentials_exception

    if payload.get("sub") is None:
        _log_auth_event("token_missing_sub", request=request)
        raise credentials_exception
    try:
        return RequestUser(id=str(payload["sub"]), email=payload.get("email"), role=payload.get("role"))
    except ValidationError:
        _log_auth_event("token_bad_claims", request=request, extra={"role": payload.get("role")})
        raise credentials_exception


def require_billing_manager(current_user: RequestUser = Depends(get_current_user)) -> RequestUser:
    rbac.require_roles(current_user, rbac.BILLING_MANAGER_ROLES)
    return current_user
