from __future__ import annotations

from typing import Optional, Union

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from workspace_platform.models import Principal

from .session import VerificationFailure, session_keys_from_config, verify_session_token


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _resolve(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Union[Principal, VerificationFailure, None]:
    """Principal, the reason the presented token was rejected, or None if no token was sent.

    An explicit `Authorization: Bearer` header wins over the session cookie.
    """
    cfg = request.app.state.cfg
    token = credentials.credentials if credentials is not None and credentials.credentials else None
    if not token:
        token = request.cookies.get(cfg.AUTH_COOKIE_NAME or "ws_session") or None
    if not token:
        return None
    return verify_session_token(token, keys=session_keys_from_config(cfg))


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Principal:
    """Authenticate the request, or 401 with the rejection reason as `detail`.

    No DB lookup: the signature and expiry are the whole check.
    """
    if getattr(request.app.state, "cfg", None) is None:
        raise HTTPException(status_code=500, detail="server_config_missing")

    result = _resolve(request, credentials)
    if result is None:
        raise _unauthorized("missing_token")
    if isinstance(result, VerificationFailure):
        raise _unauthorized(result.value)
    return result


def get_optional_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[Principal]:
    """The principal if a valid token came with the request; None otherwise."""
    if getattr(request.app.state, "cfg", None) is None:
        return None
    result = _resolve(request, credentials)
    return result if isinstance(result, Principal) else None
