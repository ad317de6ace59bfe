from __future__ import annotations

import hmac
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reiseveteran.config import Config
from reiseveteran.db import connect

from .crud import get_user_by_id
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_token_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> str:
    """Validate the `Authorization: Bearer <jwt>` header and return its user id.

    Every failure is a 401 with a distinct detail string; clients treat all
    of them as "no session".
    """

    if credentials is None or not credentials.credentials:
        raise _unauthorized("missing_token")

    try:
        payload = decode_access_token(token=credentials.credentials, secret=cfg.AUTH_JWT_SECRET)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("token_expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("token_invalid")

    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("token_missing_sub")
    return str(sub)


def get_current_user(
    user_id: str = Depends(get_token_subject),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    """Authenticated user row as a dict; 401 when the account is gone."""
    with connect(cfg.DB_PATH) as conn:
        row = get_user_by_id(conn, user_id)
        if row is None:
            raise _unauthorized("user_not_found")
        return dict(row)


def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
    cfg: Config = Depends(get_config),
) -> None:
    """Gate administrative endpoints behind the shared ADMIN_API_KEY.

    With no key configured the endpoints are disabled outright.
    """
    expected = cfg.ADMIN_API_KEY
    if not expected:
        raise HTTPException(status_code=503, detail="admin_key_not_configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="admin_required")
