"""Password hashing, session tokens and the bearer/cookie auth middleware."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

import bcrypt
from jose import jwt
from jose.exceptions import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse


JWT_ALGORITHM = "HS256"
JWT_SECRET = os.getenv("FORMS_JWT_SECRET", "").strip() or "dev-forms-secret"
JWT_EXPIRES_S = int(os.getenv("FORMS_JWT_EXPIRES_S", "43200"))
BCRYPT_ROUNDS = int(os.getenv("FORMS_BCRYPT_ROUNDS", "10"))
TOKEN_COOKIE = "token"
PROTECTED_PREFIXES = ("/api/forms", "/api/workspaces", "/api/auth/me")

logger = logging.getLogger("forms.auth")


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str | None, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("password_hash_invalid")
        return False


def issue_token(user: dict, secret: str | None = None, expires_s: int | None = None) -> str:
    claims = {
        "sub": user.get("id"),
        "workspaceId": user.get("workspaceId"),
        "role": user.get("role"),
        "exp": int(time.time()) + (expires_s or JWT_EXPIRES_S),
    }
    return jwt.encode(claims, secret or JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str | None = None) -> dict:
    return jwt.decode(token, secret or JWT_SECRET, algorithms=[JWT_ALGORITHM])


def request_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(TOKEN_COOKIE) or None


def _unauthorized(code: str, message: str, detail: dict | None = None) -> JSONResponse:
    return JSONResponse(
        {
            "ok": False,
            "errors": [{"code": code, "message": message, "path": "Authorization", "detail": detail}],
            "warnings": [],
        },
        status_code=401,
    )


def _is_protected(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PROTECTED_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the session user for protected routes.

    Sets ``request.state.user`` and ``request.state.workspace`` from the store,
    or answers 401 with the usual error envelope.
    """

    def __init__(self, app, store: Any, secret: str | None = None) -> None:
        super().__init__(app)
        self._store = store
        self._secret = secret or JWT_SECRET

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or not _is_protected(request.url.path):
            return await call_next(request)
        start = time.perf_counter()

        token = request_token(request)
        if not token:
            logger.warning("auth_missing_token path=%s", request.url.path)
            return _unauthorized("AUTH_MISSING_TOKEN", "Authentication required")

        try:
            claims = decode_token(token, self._secret)
        except JWTError as exc:
            logger.warning("auth_invalid_token path=%s error=%s", request.url.path, exc)
            return _unauthorized("AUTH_INVALID_TOKEN", "Invalid or expired token", {"error": str(exc)})

        user = self._store.get_user(claims.get("sub"))
        if user is None:
            logger.warning("auth_unknown_user path=%s sub=%s", request.url.path, claims.get("sub"))
            return _unauthorized("AUTH_UNKNOWN_USER", "User not found")
        workspace = self._store.get_workspace(user.get("workspaceId"))
        if workspace is None:
            logger.warning("auth_missing_workspace user_id=%s", user["id"])
            return _unauthorized("AUTH_NO_WORKSPACE", "Workspace not found")

        request.state.user = user
        request.state.workspace = workspace
        request.state.auth_ms = (time.perf_counter() - start) * 1000
        return await call_next(request)
