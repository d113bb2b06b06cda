"""
Auth dependencies for protected FastAPI routes.

User routes take the user's opaque token, admin routes take an `admin_`
session token; both arrive as `Authorization: Bearer <token>`.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status

from . import service


def _reject(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _split_bearer(raw: str) -> str | None:
    scheme, _, token = raw.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def parse_bearer(authorization: str | None) -> str | None:
    """
    Return the token from an Authorization header value, or None if absent.

    A header that is present but not `Bearer <token>` is rejected.
    """
    raw = (authorization or "").strip()
    if not raw:
        return None

    token = _split_bearer(raw)
    if token is None:
        raise _reject("Authorization must be: Bearer <token>.")
    return token


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    token = parse_bearer(authorization)
    if token is None:
        raise _reject("Missing Authorization header.")
    return token


async def get_optional_bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    # Any other scheme counts as no header; the body token may still apply.
    return _split_bearer((authorization or "").strip())


async def get_current_admin(token: str = Depends(get_bearer_token)) -> dict:
    return await service.admin_from_token(token)
