"""
Auth business logic.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import HTTPException, status

from . import repository, schemas, security

logger = logging.getLogger(__name__)

ADMIN_ID = "admin_001"
ADMIN_ROLE = "admin"


def _to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=str(user_row["id"]),
        username=str(user_row["username"]),
        email=str(user_row["email"]),
        token=str(user_row["token"]),
    )


def _to_admin_response(session: dict) -> schemas.AdminResponse:
    return schemas.AdminResponse(
        id=str(session["id"]),
        username=str(session["username"]),
        role=str(session["role"]),
        login_at=str(session["login_at"]),
        expires_at=str(session["expires_at"]),
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def register(payload: schemas.RegisterRequest) -> schemas.AuthResponse:
    username = repository.normalize_username(payload.username)
    email = repository.normalize_email(payload.email)
    if not username or not email or not payload.password.strip():
        raise HTTPException(
            status_code=422,
            detail="Username, email, and password are required.",
        )

    password_hash = security.hash_password(payload.password)
    now = security.isoformat(security.utc_now())
    user_row = {
        "id": str(uuid4()),
        "username": username,
        "email": email,
        "password_hash": password_hash,
        "token": security.build_user_token(),
        "created_at": now,
        "last_login_at": now,
        "is_active": True,
    }

    def _insert(users: list[dict]) -> dict:
        for existing in users:
            if not isinstance(existing, dict):
                continue
            same_email = repository.normalize_email(str(existing.get("email") or "")) == email
            same_name = repository.normalize_username(str(existing.get("username") or "")) == username
            if same_email or same_name:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="A user with this email or username already exists.",
                )
        users.append(user_row)
        return user_row

    created = await repository.mutate_users(_insert)
    logger.info("user_registered user_id=%s username=%s", created["id"], created["username"])
    return schemas.AuthResponse(user=_to_user_response(created))


async def login(payload: schemas.LoginRequest) -> schemas.AuthResponse:
    user_row = await repository.get_user_by_email(payload.email)
    if user_row is None:
        raise _unauthorized("Invalid email or password.")

    is_valid = security.verify_password(payload.password, str(user_row.get("password_hash") or ""))
    if not is_valid:
        raise _unauthorized("Invalid email or password.")

    if not bool(user_row.get("is_active", False)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been disabled.",
        )

    user_id = str(user_row["id"])
    new_token = security.build_user_token()
    now = security.isoformat(security.utc_now())

    def _rotate(users: list[dict]) -> dict:
        index = repository.find_index(users, user_id)
        if index == -1:
            # Deleted between the lookup and the write.
            raise _unauthorized("Invalid email or password.")
        users[index]["token"] = new_token
        users[index]["last_login_at"] = now
        return users[index]

    updated = await repository.mutate_users(_rotate)
    logger.info("user_login user_id=%s", user_id)
    return schemas.AuthResponse(user=_to_user_response(updated))


async def user_from_token(token: str | None) -> dict:
    """
    Resolve an opaque user token to its active user record.
    """
    raw = (token or "").strip()
    if not raw:
        raise _unauthorized("Token is required.")

    for user_row in await repository.list_users():
        if security.tokens_match(raw, str(user_row.get("token") or "")):
            if not bool(user_row.get("is_active", False)):
                break
            return user_row

    raise _unauthorized("Invalid or expired token.")


async def _stored_admin(username: str, password: str) -> dict | None:
    for admin in await repository.list_admins():
        if not bool(admin.get("is_active", False)):
            continue
        if not security.tokens_match(username, str(admin.get("username") or "")):
            continue
        if security.verify_password(password, str(admin.get("password_hash") or "")):
            return admin
    return None


async def _sweep_expired_sessions() -> int:
    now = security.utc_now()
    removed = 0
    for token, session in await repository.list_admin_sessions():
        expires_at = security.parse_iso((session or {}).get("expires_at"))
        if expires_at is not None and expires_at > now:
            continue
        if await repository.delete_admin_session(token):
            removed += 1
    if removed:
        logger.info("admin_sessions_swept count=%s", removed)
    return removed


async def admin_login(payload: schemas.AdminLoginRequest) -> schemas.AdminLoginResponse:
    if security.is_admin_credentials(payload.username, payload.password):
        admin_id, username, role = ADMIN_ID, security.admin_username(), ADMIN_ROLE
    else:
        admin = await _stored_admin(payload.username, payload.password)
        if admin is None:
            logger.warning("admin_login_failed username=%s", payload.username)
            raise _unauthorized("Invalid admin credentials.")
        admin_id = str(admin.get("id") or "")
        username = str(admin["username"])
        role = str(admin.get("role") or ADMIN_ROLE)

    await _sweep_expired_sessions()

    token = security.build_admin_token()
    login_at = security.utc_now()
    session = {
        "id": admin_id,
        "username": username,
        "role": role,
        "token": token,
        "login_at": security.isoformat(login_at),
        "expires_at": security.isoformat(login_at + security.admin_session_ttl()),
    }
    await repository.put_admin_session(token, session)
    logger.info("admin_login admin_id=%s role=%s", admin_id, role)
    return schemas.AdminLoginResponse(token=token, admin=_to_admin_response(session))


async def admin_from_token(token: str | None) -> dict:
    """
    Resolve an admin token to its live session. Expired sessions are removed.
    """
    raw = (token or "").strip()
    if not raw.startswith(security.ADMIN_TOKEN_PREFIX):
        raise _unauthorized("Invalid or expired admin token.")

    session = await repository.get_admin_session(raw)
    if session is None or not security.tokens_match(raw, str(session.get("token") or "")):
        raise _unauthorized("Invalid or expired admin token.")

    expires_at = security.parse_iso(session.get("expires_at"))
    if expires_at is None or expires_at <= security.utc_now():
        await repository.delete_admin_session(raw)
        logger.info("admin_session_expired admin_id=%s", session.get("id"))
        raise _unauthorized("Invalid or expired admin token.")

    return session


async def verify_admin(payload: schemas.VerifyAdminRequest) -> schemas.VerifyAdminResponse:
    session = await admin_from_token(payload.token)
    return schemas.VerifyAdminResponse(admin=_to_admin_response(session))
