"""
Auth security helpers.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

import bcrypt

from core import config

ADMIN_TOKEN_PREFIX = "admin_"


class AuthSecurityError(RuntimeError):
    pass


def admin_username() -> str:
    return config.env_str("ADMIN_USERNAME", "admin")


def admin_password() -> str:
    # Local default keeps development simple.
    # In production, set ADMIN_PASSWORD in environment.
    return config.env_str("ADMIN_PASSWORD", "admin123")


def admin_session_ttl() -> timedelta:
    return timedelta(hours=max(1, config.env_int("ADMIN_SESSION_TTL_HOURS", 24)))


def bcrypt_rounds() -> int:
    # bcrypt accepts 4..31.
    return min(max(config.env_int("BCRYPT_ROUNDS", 12), 4), 31)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    # Fixed width, so string order is chronological order.
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_iso(value: str | None) -> datetime | None:
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=bcrypt_rounds())).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def is_utf8_text(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates survive JSON decoding but cannot be stored.
        return False
    return True


def build_user_token() -> str:
    return secrets.token_hex(32)


def build_admin_token() -> str:
    return ADMIN_TOKEN_PREFIX + secrets.token_hex(32)


def tokens_match(candidate: str, expected: str) -> bool:
    if not candidate or not expected:
        return False
    if not is_utf8_text(candidate) or not is_utf8_text(expected):
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def is_admin_credentials(username: str, password: str) -> bool:
    # Both comparisons always run.
    user_ok = tokens_match(username or "", admin_username())
    password_ok = tokens_match(password or "", admin_password())
    return user_ok and password_ok
