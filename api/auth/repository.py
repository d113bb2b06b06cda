"""
Auth persistence helpers.

Users live in one blob (`users`, a list of records), extra admin accounts in
`admins`. Admin sessions are one blob per token (`admin_session_<token>`).
"""

from __future__ import annotations

from typing import Callable, TypeVar

from core import store

USERS_KEY = "users"
ADMINS_KEY = "admins"
ADMIN_SESSION_PREFIX = "admin_session_"

T = TypeVar("T")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str) -> str:
    return (username or "").strip()


async def list_users() -> list[dict]:
    return [u for u in await store.read_list(USERS_KEY) if isinstance(u, dict)]


async def list_admins() -> list[dict]:
    return [a for a in await store.read_list(ADMINS_KEY) if isinstance(a, dict)]


async def get_user_by_email(email: str) -> dict | None:
    wanted = normalize_email(email)
    for user in await list_users():
        if normalize_email(str(user.get("email") or "")) == wanted:
            return user
    return None


async def mutate_users(mutate: Callable[[list[dict]], T]) -> T:
    return await store.update_list(USERS_KEY, mutate)


def find_index(items: list[dict], item_id: str) -> int:
    for index, item in enumerate(items):
        if isinstance(item, dict) and str(item.get("id") or "") == item_id:
            return index
    return -1


def admin_session_key(token: str) -> str:
    return ADMIN_SESSION_PREFIX + token


async def put_admin_session(token: str, session: dict) -> None:
    await store.store().put(admin_session_key(token), session)


async def get_admin_session(token: str) -> dict | None:
    try:
        key = store.check_key(admin_session_key(token))
    except store.StoreError:
        # Tokens with characters we never issue cannot name a session.
        return None
    row = await store.store().get(key)
    return row if isinstance(row, dict) else None


async def delete_admin_session(token: str) -> bool:
    return await store.store().delete(admin_session_key(token))


async def list_admin_sessions() -> list[tuple[str, dict | None]]:
    """
    Return `(token, session)` for every stored admin session blob.
    """
    sessions = []
    for key in await store.store().keys(ADMIN_SESSION_PREFIX):
        row = await store.store().get(key)
        sessions.append((key[len(ADMIN_SESSION_PREFIX):], row if isinstance(row, dict) else None))
    return sessions
