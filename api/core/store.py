"""
JSON blob storage.

Each key holds one JSON document (usually a whole collection as a list).
There is no query layer: callers read the full blob, change it in Python and
write it back through `update()`, which serializes read-modify-write per key.

Backends:
- `file`      one `<key>.json` file per key under DATA_DIR (IO via aiofiles)
- `postgres`  one row per key in `kv_store` (jsonb), via `core/db.py`

The active backend is chosen by STORAGE_BACKEND and owned by this module.
FastAPI initializes it on startup and closes it on shutdown (see
`api/main.py`).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, TypeVar

import aiofiles
import aiofiles.os
import asyncpg

from . import config, db

logger = logging.getLogger(__name__)

T = TypeVar("T")

# `mutate(current)` gets the stored value (None if absent) and returns
# `(new_value, result)`; `new_value` is written back, `result` is returned.
# Returning UNCHANGED as `new_value` skips the write.
Mutator = Callable[[Any], tuple[Any, T]]

UNCHANGED: Any = object()

_KEY_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,199}$")

_PG_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


# Storage failures are explicit and separable from request errors.
class StoreError(RuntimeError):
    pass


def check_key(key: str) -> str:
    if not _KEY_RE.match(key or ""):
        raise StoreError(f"Invalid storage key: {key!r}")
    return key


class JsonStore:
    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> Any | None:
        raise NotImplementedError

    async def put(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        raise NotImplementedError

    async def keys(self, prefix: str) -> list[str]:
        raise NotImplementedError

    async def update(self, key: str, mutate: Mutator[T]) -> T:
        """
        Read-modify-write one key. If `mutate` raises, nothing is written.
        """
        raise NotImplementedError


class FileStore(JsonStore):
    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)
        # key -> [lock, holders]; entries are dropped once nobody holds or waits.
        self._locks: dict[str, list[Any]] = {}

    async def open(self) -> None:
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create data directory {self.root}.") from exc

    def _path(self, key: str) -> Path:
        return self.root / f"{check_key(key)}.json"

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(key, None)

    async def _read(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            async with aiofiles.open(path, mode="r", encoding="utf-8") as fh:
                raw = await fh.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(f"Failed to read {path.name}.") from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt JSON in {path.name}.") from exc

    async def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        # Write to a sibling temp file, then rename over the target.
        tmp_path = path.with_name(f".{path.stem}.{secrets.token_hex(6)}.tmp")
        try:
            text = json.dumps(value, ensure_ascii=False, indent=2)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as fh:
                await fh.write(text)
            await aiofiles.os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise StoreError(f"Failed to write {path.name}.") from exc

    async def get(self, key: str) -> Any | None:
        return await self._read(key)

    async def put(self, key: str, value: Any) -> None:
        async with self._locked(key):
            await self._write(key, value)

    async def delete(self, key: str) -> bool:
        async with self._locked(key):
            try:
                await aiofiles.os.remove(self._path(key))
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StoreError(f"Failed to delete {key}.") from exc
            return True

    async def keys(self, prefix: str) -> list[str]:
        try:
            names = await aiofiles.os.listdir(self.root)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StoreError(f"Failed to list {self.root}.") from exc
        found = []
        for name in names:
            stem, ext = os.path.splitext(name)
            if ext == ".json" and stem.startswith(prefix) and _KEY_RE.match(stem):
                found.append(stem)
        return sorted(found)

    async def update(self, key: str, mutate: Mutator[T]) -> T:
        async with self._locked(key):
            new_value, result = mutate(await self._read(key))
            if new_value is not UNCHANGED:
                await self._write(key, new_value)
            return result


class PostgresStore(JsonStore):
    async def open(self) -> None:
        try:
            await db.init_pool()
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key text PRIMARY KEY,
                    value jsonb NOT NULL,
                    updated_at timestamptz NOT NULL DEFAULT now()
                )
                """
            )
        except _PG_ERRORS as exc:
            raise StoreError("Failed to initialize postgres storage.") from exc

    async def close(self) -> None:
        await db.close_pool()

    async def get(self, key: str) -> Any | None:
        try:
            row = await db.fetch_one("SELECT value FROM kv_store WHERE key = $1", check_key(key))
        except _PG_ERRORS as exc:
            raise StoreError(f"Failed to read {key}.") from exc
        return json.loads(row["value"]) if row is not None else None

    async def put(self, key: str, value: Any) -> None:
        try:
            await db.execute(
                """
                INSERT INTO kv_store (key, value)
                VALUES ($1, $2::jsonb)
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value,
                    updated_at = now()
                """,
                check_key(key),
                json.dumps(value, ensure_ascii=True),
            )
        except _PG_ERRORS as exc:
            raise StoreError(f"Failed to write {key}.") from exc

    async def delete(self, key: str) -> bool:
        try:
            row = await db.fetch_one(
                "DELETE FROM kv_store WHERE key = $1 RETURNING key",
                check_key(key),
            )
        except _PG_ERRORS as exc:
            raise StoreError(f"Failed to delete {key}.") from exc
        return row is not None

    async def keys(self, prefix: str) -> list[str]:
        try:
            rows = await db.fetch_all(
                "SELECT key FROM kv_store WHERE starts_with(key, $1) ORDER BY key",
                prefix,
            )
        except _PG_ERRORS as exc:
            raise StoreError(f"Failed to list keys {prefix}*.") from exc
        return [row["key"] for row in rows]

    async def update(self, key: str, mutate: Mutator[T]) -> T:
        check_key(key)
        try:
            async with db.transaction() as conn:
                # Make sure the row exists so FOR UPDATE has something to lock.
                created = await conn.fetchval(
                    """
                    INSERT INTO kv_store (key, value)
                    VALUES ($1, 'null'::jsonb)
                    ON CONFLICT (key) DO NOTHING
                    RETURNING key
                    """,
                    key,
                )
                raw = await conn.fetchval(
                    "SELECT value FROM kv_store WHERE key = $1 FOR UPDATE",
                    key,
                )
                new_value, result = mutate(json.loads(raw))
                if new_value is UNCHANGED:
                    if created is not None:
                        await conn.execute("DELETE FROM kv_store WHERE key = $1", key)
                    return result
                await conn.execute(
                    """
                    UPDATE kv_store
                    SET value = $2::jsonb,
                        updated_at = now()
                    WHERE key = $1
                    """,
                    key,
                    json.dumps(new_value, ensure_ascii=True),
                )
        except _PG_ERRORS as exc:
            raise StoreError(f"Failed to update {key}.") from exc
        return result


_store: JsonStore | None = None


def build_store(backend: str | None = None) -> JsonStore:
    backend = (backend or config.storage_backend()).strip().lower()
    if backend == "file":
        return FileStore(config.data_dir())
    if backend == "postgres":
        return PostgresStore()
    raise StoreError(f"Unknown STORAGE_BACKEND '{backend}'. Use 'file' or 'postgres'.")


async def init_store() -> None:
    global _store
    if _store is not None:
        return None
    candidate = build_store()
    await candidate.open()
    _store = candidate
    logger.info("store_ready backend=%s", type(candidate).__name__)


async def close_store() -> None:
    global _store
    if _store is None:
        return None
    try:
        await _store.close()
    finally:
        _store = None


def store() -> JsonStore:
    if _store is None:
        raise RuntimeError("Store is not initialized. Call init_store() on startup.")
    return _store


def as_list(value: Any, key: str) -> list[Any]:
    """
    Normalize a stored collection blob to a list.

    Older data may wrap the list as `{"<key>": [...]}`; that shape is unwrapped.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, dict) and isinstance(value.get(key), list):
        return value[key]
    logger.warning("store_unexpected_shape key=%s type=%s", key, type(value).__name__)
    return []


async def read_list(key: str) -> list[Any]:
    return as_list(await store().get(key), key)


async def update_list(
    key: str,
    mutate: Callable[[list[Any]], T],
    *,
    changed: Callable[[T], bool] | None = None,
) -> T:
    """
    Read-modify-write a collection blob. `mutate` edits the list in place.

    The blob is written back as a plain list unless `changed(result)` says
    the mutation was a no-op.
    """

    def _apply(current: Any) -> tuple[Any, T]:
        items = list(as_list(current, key))
        result = mutate(items)
        if changed is not None and not changed(result):
            return UNCHANGED, result
        return items, result

    return await store().update(key, _apply)
