"""Async store adapter over an aiosqlite connection.

Every call is a single awaitable that resolves with a value or raises a
`StoreError`. Anything the adapter does not define is forwarded to the
underlying connection unchanged, so `await store.close()` and friends work
as they do on aiosqlite.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from craftdb.store.errors import StoreError, translate

logger = logging.getLogger(__name__)

Params = Sequence[Any]

# SQLITE_MAX_VARIABLE_NUMBER on builds older than 3.32; newer builds allow more
MAX_VARIABLES = 999


def batches(rows: Sequence[Any], per_row: int = 1) -> List[Sequence[Any]]:
    """Split `rows` so each slice binds at most MAX_VARIABLES parameters."""
    size = max(1, MAX_VARIABLES // per_row)
    return [rows[i : i + size] for i in range(0, len(rows), size)]


@dataclass(frozen=True)
class ExecuteResult:
    lastrowid: Optional[int]
    rowcount: int


class Store:
    def __init__(self, conn: aiosqlite.Connection, path: str = ":memory:") -> None:
        self._conn = conn
        self._path = path
        self._lock = asyncio.Lock()
        self._tx_owner: Optional[asyncio.Task] = None

    @classmethod
    async def open(cls, path: str | Path, timeout: float = 30.0) -> "Store":
        """Open `path` in autocommit mode with foreign keys enforced."""
        path = str(path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Opening store at %s", path)
        try:
            conn = await aiosqlite.connect(path, timeout=timeout, isolation_level=None)
        except sqlite3.Error as exc:
            raise translate(exc) from exc
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as exc:
            await conn.close()
            raise translate(exc) from exc
        return cls(conn, path)

    @property
    def path(self) -> str:
        return self._path

    def __getattr__(self, name: str) -> Any:
        # only reached for attributes Store itself does not define
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._conn, name)

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        # statements from outside an open transaction wait for it to finish
        task = asyncio.current_task()
        if task is not None and self._tx_owner is task:
            yield
            return
        async with self._lock:
            yield

    async def execute(self, sql: str, params: Params = ()) -> ExecuteResult:
        logger.debug("execute: %s | %s", sql.strip(), params)
        async with self._exclusive():
            try:
                async with self._conn.execute(sql, tuple(params)) as cursor:
                    return ExecuteResult(cursor.lastrowid, cursor.rowcount)
            except sqlite3.Error as exc:
                raise translate(exc, sql) from exc

    async def query_one(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        logger.debug("query_one: %s | %s", sql.strip(), params)
        async with self._exclusive():
            try:
                async with self._conn.execute(sql, tuple(params)) as cursor:
                    return await cursor.fetchone()
            except sqlite3.Error as exc:
                raise translate(exc, sql) from exc

    async def query_all(self, sql: str, params: Params = ()) -> List[sqlite3.Row]:
        logger.debug("query_all: %s | %s", sql.strip(), params)
        async with self._exclusive():
            try:
                async with self._conn.execute(sql, tuple(params)) as cursor:
                    return list(await cursor.fetchall())
            except sqlite3.Error as exc:
                raise translate(exc, sql) from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Store"]:
        """Run the body as one atomic unit; roll back if it raises.

        Re-entering from the task that already holds the transaction joins it.
        """
        task = asyncio.current_task()
        if task is not None and self._tx_owner is task:
            yield self
            return
        async with self._lock:
            self._tx_owner = task
            try:
                await self.execute("BEGIN")
                try:
                    yield self
                except BaseException:
                    await self._rollback()
                    raise
                try:
                    await self.execute("COMMIT")
                except StoreError:
                    await self._rollback()
                    raise
            finally:
                self._tx_owner = None

    async def _rollback(self) -> None:
        if not self._conn.in_transaction:
            return
        logger.debug("Rolling back transaction on %s", self._path)
        try:
            await self._conn.rollback()
        except sqlite3.Error:
            logger.exception("Rollback failed on %s", self._path)
