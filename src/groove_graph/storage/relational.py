# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Relational store for node display attributes.

Async SQLite access using aiosqlite.  Each call opens its own connection,
so the store is safe to share between concurrent tasks; writes that have
to line up with a graph mutation go through ``transaction()``.
"""

import logging
import os
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from ..errors import RelationalStoreError
from ..models.node import NodeKind
from .tables import CASCADES, INDICES, TABLES, projection

logger = logging.getLogger(__name__)


def _rows(rows: list[aiosqlite.Row]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]


class Transaction:
    """
    An open relational transaction.

    Nothing is visible to other connections until ``commit``; leaving the
    ``transaction()`` block without committing rolls back.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db
        self.committed = False
        self.rolled_back = False

    @property
    def open(self) -> bool:
        return not (self.committed or self.rolled_back)

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> int:
        """Run a statement, returning the affected row count."""
        try:
            cursor = await self._db.execute(sql, tuple(args))
            return cursor.rowcount
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: statement failed: {e}") from e

    async def fetch(self, sql: str, args: Sequence[Any] = ()) -> list[dict[str, Any]]:
        try:
            cursor = await self._db.execute(sql, tuple(args))
            return _rows(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: query failed: {e}") from e

    async def commit(self) -> None:
        try:
            await self._db.commit()
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: commit failed: {e}") from e
        self.committed = True

    async def rollback(self) -> None:
        if not self.open:
            return
        try:
            await self._db.rollback()
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: rollback failed: {e}") from e
        finally:
            self.rolled_back = True


class RelationalStore:
    """Async SQLite store for users, events, posts and comments."""

    def __init__(self, db_path: str, busy_timeout: float = 15.0):
        """
        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds to wait on a locked database
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables and indices if they do not exist."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            async with self._connect() as db:
                for table in TABLES.values():
                    await db.execute(table.ddl)
                for index in INDICES:
                    await db.execute(index)
                await db.commit()
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: schema creation failed: {e}") from e

        self._initialized = True
        logger.info(f"Relational store initialized at {self.db_path}")

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path, timeout=self.busy_timeout) as db:
            db.row_factory = aiosqlite.Row
            # Cascades only fire with foreign keys enabled on the connection
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    # ── Generic access ──────────────────────────────────────────────────

    async def fetch(self, sql: str, args: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a query and return rows as dicts."""
        if not self._initialized:
            await self.initialize()

        try:
            async with self._connect() as db:
                cursor = await db.execute(sql, tuple(args))
                return _rows(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: query failed: {e}") from e

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> int:
        """Run and commit a single statement. Returns the affected row count."""
        if not self._initialized:
            await self.initialize()

        try:
            async with self._connect() as db:
                cursor = await db.execute(sql, tuple(args))
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: statement failed: {e}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Open a transaction on a dedicated connection.

        Usage:
            async with store.transaction() as tx:
                await tx.execute(...)
                await tx.commit()
        """
        if not self._initialized:
            await self.initialize()

        try:
            async with self._connect() as db:
                tx = Transaction(db)
                try:
                    yield tx
                finally:
                    if tx.open:
                        await tx.rollback()
        except aiosqlite.Error as e:
            raise RelationalStoreError(f"sqlite: transaction failed: {e}") from e

    # ── Node rows ───────────────────────────────────────────────────────

    async def insert_row(
        self,
        kind: NodeKind,
        external_id: str,
        attributes: dict[str, Any] | None = None,
        tx: Transaction | None = None,
    ) -> int:
        """
        Insert the row for a node.

        Attribute names are checked against the table whitelist.  Runs inside
        ``tx`` when given, otherwise commits on its own.
        """
        attributes = dict(attributes or {})
        attributes.pop("id", None)
        columns = projection(kind, ["id", *attributes]) if attributes else ["id"]
        table = TABLES[kind].name

        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        args = [external_id, *(attributes[c] for c in columns[1:])]

        if tx is not None:
            return await tx.execute(sql, args)
        return await self.execute(sql, args)

    async def delete_row(self, kind: NodeKind, external_id: str, tx: Transaction | None = None) -> int:
        """Delete the row for a node; dependent rows cascade. Returns rows removed."""
        sql = f"DELETE FROM {TABLES[kind].name} WHERE id = ?"
        if tx is not None:
            return await tx.execute(sql, (external_id,))
        return await self.execute(sql, (external_id,))

    async def cascaded_rows(
        self, kind: NodeKind, external_id: str, tx: Transaction | None = None
    ) -> list[tuple[NodeKind, str]]:
        """
        Rows that deleting ``external_id`` would remove through foreign-key cascades.

        Run it in the deleting transaction so the list matches what the
        ``DELETE`` actually removes.
        """
        found: list[tuple[NodeKind, str]] = []
        for child_kind, sql in CASCADES.get(kind, ()):
            rows = await tx.fetch(sql, (external_id,)) if tx is not None else await self.fetch(sql, (external_id,))
            for row in rows:
                if (child_kind, row["id"]) not in found:
                    found.append((child_kind, row["id"]))
        return found

    async def select_in_ids(
        self, kind: NodeKind, ids: Sequence[str], fields: Sequence[str] | None = None
    ) -> list[dict[str, Any]]:
        """
        Fetch the rows for ``ids`` in one round-trip.

        Row order is whatever the database returns; callers re-order.
        """
        if not ids:
            return []

        columns = projection(kind, list(fields) if fields else None)
        placeholders = ", ".join("?" for _ in ids)
        sql = f"SELECT {', '.join(columns)} FROM {TABLES[kind].name} WHERE id IN ({placeholders})"
        return await self.fetch(sql, list(ids))

    async def exists(self, kind: NodeKind, external_id: str) -> bool:
        rows = await self.fetch(f"SELECT 1 FROM {TABLES[kind].name} WHERE id = ?", (external_id,))
        return bool(rows)

    async def find_kind(self, external_id: str) -> NodeKind | None:
        """Kind of the node whose row holds ``external_id``, if any."""
        for kind in TABLES:
            if await self.exists(kind, external_id):
                return kind
        return None

    async def close(self) -> None:
        """Close database connections."""
        # aiosqlite doesn't maintain persistent connections, so nothing to close
        pass
