"""SQLite-backed persistence for the print-shop records.

Each record type lives in its own two-column table (id, pickled payload).
Every write is committed on its own; a failing write is rolled back and
surfaces as :class:`~printshop.repository.RepositoryError`.
"""

from __future__ import annotations

import logging
import pickle
import sqlite3
from contextlib import contextmanager, suppress
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

from .domain import Customer, Employee, Expense, Material, Order
from .repository import DuplicateRecordError, RecordNotFoundError, RepositoryError

T = TypeVar("T")

logger = logging.getLogger(__name__)

TABLES = ("customers", "materials", "orders", "expenses", "employees")


class SQLiteRepository(Generic[T]):
    """Store for one record type; rows come back in insertion order."""

    def __init__(self, connection: sqlite3.Connection, table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table {table!r}")
        self._connection = connection
        self._table = table
        with self._write():
            self._execute(
                f"CREATE TABLE IF NOT EXISTS {table} ("
                "id TEXT PRIMARY KEY, payload BLOB NOT NULL)"
            )

    def _execute(self, statement: str, parameters: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(statement, parameters)
        except sqlite3.Error as exc:
            logger.warning(f"[Storage] {self._table}: {exc}")
            raise RepositoryError(f"Storage failure on {self._table}: {exc}") from exc

    @contextmanager
    def _write(self) -> Iterator[None]:
        try:
            yield
            self._connection.commit()
        except sqlite3.Error as exc:
            self._rollback()
            raise RepositoryError(f"Storage failure on {self._table}: {exc}") from exc
        except RepositoryError:
            self._rollback()
            raise

    def _rollback(self) -> None:
        # a closed connection has nothing left to undo
        with suppress(sqlite3.ProgrammingError):
            self._connection.rollback()

    def _rows(self, columns: str) -> List[sqlite3.Row]:
        return self._execute(f"SELECT {columns} FROM {self._table} ORDER BY rowid").fetchall()

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        row = self._execute(
            f"SELECT 1 FROM {self._table} WHERE id = ? LIMIT 1", (item_id,)
        ).fetchone()
        return row is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        (count,) = self._execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()
        return int(count)

    def add(self, item_id: str, item: T) -> None:
        if item_id in self:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        with self._write():
            self._execute(
                f"INSERT INTO {self._table} (id, payload) VALUES (?, ?)",
                (item_id, pickle.dumps(item)),
            )

    def upsert(self, item_id: str, item: T) -> None:
        with self._write():
            self._execute(
                f"INSERT INTO {self._table} (id, payload) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (item_id, pickle.dumps(item)),
            )

    def get(self, item_id: str) -> T:
        row = self._execute(
            f"SELECT payload FROM {self._table} WHERE id = ?", (item_id,)
        ).fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return pickle.loads(row["payload"])

    def remove(self, item_id: str) -> None:
        with self._write():
            cursor = self._execute(f"DELETE FROM {self._table} WHERE id = ?", (item_id,))
            if cursor.rowcount == 0:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")

    def list(self) -> List[T]:
        return [pickle.loads(row["payload"]) for row in self._rows("payload")]

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [record for record in self.list() if predicate(record)]

    def mapping(self) -> Dict[str, T]:
        return {row["id"]: pickle.loads(row["payload"]) for row in self._rows("id, payload")}


class PrintShopDatabase:
    """One SQLite connection with a repository per record type."""

    def __init__(self, path: str) -> None:
        try:
            connection = sqlite3.connect(path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Cannot open database {path!r}: {exc}") from exc
        connection.row_factory = sqlite3.Row
        self._connection = connection
        self.customers: SQLiteRepository[Customer] = SQLiteRepository(connection, "customers")
        self.materials: SQLiteRepository[Material] = SQLiteRepository(connection, "materials")
        self.orders: SQLiteRepository[Order] = SQLiteRepository(connection, "orders")
        self.expenses: SQLiteRepository[Expense] = SQLiteRepository(connection, "expenses")
        self.employees: SQLiteRepository[Employee] = SQLiteRepository(connection, "employees")
        logger.info(f"[Storage] Opened database at {path}")

    def close(self) -> None:
        self._connection.close()
        logger.info("[Storage] Closed database")

    def __enter__(self) -> "PrintShopDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "PrintShopDatabase", "TABLES"]
