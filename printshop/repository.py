"""Record stores used by the service layer.

Every store hands out and keeps its own copies of records, so a caller that
mutates a fetched record changes nothing until it writes the record back.
The SQLite store gets this for free from pickling; the in-memory store
copies explicitly.
"""

from __future__ import annotations

import copy
from typing import (
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    MutableMapping,
    Protocol,
    TypeVar,
)

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for store failures."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class Repository(Protocol[T]):
    """Interface shared by the in-memory and SQLite stores."""

    def __contains__(self, item_id: object) -> bool: ...

    def __iter__(self) -> Iterator[T]: ...

    def __len__(self) -> int: ...

    def add(self, item_id: str, item: T) -> None: ...

    def upsert(self, item_id: str, item: T) -> None: ...

    def get(self, item_id: str) -> T: ...

    def remove(self, item_id: str) -> None: ...

    def list(self) -> List[T]: ...

    def find(self, predicate: Callable[[T], bool]) -> List[T]: ...

    def mapping(self) -> Dict[str, T]: ...


class InMemoryRepository(Generic[T]):
    """Dictionary-backed store with copy-in, copy-out semantics."""

    def __init__(self) -> None:
        self._records: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._records:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._records[item_id] = copy.deepcopy(item)

    def upsert(self, item_id: str, item: T) -> None:
        self._records[item_id] = copy.deepcopy(item)

    def get(self, item_id: str) -> T:
        if item_id not in self._records:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return copy.deepcopy(self._records[item_id])

    def remove(self, item_id: str) -> None:
        if self._records.pop(item_id, None) is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")

    def list(self) -> List[T]:
        return [copy.deepcopy(record) for record in self._records.values()]

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [record for record in self.list() if predicate(record)]

    def mapping(self) -> Dict[str, T]:
        """All records keyed by id, used for price and name lookups."""

        return {item_id: copy.deepcopy(record) for item_id, record in self._records.items()}


__all__ = [
    "Repository",
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
