"""Record stores backing the services"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from pydantic import BaseModel


T = TypeVar("T", bound=BaseModel)

Predicate = Callable[[Any], bool]


class RecordStore(ABC, Generic[T]):
    """Keyed collection of pydantic records.

    ``where`` predicates are evaluated atomically with the operation, which is
    how callers express ownership checks.
    """

    @abstractmethod
    async def create(self, record: T) -> T:
        ...

    @abstractmethod
    async def get(self, record_id: str, where: Optional[Predicate] = None) -> Optional[T]:
        ...

    @abstractmethod
    async def update(
        self,
        record_id: str,
        changes: Dict[str, Any],
        where: Optional[Predicate] = None
    ) -> Optional[T]:
        ...

    @abstractmethod
    async def apply(
        self,
        record_id: str,
        func: Callable[[T], T],
        where: Optional[Predicate] = None
    ) -> Optional[T]:
        ...

    @abstractmethod
    async def delete(self, record_id: str, where: Optional[Predicate] = None) -> bool:
        ...

    @abstractmethod
    async def list(self, predicate: Optional[Predicate] = None) -> List[T]:
        ...


class InMemoryStore(RecordStore[T]):
    """Process-local store; every access runs under a single asyncio lock.

    Records come back as deep copies so callers never mutate stored state.
    Iteration follows insertion order.
    """

    def __init__(self, records: Optional[Iterable[T]] = None):
        self._records: Dict[str, T] = {}
        self._lock = asyncio.Lock()
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    @staticmethod
    def _merge(record: T, changes: Dict[str, Any]) -> T:
        data = record.model_dump()
        data.update(changes)
        merged = type(record).model_validate(data)
        if hasattr(merged, "update_timestamp"):
            merged.update_timestamp()
        return merged

    def _visible(self, record_id: str, where: Optional[Predicate]) -> Optional[T]:
        record = self._records.get(record_id)
        if record is None:
            return None
        if where is not None and not where(record):
            return None
        return record

    async def create(self, record: T) -> T:
        async with self._lock:
            if record.id in self._records:
                raise ValueError(f"Duplicate record id: {record.id}")
            self._records[record.id] = record.model_copy(deep=True)
            return record.model_copy(deep=True)

    async def get(self, record_id: str, where: Optional[Predicate] = None) -> Optional[T]:
        async with self._lock:
            record = self._visible(record_id, where)
            return record.model_copy(deep=True) if record is not None else None

    async def update(
        self,
        record_id: str,
        changes: Dict[str, Any],
        where: Optional[Predicate] = None
    ) -> Optional[T]:
        return await self.apply(record_id, lambda record: self._merge(record, changes), where)

    async def apply(
        self,
        record_id: str,
        func: Callable[[T], T],
        where: Optional[Predicate] = None
    ) -> Optional[T]:
        """Replace a record with ``func(copy)``; an exception leaves it untouched."""
        async with self._lock:
            record = self._visible(record_id, where)
            if record is None:
                return None
            updated = func(record.model_copy(deep=True))
            self._records[record_id] = updated.model_copy(deep=True)
            return updated.model_copy(deep=True)

    async def delete(self, record_id: str, where: Optional[Predicate] = None) -> bool:
        async with self._lock:
            if self._visible(record_id, where) is None:
                return False
            del self._records[record_id]
            return True

    async def list(self, predicate: Optional[Predicate] = None) -> List[T]:
        async with self._lock:
            return [
                record.model_copy(deep=True)
                for record in self._records.values()
                if predicate is None or predicate(record)
            ]

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)
