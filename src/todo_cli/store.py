"""In-memory task collection."""

from __future__ import annotations

from dataclasses import fields
from typing import Iterable, Iterator

from .models import TaskConflictError, TaskRecord

MUTABLE_FIELDS = frozenset(f.name for f in fields(TaskRecord)) - {"id"}


def newest_first(records: Iterable[TaskRecord]) -> list[TaskRecord]:
    # sorted() is stable, so equal timestamps keep insertion order.
    return sorted(records, key=lambda record: record.created_at, reverse=True)


class TaskStore:
    """Ordered collection of every task record, soft-deleted ones included.

    Records are never removed. Lookups and listings skip soft-deleted
    records; ``ids`` and iteration do not.
    """

    def __init__(self, records: Iterable[TaskRecord] = ()) -> None:
        self._records: list[TaskRecord] = []
        self._by_id: dict[str, TaskRecord] = {}
        for record in records:
            self.insert(record)

    def __iter__(self) -> Iterator[TaskRecord]:
        return iter(self._records)

    @property
    def records(self) -> list[TaskRecord]:
        return list(self._records)

    def ids(self) -> set[str]:
        return set(self._by_id)

    def find(self, task_id: str | None, *, include_completed: bool = True) -> TaskRecord | None:
        record = self._by_id.get(task_id) if task_id is not None else None
        if record is None or record.is_deleted:
            return None
        if not include_completed and record.is_completed:
            return None
        return record

    def top_level(self) -> list[TaskRecord]:
        return newest_first(
            record for record in self._records if not record.is_deleted and record.is_top_level
        )

    def children(self, parent_id: str) -> list[TaskRecord]:
        return newest_first(
            record
            for record in self._records
            if not record.is_deleted and record.parent_id == parent_id
        )

    def insert(self, record: TaskRecord) -> TaskRecord:
        if record.id in self._by_id:
            raise TaskConflictError(f"Task id already exists: {record.id}")
        self._records.append(record)
        self._by_id[record.id] = record
        return record

    def update(self, task_id: str, **changes) -> TaskRecord:
        unknown = sorted(set(changes) - MUTABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown task fields: {', '.join(unknown)}")
        record = self._by_id[task_id]
        for name, value in changes.items():
            setattr(record, name, value)
        return record
