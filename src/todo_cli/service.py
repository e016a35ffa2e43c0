"""Business logic for applying commands to the task store."""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
import logging
from pathlib import Path
import random
from typing import Callable, Iterable, Protocol

from .commands import (
    Command,
    CreateCommand,
    DeleteCommand,
    EditCommand,
    ListCommand,
    ShowHelpCommand,
    ToggleCompletionCommand,
)
from .models import (
    DEFAULT_ID_ATTEMPTS,
    DEFAULT_ID_LENGTH,
    ID_ALPHABET,
    StorageError,
    TaskConflictError,
    TaskNotFoundError,
    TaskRecord,
    TaskValidationError,
    now,
)
from .store import TaskStore

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    path: Path | None

    def save(self, store: TaskStore) -> None: ...


@dataclass(slots=True)
class ListResult:
    entries: list[tuple[TaskRecord, list[TaskRecord]]] = field(default_factory=list)
    total_tasks: int = 0
    total_sub_tasks: int = 0


@dataclass(slots=True)
class TaskResult:
    action: str
    task: TaskRecord


@dataclass(slots=True)
class HelpResult:
    storage_path: Path | None = None


Result = ListResult | TaskResult | HelpResult


def _matches(task: TaskRecord, tags: Iterable[str], completed: bool) -> bool:
    return task.is_completed == completed and task.has_tags(tags)


class TaskService:
    def __init__(
        self,
        store: TaskStore,
        gateway: Gateway,
        *,
        warn: Callable[[str], None] | None = None,
        id_length: int = DEFAULT_ID_LENGTH,
        id_attempts: int = DEFAULT_ID_ATTEMPTS,
        rng: random.Random | None = None,
        clock: Callable[[], dt.datetime] = now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.warn = warn
        self.id_length = id_length
        self.id_attempts = id_attempts
        self.rng = rng or random.SystemRandom()
        self.clock = clock

    def execute(self, command: Command) -> Result:
        if isinstance(command, ListCommand):
            return self.list_tasks(command.tags, completed=command.show_completed_only)
        if isinstance(command, CreateCommand):
            return self.create_task(command.text, tags=command.tags, parent_id=command.parent_id)
        if isinstance(command, EditCommand):
            return self.edit_task(
                command.task_id,
                command.text,
                tags=command.tags,
                parent_id=command.parent_id,
            )
        if isinstance(command, DeleteCommand):
            return self.delete_task(command.task_id, recursive=command.recursive)
        if isinstance(command, ToggleCompletionCommand):
            if command.lists_completed:
                return self.list_tasks(command.tags, completed=True)
            return self.toggle_completion(command.task_id, recursive=command.recursive)
        if isinstance(command, ShowHelpCommand):
            return HelpResult(storage_path=self.gateway.path)
        raise TypeError(f"Unsupported command: {command!r}")

    def generate_id(self) -> str:
        """Return a random id unused by any record, soft-deleted ones included.

        Every ``id_attempts`` collisions the id grows by one character, so
        the search always terminates even as short ids run out.
        """
        taken = self.store.ids()
        length = self.id_length
        attempts = 0
        while True:
            candidate = "".join(self.rng.choice(ID_ALPHABET) for _ in range(length))
            if candidate not in taken:
                logger.debug("generated id %s", candidate)
                return candidate
            attempts += 1
            if attempts >= self.id_attempts:
                attempts = 0
                length += 1

    def _save(self) -> None:
        try:
            self.gateway.save(self.store)
        except StorageError as exc:
            # The change stays in memory; the caller still gets its result.
            logger.debug("save failed: %s", exc)
            if self.warn is not None:
                self.warn(str(exc))

    def _require_task(self, task_id: str | None, *, include_completed: bool) -> TaskRecord:
        task = self.store.find(task_id, include_completed=include_completed)
        if task is None:
            raise TaskNotFoundError(f"Task (id = {task_id or ''}) not found!")
        return task

    def _require_parent(self, parent_id: str) -> TaskRecord:
        parent = self.store.find(parent_id, include_completed=False)
        if parent is None:
            raise TaskNotFoundError(f"Parent task (id = {parent_id}) not found!")
        if not parent.is_top_level:
            raise TaskValidationError(
                f"Parent task (id = {parent_id}) already has a parent. "
                "Only two levels of tasks are supported."
            )
        return parent

    def _require_no_children(self, task: TaskRecord, recursive: bool, action: str) -> list[TaskRecord]:
        children = self.store.children(task.id)
        if children and not recursive:
            raise TaskConflictError(
                f"Task (id = {task.id}) has sub tasks. Apply the -r option to also {action} subtasks."
            )
        return children

    def list_tasks(self, tags: Iterable[str] = (), *, completed: bool = False) -> ListResult:
        tags = tuple(tags)
        result = ListResult()
        for task in self.store.top_level():
            if not _matches(task, tags, completed):
                continue
            children = [child for child in self.store.children(task.id) if _matches(child, tags, completed)]
            result.entries.append((task, children))
            result.total_tasks += 1
            result.total_sub_tasks += len(children)
        return result

    def create_task(
        self,
        text: str,
        *,
        tags: Iterable[str] = (),
        parent_id: str | None = None,
    ) -> TaskResult:
        if parent_id is not None:
            self._require_parent(parent_id)

        stamp = self.clock()
        task = TaskRecord(
            id=self.generate_id(),
            text=text,
            parent_id=parent_id,
            tags=list(tags),
            created_at=stamp,
            updated_at=stamp,
        )
        self.store.insert(task)
        self._save()
        return TaskResult("created", task)

    def edit_task(
        self,
        task_id: str | None,
        text: str,
        *,
        tags: Iterable[str] = (),
        parent_id: str | None = None,
    ) -> TaskResult:
        task = self._require_task(task_id, include_completed=False)
        if parent_id is not None:
            if parent_id == task.id:
                raise TaskValidationError(f"Task (id = {task.id}) cannot be its own parent.")
            self._require_parent(parent_id)
            if self.store.children(task.id):
                raise TaskValidationError(
                    f"Task (id = {task.id}) has sub tasks and cannot be attached to another task. "
                    "Only two levels of tasks are supported."
                )

        self.store.update(
            task.id,
            parent_id=parent_id,
            tags=list(tags),
            text=text,
            updated_at=self.clock(),
        )
        self._save()
        return TaskResult("edited", task)

    def delete_task(self, task_id: str | None, *, recursive: bool = False) -> TaskResult:
        task = self._require_task(task_id, include_completed=True)
        children = self._require_no_children(task, recursive, "delete")

        stamp = self.clock()
        for child in children:
            self.store.update(child.id, deleted_at=stamp)
        self.store.update(task.id, deleted_at=stamp)
        self._save()
        return TaskResult("deleted", task)

    def toggle_completion(self, task_id: str | None, *, recursive: bool = False) -> TaskResult:
        task = self._require_task(task_id, include_completed=True)
        children = self._require_no_children(task, recursive, "toggle completed on")

        stamp = self.clock()
        for record in [*children, task]:
            self.store.update(record.id, completed_at=None if record.is_completed else stamp)
        self._save()
        return TaskResult("toggled", task)
