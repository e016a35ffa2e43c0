"""Core task models and errors."""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
import string

APP_NAME = "todocli"
STORAGE_FILE_NAME = "todocli-tasks.json"
CONFIG_FILE_NAME = "todocli-config.yaml"

ID_ALPHABET = string.ascii_lowercase + string.digits
DEFAULT_ID_LENGTH = 3
DEFAULT_ID_ATTEMPTS = 50


def now() -> dt.datetime:
    return dt.datetime.now().astimezone()


@dataclass(slots=True)
class TaskRecord:
    id: str
    text: str = ""
    parent_id: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: dt.datetime = field(default_factory=now)
    updated_at: dt.datetime = field(default_factory=now)
    deleted_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    def has_tags(self, tags) -> bool:
        return all(tag in self.tags for tag in tags)


class TaskError(Exception):
    """Base error for task operations."""


class TaskValidationError(TaskError):
    """Raised when a change would break the task nesting rules."""


class TaskNotFoundError(TaskError):
    """Raised when a task cannot be located."""


class TaskConflictError(TaskError):
    """Raised for id collisions and actions that need the recursive flag."""


class StorageError(Exception):
    """Raised when the task file cannot be located, read or written."""
