"""Storage location, JSON task file IO and settings for todo-cli."""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Callable, Iterable

import typer
import yaml

from .models import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_ID_ATTEMPTS,
    DEFAULT_ID_LENGTH,
    STORAGE_FILE_NAME,
    StorageError,
    TaskRecord,
)
from .store import TaskStore

logger = logging.getLogger(__name__)

# JSON key -> TaskRecord attribute, matched case-insensitively on read.
# LEGACY_KEYS are the names older task files used.
FIELD_KEYS = {
    "id": "id",
    "parentId": "parent_id",
    "tags": "tags",
    "text": "text",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "deletedAt": "deleted_at",
    "completedAt": "completed_at",
}
LEGACY_KEYS = {
    "subTaskId": "parent_id",
    "created": "created_at",
    "updated": "updated_at",
    "deleted": "deleted_at",
    "completed": "completed_at",
}
KEY_LOOKUP = {key.lower(): attr for key, attr in {**LEGACY_KEYS, **FIELD_KEYS}.items()}
REQUIRED_TIMESTAMPS = ("created_at", "updated_at")
OPTIONAL_TIMESTAMPS = ("deleted_at", "completed_at")


def candidate_dirs() -> list[Path]:
    return [Path(typer.get_app_dir(APP_NAME)), Path.cwd()]


def is_writable(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, prefix=".todocli-write-check-"):
            pass
    except OSError:
        return False
    return True


def resolve_location(candidates: Iterable[Path] | None = None) -> Path:
    tried: list[Path] = []
    for candidate in candidates if candidates is not None else candidate_dirs():
        tried.append(candidate)
        if is_writable(candidate):
            path = candidate / STORAGE_FILE_NAME
            logger.debug("using task file %s", path)
            return path
        logger.debug("skipping unwritable directory %s", candidate)
    listed = ", ".join(str(path) for path in tried) or "(none)"
    raise StorageError(f"No writable storage directory found. Tried: {listed}")


def _parse_timestamp(value: Any, key: str, path: Path) -> dt.datetime:
    if not isinstance(value, str):
        raise StorageError(f"Invalid {key} value {value!r} in {path}")
    try:
        stamp = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise StorageError(f"Invalid {key} value {value!r} in {path}") from exc
    if stamp.tzinfo is None:
        stamp = stamp.astimezone()
    return stamp


def record_from_dict(data: Any, path: Path) -> TaskRecord:
    if not isinstance(data, dict):
        raise StorageError(f"Task entry is not an object in {path}: {data!r}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        attr = KEY_LOOKUP.get(str(key).lower())
        if attr is not None:
            values[attr] = value

    task_id = values.get("id")
    if not isinstance(task_id, str) or not task_id:
        raise StorageError(f"Task entry without a valid id in {path}: {data!r}")

    parent_id = values.get("parent_id")
    if parent_id is not None and not isinstance(parent_id, str):
        raise StorageError(f"Invalid parentId for task {task_id} in {path}")

    tags = values.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise StorageError(f"Invalid tags for task {task_id} in {path}")

    text = values.get("text") or ""
    if not isinstance(text, str):
        raise StorageError(f"Invalid text for task {task_id} in {path}")

    stamps: dict[str, dt.datetime | None] = {}
    for attr in REQUIRED_TIMESTAMPS:
        stamps[attr] = _parse_timestamp(values.get(attr), attr, path)
    for attr in OPTIONAL_TIMESTAMPS:
        raw = values.get(attr)
        stamps[attr] = None if raw is None else _parse_timestamp(raw, attr, path)

    return TaskRecord(id=task_id, text=text, parent_id=parent_id, tags=list(tags), **stamps)


def record_to_dict(record: TaskRecord) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key, attr in FIELD_KEYS.items():
        value = getattr(record, attr)
        if isinstance(value, dt.datetime):
            value = value.isoformat()
        elif isinstance(value, list):
            value = list(value)
        payload[key] = value
    return payload


def load_tasks(path: Path) -> list[TaskRecord]:
    if not path.exists():
        logger.debug("no task file at %s, starting empty", path)
        return []
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise StorageError(f"Unable to read tasks from {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise StorageError(f"Loaded tasks from disk, but was unable to parse them. Original file: {path}") from exc
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise StorageError(f"Loaded tasks from disk, but was unable to parse them. Original file: {path}") from exc
    if not isinstance(payload, list):
        raise StorageError(f"Loaded tasks from disk, but was unable to parse them. Original file: {path}")
    records = [record_from_dict(item, path) for item in payload]
    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            raise StorageError(f"Duplicate task id {record.id} in {path}")
        seen.add(record.id)
    logger.debug("loaded %d tasks from %s", len(records), path)
    return records


def save_tasks(path: Path, records: Iterable[TaskRecord]) -> None:
    payload = [record_to_dict(record) for record in records]
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise StorageError(f"Unable to save tasks to {path}: {exc}") from exc
    logger.debug("saved %d tasks to %s", len(payload), path)


class StorageGateway:
    """Owns the resolved task file path for one process run."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path

    def resolve(self, candidates: Iterable[Path] | None = None) -> Path:
        self.path = resolve_location(candidates)
        return self.path

    def load(self) -> TaskStore:
        if self.path is None:
            self.resolve()
        return TaskStore(load_tasks(self.path))

    def save(self, store: TaskStore) -> None:
        if self.path is None:
            raise StorageError("Task storage was not loaded. Cannot save!")
        save_tasks(self.path, store)


def config_path(storage_dir: Path) -> Path:
    return storage_dir / CONFIG_FILE_NAME


def default_config() -> dict[str, Any]:
    return {
        "settings": {
            "id_length": DEFAULT_ID_LENGTH,
            "id_attempts": DEFAULT_ID_ATTEMPTS,
        }
    }


def read_config(storage_dir: Path, warn: Callable[[str], None] | None = None) -> dict[str, Any]:
    path = config_path(storage_dir)
    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        if warn is not None:
            warn(f"Unable to parse config at {path}. Falling back to defaults.")
        return {}
    if not isinstance(payload, dict):
        if warn is not None:
            warn(f"Invalid config format at {path}. Falling back to defaults.")
        return {}
    return payload


def _positive_int_setting(
    settings: dict[str, Any],
    key: str,
    default: int,
    path: Path,
    warn: Callable[[str], None] | None,
) -> int:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        if warn is not None:
            warn(f"Invalid settings.{key} in {path}. Using default '{default}'.")
        return default
    return value


def resolve_id_settings(
    storage_dir: Path,
    warn: Callable[[str], None] | None = None,
) -> tuple[int, int]:
    """Return ``(id_length, id_attempts)`` from the settings file."""
    path = config_path(storage_dir)
    data = read_config(storage_dir, warn=warn)
    for key in data.keys():
        if key != "settings" and warn is not None:
            warn(f"Unsupported config key '{key}' in {path}. Ignoring.")

    settings = data.get("settings", {})
    if not isinstance(settings, dict):
        if warn is not None:
            warn(f"Invalid settings section in {path}. Using defaults.")
        return DEFAULT_ID_LENGTH, DEFAULT_ID_ATTEMPTS

    supported = set(default_config()["settings"])
    for key in settings.keys():
        if key not in supported and warn is not None:
            warn(f"Unsupported settings key '{key}' in {path}. Ignoring.")

    id_length = _positive_int_setting(settings, "id_length", DEFAULT_ID_LENGTH, path, warn)
    id_attempts = _positive_int_setting(settings, "id_attempts", DEFAULT_ID_ATTEMPTS, path, warn)
    return id_length, id_attempts
