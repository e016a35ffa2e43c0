from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pytest

from todo_cli import storage
from todo_cli.models import StorageError, TaskRecord
from todo_cli.store import TaskStore

STAMP = dt.datetime(2026, 3, 4, 5, 6, 7, 123456, tzinfo=dt.timezone(dt.timedelta(hours=2)))


def _write_config(storage_dir: Path, content: str) -> None:
    (storage_dir / "todocli-config.yaml").write_text(content, encoding="utf-8")


def _records() -> list[TaskRecord]:
    return [
        TaskRecord(id="abc", text="Top", tags=["work", "work"], created_at=STAMP, updated_at=STAMP),
        TaskRecord(
            id="def",
            text="Child ünïcode",
            parent_id="abc",
            tags=[],
            created_at=STAMP,
            updated_at=STAMP + dt.timedelta(hours=1),
            completed_at=STAMP + dt.timedelta(hours=2),
        ),
        TaskRecord(id="ghi", text="", created_at=STAMP, updated_at=STAMP, deleted_at=STAMP),
    ]


def test_resolve_location_picks_first_writable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    blocked = tmp_path / "blocked"
    writable = tmp_path / "writable"
    writable.mkdir()
    monkeypatch.setattr(storage, "is_writable", lambda path: path == writable)

    assert storage.resolve_location([blocked, writable]) == writable / "todocli-tasks.json"


def test_resolve_location_fails_when_nothing_is_writable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(storage, "is_writable", lambda path: False)
    with pytest.raises(StorageError, match="No writable storage directory"):
        storage.resolve_location([Path("/nope")])


def test_resolve_location_uses_default_candidates(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(storage, "candidate_dirs", lambda: [tmp_path])
    assert storage.resolve_location() == tmp_path / "todocli-tasks.json"


def test_is_writable_leaves_no_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "dir"
    assert storage.is_writable(target) is True
    assert list(target.iterdir()) == []


def test_is_writable_false_for_file_path(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "file"
    not_a_dir.write_text("x", encoding="utf-8")
    assert storage.is_writable(not_a_dir) is False


def test_candidate_dirs_prefers_app_dir_then_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    candidates = storage.candidate_dirs()
    assert candidates[-1] == tmp_path
    assert len(candidates) == 2


def test_load_missing_file_is_empty(tmp_path: Path) -> None:
    assert storage.load_tasks(tmp_path / "todocli-tasks.json") == []


@pytest.mark.parametrize("count", [0, 1, 3])
def test_save_then_load_round_trips(tmp_path: Path, count: int) -> None:
    path = tmp_path / "todocli-tasks.json"
    records = _records()[:count]
    storage.save_tasks(path, records)
    assert storage.load_tasks(path) == records


def test_save_writes_camel_case_keys_and_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "todocli-tasks.json"
    storage.save_tasks(path, _records()[1:2])

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert list(payload[0]) == [
        "id",
        "parentId",
        "tags",
        "text",
        "createdAt",
        "updatedAt",
        "deletedAt",
        "completedAt",
    ]
    assert payload[0]["deletedAt"] is None
    assert [item.name for item in tmp_path.iterdir()] == ["todocli-tasks.json"]


def test_save_overwrites_whole_file(tmp_path: Path) -> None:
    path = tmp_path / "todocli-tasks.json"
    storage.save_tasks(path, _records())
    storage.save_tasks(path, _records()[:1])
    assert [record.id for record in storage.load_tasks(path)] == ["abc"]


def test_load_matches_keys_case_insensitively_and_accepts_legacy_names(tmp_path: Path) -> None:
    path = tmp_path / "todocli-tasks.json"
    path.write_text(
        "\ufeff"
        + json.dumps(
            [
                {
                    "Id": "abc",
                    "SubTaskId": None,
                    "Tags": ["a"],
                    "Text": "Legacy",
                    "Created": "2023-05-01T10:00:00.1234567+02:00",
                    "Updated": "2023-05-01T10:00:00.1234567+02:00",
                    "Deleted": None,
                    "Completed": "2023-05-02T10:00:00+02:00",
                },
                {
                    "ID": "def",
                    "PARENTID": "abc",
                    "TEXT": "Upper",
                    "CREATEDAT": "2023-05-01T11:00:00+00:00",
                    "UPDATEDAT": "2023-05-01T11:00:00+00:00",
                },
            ]
        ),
        encoding="utf-8",
    )

    first, second = storage.load_tasks(path)
    assert first.id == "abc"
    assert first.parent_id is None
    assert first.tags == ["a"]
    assert first.completed_at is not None
    assert first.created_at.microsecond == 123456
    assert second.parent_id == "abc"
    assert second.tags == []
    assert second.deleted_at is None


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "null",
        "{}",
        "[1]",
        '[{"text": "no id"}]',
        '[{"id": "a", "createdAt": "yesterday", "updatedAt": "2023-05-01T11:00:00+00:00"}]',
        '[{"id": "a", "tags": "x", "createdAt": "2023-05-01T11:00:00+00:00", "updatedAt": "2023-05-01T11:00:00+00:00"}]',
        b"[\xff\xfe bad]",
    ],
)
def test_load_malformed_file_is_a_storage_error(tmp_path: Path, content: str | bytes) -> None:
    path = tmp_path / "todocli-tasks.json"
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    with pytest.raises(StorageError):
        storage.load_tasks(path)


def test_load_rejects_duplicate_ids(tmp_path: Path) -> None:
    path = tmp_path / "todocli-tasks.json"
    storage.save_tasks(path, _records()[:1] * 2)
    with pytest.raises(StorageError, match="Duplicate task id abc"):
        storage.load_tasks(path)


def test_gateway_save_without_resolved_path_raises() -> None:
    with pytest.raises(StorageError, match="not loaded"):
        storage.StorageGateway().save(TaskStore())


def test_gateway_load_resolves_and_saves(tmp_path: Path) -> None:
    gateway = storage.StorageGateway()
    gateway.resolve([tmp_path])
    store = gateway.load()
    assert store.records == []

    store.insert(_records()[0])
    gateway.save(store)
    assert [record.id for record in storage.StorageGateway(gateway.path).load()] == ["abc"]


def test_save_into_missing_directory_is_a_storage_error(tmp_path: Path) -> None:
    with pytest.raises(StorageError, match="Unable to save tasks"):
        storage.save_tasks(tmp_path / "missing" / "todocli-tasks.json", _records())


def test_id_settings_default_when_config_missing(tmp_path: Path) -> None:
    warnings: list[str] = []
    assert storage.resolve_id_settings(tmp_path, warn=warnings.append) == (3, 50)
    assert warnings == []


def test_id_settings_read_valid_values(tmp_path: Path) -> None:
    _write_config(tmp_path, "settings:\n  id_length: 5\n  id_attempts: 10\n")
    assert storage.resolve_id_settings(tmp_path) == (5, 10)


def test_id_settings_invalid_values_warn_and_fall_back(tmp_path: Path) -> None:
    _write_config(tmp_path, "settings:\n  id_length: 0\n  id_attempts: many\n  colour: blue\n")
    warnings: list[str] = []
    assert storage.resolve_id_settings(tmp_path, warn=warnings.append) == (3, 50)
    assert any("Invalid settings.id_length" in message for message in warnings)
    assert any("Invalid settings.id_attempts" in message for message in warnings)
    assert any("Unsupported settings key 'colour'" in message for message in warnings)


def test_id_settings_unparseable_config_warns(tmp_path: Path) -> None:
    _write_config(tmp_path, "settings: [unclosed\n")
    warnings: list[str] = []
    assert storage.resolve_id_settings(tmp_path, warn=warnings.append) == (3, 50)
    assert any("Unable to parse config" in message for message in warnings)


def test_id_settings_undecodable_config_warns(tmp_path: Path) -> None:
    storage.config_path(tmp_path).write_bytes(b"settings: \xff\n")
    warnings: list[str] = []
    assert storage.resolve_id_settings(tmp_path, warn=warnings.append) == (3, 50)
    assert any("Unable to parse config" in message for message in warnings)


def test_id_settings_non_mapping_config_warns(tmp_path: Path) -> None:
    _write_config(tmp_path, "- just\n- a list\n")
    warnings: list[str] = []
    assert storage.resolve_id_settings(tmp_path, warn=warnings.append) == (3, 50)
    assert any("Invalid config format" in message for message in warnings)


def test_default_config_matches_defaults() -> None:
    assert storage.default_config() == {"settings": {"id_length": 3, "id_attempts": 50}}
