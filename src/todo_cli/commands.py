"""Command model and the argument interpreter that builds it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union


@dataclass(frozen=True, slots=True)
class ListCommand:
    tags: tuple[str, ...] = ()
    show_completed_only: bool = False


@dataclass(frozen=True, slots=True)
class CreateCommand:
    parent_id: str | None = None
    tags: tuple[str, ...] = ()
    text: str = ""


@dataclass(frozen=True, slots=True)
class EditCommand:
    task_id: str | None = None
    parent_id: str | None = None
    tags: tuple[str, ...] = ()
    text: str = ""


@dataclass(frozen=True, slots=True)
class DeleteCommand:
    task_id: str | None = None
    recursive: bool = False


@dataclass(frozen=True, slots=True)
class ToggleCompletionCommand:
    task_id: str | None = None
    recursive: bool = False
    tags: tuple[str, ...] = ()

    @property
    def lists_completed(self) -> bool:
        return self.task_id is None or not self.task_id.strip()


@dataclass(frozen=True, slots=True)
class ShowHelpCommand:
    pass


Command = Union[
    ListCommand,
    CreateCommand,
    EditCommand,
    DeleteCommand,
    ToggleCompletionCommand,
    ShowHelpCommand,
]

COMMAND_FLAGS = {
    "-n": "new",
    "-e": "edit",
    "-d": "delete",
    "-c": "complete",
    "-h": "help",
}
# Flags whose value is the next token, taken verbatim.
VALUE_FLAGS = {
    "-e": "task_id",
    "-d": "task_id",
    "-c": "task_id",
    "-s": "parent_id",
    "-t": "tags",
}
RECURSIVE_FLAG = "-r"


def parse_args(tokens: Sequence[str]) -> Command:
    """Interpret raw argument tokens as exactly one command.

    Single left-to-right pass. A value flag swallows the next token even
    when that token looks like a flag, the last command flag wins, and
    leftover tokens become the space-joined, stripped task text.
    """
    kind = "list"
    task_id: str | None = None
    parent_id: str | None = None
    tags: list[str] = []
    recursive = False
    words: list[str] = []
    pending: str | None = None

    for token in tokens:
        if pending is not None:
            if pending == "tags":
                tags.append(token)
            elif pending == "parent_id":
                parent_id = token
            else:
                task_id = token
            pending = None
            continue

        if token in COMMAND_FLAGS:
            kind = COMMAND_FLAGS[token]
        elif token == RECURSIVE_FLAG:
            recursive = True
        elif token not in VALUE_FLAGS:
            words.append(token)

        if token in VALUE_FLAGS:
            pending = VALUE_FLAGS[token]

    text = " ".join(words).strip()

    if kind == "new":
        return CreateCommand(parent_id=parent_id, tags=tuple(tags), text=text)
    if kind == "edit":
        return EditCommand(task_id=task_id, parent_id=parent_id, tags=tuple(tags), text=text)
    if kind == "delete":
        return DeleteCommand(task_id=task_id, recursive=recursive)
    if kind == "complete":
        return ToggleCompletionCommand(task_id=task_id, recursive=recursive, tags=tuple(tags))
    if kind == "help":
        return ShowHelpCommand()
    return ListCommand(tags=tuple(tags))
