"""Renderers for command results."""

from __future__ import annotations

from pathlib import Path

from . import __version__
from .models import TaskRecord
from .service import HelpResult, ListResult

CHILD_INDENT = "  "
ID_STYLE = "blue"
TAG_STYLE = "green"
COUNT_STYLE = "yellow"

USAGE = """\
Usage: todo [command] [<option>] [text]

Commands:
  -n        New task.
  -e <id>   Edit task.
  -d <id>   Delete task.
  -c <id>   Toggle completed/not completed.
  -h        Shows this information.

Options:
  -s <id>   Attach a task to another task.
  -t <tag>  Attach a tag to a task, or search by tag.
  -r        Enable recursive when deleting or toggling completed.

Examples:
  List all open tasks:
  todo

  List all open tasks with given tag(s):
  todo -t tag1

  List all tasks that have been marked as completed:
  todo -c

  Create a new task as a sub task of the task <abc> with the tag <def> and <ghi>:
  todo -n -s abc -t def -t ghi This is a test

  Edit (replace) a tasks info of task <abc>:
  todo -e abc -t def This is an edit!

  Delete a task:
  todo -d abc

  Toggle completed/not completed:
  todo -c abc
"""


def _tag_label(tags: list[str]) -> str:
    return "".join(f"#{tag} " for tag in tags)


def _totals_line(result: ListResult) -> str:
    return f" total {result.total_tasks} tasks, {result.total_sub_tasks} sub tasks."


def render_task_line_plain(task: TaskRecord, *, child: bool = False) -> str:
    indent = CHILD_INDENT if child else ""
    return f"{indent} {task.id} {_tag_label(task.tags)}{task.text}"


def render_task_list_plain(result: ListResult) -> str:
    lines = []
    for task, children in result.entries:
        lines.append(render_task_line_plain(task))
        for sub_task in children:
            lines.append(render_task_line_plain(sub_task, child=True))
    lines.append("")
    lines.append(_totals_line(result))
    return "\n".join(lines)


def render_task_line_rich(task: TaskRecord, *, child: bool = False):
    from rich.text import Text

    line = Text(CHILD_INDENT if child else "")
    line.append(" ")
    line.append(task.id, style=ID_STYLE)
    line.append(" ")
    if task.tags:
        line.append(_tag_label(task.tags), style=TAG_STYLE)
    line.append(task.text)
    return line


def render_task_list_rich(result: ListResult):
    from rich.console import Group
    from rich.text import Text

    renderables = []
    for task, children in result.entries:
        renderables.append(render_task_line_rich(task))
        for sub_task in children:
            renderables.append(render_task_line_rich(sub_task, child=True))

    totals = Text("\n total ")
    totals.append(str(result.total_tasks), style=COUNT_STYLE)
    totals.append(" tasks, ")
    totals.append(str(result.total_sub_tasks), style=COUNT_STYLE)
    totals.append(" sub tasks.")
    renderables.append(totals)
    return Group(*renderables)


def render_help(result: HelpResult) -> str:
    parts = [f"TODO CLI v{__version__}", ""]
    if result.storage_path is not None:
        parts.extend([f"Storage path: {Path(result.storage_path)}", ""])
    parts.append(USAGE)
    return "\n".join(parts)
