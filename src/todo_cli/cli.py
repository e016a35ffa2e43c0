"""CLI entrypoint for todo-cli."""

from __future__ import annotations

import sys
from typing import Sequence

import typer

from . import render, storage
from .commands import Command, ShowHelpCommand, parse_args
from .models import StorageError, TaskError
from .service import HelpResult, ListResult, Result, TaskResult, TaskService
from .storage import StorageGateway
from .store import TaskStore

# Every token, "-h" included, belongs to the interpreter rather than click.
CONTEXT_SETTINGS = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
    "help_option_names": [],
}

ACTIVE_CLI_ARGS: tuple[str, ...] | None = None


def _argv_tokens(argv: Sequence[str] | None = None) -> list[str]:
    if argv is not None:
        return list(argv)
    if ACTIVE_CLI_ARGS is not None:
        return list(ACTIVE_CLI_ARGS)
    return sys.argv[1:]


class TodoTyperCommand(typer.core.TyperCommand):
    """Keeps the raw tokens, since click drops a bare "--" from ctx.args."""

    def main(self, *args, **kwargs):
        global ACTIVE_CLI_ARGS

        cli_args = kwargs.get("args")
        if cli_args is None and args:
            candidate = args[0]
            if isinstance(candidate, (list, tuple)):
                cli_args = [str(token) for token in candidate]
        if cli_args is None:
            ACTIVE_CLI_ARGS = tuple(sys.argv[1:])
        else:
            ACTIVE_CLI_ARGS = tuple(str(token) for token in cli_args)
        try:
            return super().main(*args, **kwargs)
        finally:
            ACTIVE_CLI_ARGS = None


app = typer.Typer(add_completion=False)


def _can_render_rich_output() -> bool:
    return sys.stdout.isatty()


def _print_rich(renderable) -> None:
    from rich.console import Console

    Console().print(renderable)


def _warn(message: str) -> None:
    typer.echo(f"Warning: {message}", err=True)


def _run_and_handle(fn) -> None:
    try:
        fn()
    except (TaskError, StorageError, OSError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _help_gateway() -> StorageGateway:
    gateway = StorageGateway()
    try:
        gateway.resolve()
    except StorageError:
        gateway.path = None
    return gateway


def _service_for(command: Command) -> TaskService:
    if isinstance(command, ShowHelpCommand):
        return TaskService(TaskStore(), _help_gateway(), warn=_warn)

    gateway = StorageGateway()
    gateway.resolve()
    store = gateway.load()
    id_length, id_attempts = storage.resolve_id_settings(gateway.path.parent, warn=_warn)
    return TaskService(
        store,
        gateway,
        warn=_warn,
        id_length=id_length,
        id_attempts=id_attempts,
    )


def _print_result(result: Result) -> None:
    if isinstance(result, ListResult):
        if _can_render_rich_output():
            _print_rich(render.render_task_list_rich(result))
        else:
            typer.echo(render.render_task_list_plain(result))
    elif isinstance(result, HelpResult):
        typer.echo(render.render_help(result))
    elif isinstance(result, TaskResult):
        if result.action in {"created", "edited"}:
            if _can_render_rich_output():
                _print_rich(render.render_task_line_rich(result.task))
            else:
                typer.echo(render.render_task_line_plain(result.task))
        else:
            typer.echo("Ok")


def run(tokens: Sequence[str]) -> None:
    command = parse_args(tokens)
    svc = _service_for(command)
    _print_result(svc.execute(command))


@app.command(cls=TodoTyperCommand, context_settings=CONTEXT_SETTINGS)
def todo() -> None:
    """Track tasks and sub tasks. Run with -h for usage."""
    _run_and_handle(lambda: run(_argv_tokens()))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
