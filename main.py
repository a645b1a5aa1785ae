"""Command-line entry point for the progress tracker.

Usage:
    python main.py progress USER_ID                   # Show progress in the current mode
    python main.py task USER_ID TASK_ID completed     # Change a task status
    python main.py tasks USER_ID T1=completed T2=failed
    python main.py --catalog snapshot.json team USER_ID
    python main.py hideout USER_ID --module gen-2   # Items and build time for one level
    python main.py reset USER_ID --all                # Wipe the whole profile
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable

import click

from tarkov.client import DEFAULT_API_URL, JsonCatalogSource, TarkovDevClient
from tracker.config import load_config, progress_db_path
from tracker.documents import SQLiteDocumentStore
from tracker.errors import ProgressError
from tracker.graph import OBJECTIVE_KINDS
from tracker.service import ProgressService

Operation = Callable[[ProgressService], Awaitable[Any]]


def _setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s — %(name)s — %(levelname)s — %(message)s"

    # stdout carries the JSON result
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=fmt, handlers=handlers)

    # Quiet down noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


async def _execute(cfg: dict, catalog_path: str | None, op: Operation) -> Any:
    db_path = progress_db_path(cfg)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    tarkov_cfg = cfg.get("tarkov", {})

    async with AsyncExitStack() as stack:
        documents = await stack.enter_async_context(SQLiteDocumentStore(db_path))
        if catalog_path:
            source = JsonCatalogSource(catalog_path)
        else:
            source = await stack.enter_async_context(
                TarkovDevClient(
                    api_url=cfg["_env"].get("api_url") or tarkov_cfg.get("api_url") or DEFAULT_API_URL,
                    timeout=float(tarkov_cfg.get("timeout", 30)),
                    language=tarkov_cfg.get("language", "en"),
                )
            )
        service = ProgressService(
            documents,
            source,
            default_game_mode=cfg.get("tracker", {}).get("default_game_mode", "pvp"),
        )
        result = await op(service)
        # Derived flags must land before the connection closes.
        await service.drain()
        return result


def _to_json(result: Any) -> Any:
    if hasattr(result, "to_api"):
        return result.to_api()
    if dataclasses.is_dataclass(result):
        return dataclasses.asdict(result)
    return result


def _run(ctx: click.Context, op: Operation) -> None:
    try:
        result = asyncio.run(_execute(ctx.obj["cfg"], ctx.obj["catalog"], op))
    except ProgressError as e:
        click.echo(f"Error ({e.status_code}): {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(_to_json(result), indent=2, default=str))


mode_option = click.option("--mode", default=None, help="Game mode (pvp or pve); defaults to the current one")


@click.group()
@click.option("--config-dir", type=click.Path(), default=None, help="Config directory")
@click.option("--catalog", type=click.Path(), default=None, help="Read the catalog from a JSON snapshot")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_dir: str | None, catalog: str | None, verbose: bool) -> None:
    """Tarkov progress tracker: tasks, hideout and team progress."""

    cfg = load_config(config_dir)

    log_file = cfg.get("storage", {}).get("log_file")
    _setup_logging(verbose=verbose, log_file=log_file)

    ctx.obj = {"cfg": cfg, "catalog": catalog}


@main.command()
@click.argument("user_id")
@mode_option
@click.pass_context
def progress(ctx: click.Context, user_id: str, mode: str | None) -> None:
    """Show one player's progress."""
    _run(ctx, lambda svc: svc.get_progress(user_id, mode))


@main.command()
@click.argument("user_id")
@mode_option
@click.pass_context
def team(ctx: click.Context, user_id: str, mode: str | None) -> None:
    """Show the progress of a player's whole team."""
    _run(ctx, lambda svc: svc.get_team_progress(user_id, mode))


@main.command()
@click.argument("user_id")
@click.argument("kind", type=click.Choice(OBJECTIVE_KINDS))
@click.argument("entry_id")
@mode_option
@click.pass_context
def entry(ctx: click.Context, user_id: str, kind: str, entry_id: str, mode: str | None) -> None:
    """Show one stored progress entry."""
    _run(ctx, lambda svc: svc.get_entry(user_id, kind, entry_id, mode))


@main.command()
@click.argument("user_id")
@click.option("--module", "module_id", default=None, help="Show items and total build time for one station level")
@click.option("--item", "item_id", default=None, help="List the station levels needing this item")
@mode_option
@click.pass_context
def hideout(ctx: click.Context, user_id: str, module_id: str | None, item_id: str | None, mode: str | None) -> None:
    """Show what is left to build in the hideout."""
    _run(ctx, lambda svc: svc.get_hideout_plan(user_id, module_id, item_id, mode))


@main.command()
@click.argument("user_id")
@click.argument("level")
@mode_option
@click.pass_context
def level(ctx: click.Context, user_id: str, level: str, mode: str | None) -> None:
    """Set the player level."""
    _run(ctx, lambda svc: svc.set_level(user_id, level, mode))


@main.command()
@click.argument("user_id")
@click.argument("task_id")
@click.argument("state")
@mode_option
@click.pass_context
def task(ctx: click.Context, user_id: str, task_id: str, state: str, mode: str | None) -> None:
    """Set one task to completed, failed or uncompleted."""
    _run(ctx, lambda svc: svc.set_task_state(user_id, task_id, state, mode))


@main.command()
@click.argument("user_id")
@click.argument("updates", nargs=-1, required=True)
@mode_option
@click.pass_context
def tasks(ctx: click.Context, user_id: str, updates: tuple[str, ...], mode: str | None) -> None:
    """Set several tasks at once, given as TASK_ID=STATE pairs."""
    parsed: dict[str, str] = {}
    for pair in updates:
        task_id, sep, state = pair.partition("=")
        if not sep or not task_id:
            raise click.BadParameter(f"expected TASK_ID=STATE, got {pair!r}", param_hint="UPDATES")
        parsed[task_id] = state
    _run(ctx, lambda svc: svc.set_tasks_state(user_id, parsed, mode))


@main.command()
@click.argument("user_id")
@click.argument("objective_id")
@click.option("--state", default=None, help="completed or uncompleted")
@click.option("--count", type=int, default=None, help="Progress count")
@mode_option
@click.pass_context
def objective(
    ctx: click.Context, user_id: str, objective_id: str, state: str | None, count: int | None, mode: str | None
) -> None:
    """Update a task objective's state and/or count."""
    _run(ctx, lambda svc: svc.set_objective(user_id, objective_id, state, count, mode))


@main.command()
@click.argument("user_id")
@click.argument("module_id")
@click.argument("state")
@mode_option
@click.pass_context
def module(ctx: click.Context, user_id: str, module_id: str, state: str, mode: str | None) -> None:
    """Mark a hideout station level as built or not."""
    _run(ctx, lambda svc: svc.set_hideout_module(user_id, module_id, state, mode))


@main.command()
@click.argument("user_id")
@click.argument("part_id")
@click.option("--state", default=None, help="completed or uncompleted")
@click.option("--count", type=int, default=None, help="Items handed in")
@mode_option
@click.pass_context
def part(
    ctx: click.Context, user_id: str, part_id: str, state: str | None, count: int | None, mode: str | None
) -> None:
    """Update a hideout part requirement."""
    _run(ctx, lambda svc: svc.set_hideout_part(user_id, part_id, state, count, mode))


@main.command("switch-mode")
@click.argument("user_id")
@click.argument("mode")
@click.pass_context
def switch_mode(ctx: click.Context, user_id: str, mode: str) -> None:
    """Change the player's current game mode."""
    _run(ctx, lambda svc: svc.switch_game_mode(user_id, mode))


@main.command()
@click.argument("user_id")
@mode_option
@click.option("--all", "reset_all", is_flag=True, help="Reset the whole profile, both modes")
@click.confirmation_option(prompt="This erases progress. Continue?")
@click.pass_context
def reset(ctx: click.Context, user_id: str, mode: str | None, reset_all: bool) -> None:
    """Reset one game mode, or the whole profile with --all."""
    if reset_all:
        _run(ctx, lambda svc: svc.reset_profile(user_id))
    else:
        _run(ctx, lambda svc: svc.reset_game_mode(user_id, mode))


@main.command()
@click.argument("user_id")
@click.pass_context
def migrate(ctx: click.Context, user_id: str) -> None:
    """Rewrite a legacy record into the pvp/pve layout."""
    _run(ctx, lambda svc: svc.migrate_record(user_id))


if __name__ == "__main__":
    main()
