"""Migrate every stored progress record to the pvp/pve layout.

Usage:
    python scripts/migrate_records.py
    python scripts/migrate_records.py --dry-run
    python scripts/migrate_records.py --source-mode pve

Records already in the dual-mode layout are left untouched, so the script
can be re-run safely.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from gamemode import GAME_MODES, needs_migration
from tracker.config import load_config, progress_db_path
from tracker.documents import SQLiteDocumentStore
from tracker.store import PROGRESS, ProgressStore


async def _migrate_all(db_path: Path, source_mode: str, dry_run: bool) -> tuple[int, int]:
    migrated = 0
    async with SQLiteDocumentStore(db_path) as documents:
        ids = await documents.list_ids(PROGRESS)
        for user_id in ids:
            raw = await documents.get(PROGRESS, user_id)
            if not needs_migration(raw):
                continue
            migrated += 1
            if dry_run:
                click.echo(f"  would migrate {user_id}")
                continue
            await ProgressStore(documents, user_id, source_mode=source_mode).load()
            click.echo(f"  migrated {user_id}")
    return len(ids), migrated


@click.command()
@click.option("--config-dir", type=click.Path(), default=None, help="Config directory")
@click.option(
    "--source-mode",
    type=click.Choice(GAME_MODES),
    default="pvp",
    help="Mode that receives legacy progress",
)
@click.option("--dry-run", is_flag=True, help="Only list records that need migrating")
def migrate_records(config_dir: str | None, source_mode: str, dry_run: bool) -> None:
    """Rewrite legacy single-mode records into the dual-mode layout."""

    cfg = load_config(config_dir)
    db_path = progress_db_path(cfg)
    if not db_path.exists():
        click.echo(f"No progress database at {db_path}", err=True)
        sys.exit(1)

    click.echo(f"\nScanning {db_path}...\n")
    total, migrated = asyncio.run(_migrate_all(db_path, source_mode, dry_run))
    verb = "need migrating" if dry_run else "migrated"
    click.echo(f"\n{migrated} of {total} records {verb}.")


if __name__ == "__main__":
    migrate_records()
