"""checkupgrades command line interface.

Usage:
    /usr/bin/checkupdates | checkupgrades
    checkupgrades --input upgrades.txt

The upgrade list (`<pkgname> <oldver> -> <newver>` lines) is annotated with the repo each package
comes from, its download size and the change in installed size, using freshly fetched copies of
the sync databases and the local package database.
"""

import logging
import sys
from pathlib import Path

import typer
from pydantic import ByteSize
from rich.console import Console
from rich.table import Table

from checkupgrades.config import Config
from checkupgrades.enrich import EnrichedUpgrade, enrich
from checkupgrades.errors import ConfigError, DatabaseLoadError, DescError, LocalDatabaseError
from checkupgrades.fetcher import SyncFetcher
from checkupgrades.index import NameFilter, PackageIndex
from checkupgrades.local import LocalDatabase
from checkupgrades.models import Upgrade

logger = logging.getLogger(__name__)

cli = typer.Typer()


def load_index(config: Config, filter: NameFilter, offline: bool = False) -> PackageIndex:
    """Fetch (or reuse) the sync databases and load them into an index.

    Databases that fail to download or parse are logged and left out, so their packages end
    up with unknown metadata instead of failing the whole report.
    """
    index = PackageIndex()
    if offline:
        if not config.sync_dir.is_dir():
            logger.warning(f"No cached sync databases in {config.sync_dir}")
            return index
        # databases that fail to load are logged and skipped by load_sync_dir
        try:
            index.load_sync_dir(config.sync_dir, filter)
        except DatabaseLoadError as e:
            logger.warning(f"{e}")
        return index

    results = SyncFetcher(config).fetch_all_sync()
    # load in configured order so the outcome doesn't depend on which download finished first
    order = {source.repo: idx for idx, source in enumerate(config.sources)}
    payloads = [
        (result.repo, result.unwrap())
        for result in sorted(results, key=lambda r: order[r.repo])
        if result.ok
    ]
    index.load_payloads(payloads, filter)
    return index


def load_installed_sizes(config: Config, filter: NameFilter) -> dict[str, int]:
    try:
        return LocalDatabase(config).package_sizes(filter)
    except (LocalDatabaseError, DescError) as e:
        logger.warning(f"Installed sizes unavailable: {e}")
        return {}


def _size_str(size: ByteSize | None) -> str:
    if size is None:
        return "-"
    return size.human_readable()


def _delta_str(delta: int | None) -> str:
    if delta is None:
        return "-"
    sign = "-" if delta < 0 else "+"
    return sign + ByteSize(abs(delta)).human_readable()


def render(rows: list[EnrichedUpgrade], console: Console) -> None:
    table = Table(box=None, show_edge=False, pad_edge=False)
    table.add_column("Repo")
    table.add_column("Package")
    table.add_column("Old version")
    table.add_column("New version")
    table.add_column("Download", justify="right")
    table.add_column("Net size", justify="right")

    for row in rows:
        table.add_row(
            str(row.repo) if row.repo else "",
            row.pkgname,
            row.upgrade.oldver,
            row.upgrade.newver,
            _size_str(row.download_size),
            _delta_str(row.size_delta),
        )
    console.print(table)


@cli.command()
def check(
    input: Path | None = typer.Option(
        None, "--input", "-i", help="Read the upgrade list from this file instead of stdin"
    ),
    db_path: Path | None = typer.Option(None, help="pacman DBPath [env: CHECKUPGRADES_DB_PATH]"),
    cache_dir: Path | None = typer.Option(
        None, help="Where downloaded sync databases are cached [env: CHECKUPDATES_DB]"
    ),
    offline: bool = typer.Option(False, help="Use the cached sync databases without fetching"),
):
    """Annotate pending pacman upgrades with repo and size metadata."""
    try:
        config = Config.from_env(db_path=db_path, cache_dir=cache_dir)
    except ConfigError as e:
        logger.error(f"{e}")
        raise typer.Exit(1)

    if input is not None:
        try:
            text = input.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {input}: {e}")
            raise typer.Exit(1)
    elif sys.stdin.isatty():
        logger.error("No upgrade list given; pipe in the output of checkupdates or use --input")
        raise typer.Exit(1)
    else:
        text = sys.stdin.read()

    upgrades = Upgrade.parse_lines(text)
    if not upgrades:
        logger.info("No upgrades listed")
        return

    wanted = {upgrade.pkgname for upgrade in upgrades}
    try:
        index = load_index(config, wanted.__contains__, offline=offline)
    except ConfigError as e:
        logger.error(f"{e}")
        raise typer.Exit(1)
    installed = load_installed_sizes(config, wanted.__contains__)

    render(enrich(upgrades, index, installed), Console())


def main() -> None:
    """Main entry point for the checkupgrades CLI."""
    cli()


if __name__ == "__main__":
    main()
