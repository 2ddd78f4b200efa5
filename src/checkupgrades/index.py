"""Loading pacman sync databases into a pkgname-keyed package index."""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import TypeAlias

from checkupgrades.archive import ArchiveSource, iter_entries
from checkupgrades.desc import decode_desc, split_pkgname
from checkupgrades.errors import ArchiveError, DatabaseLoadError, DescError
from checkupgrades.models import Repo, SyncPackage

logger = logging.getLogger(__name__)

NameFilter: TypeAlias = Callable[[str], bool]


def accept_all(pkgname: str) -> bool:
    return True


class PackageIndex(Mapping[str, SyncPackage]):
    """Packages from one or more sync databases, keyed by pkgname.

    Loading the same pkgname from a second database replaces the first entry. Nothing here knows
    the repo order from `pacman.conf`, so when the same pkgname exists in multiple repos the one
    loaded last wins, and callers that care must control the load order themselves.
    """

    def __init__(self, packages: Iterable[SyncPackage] = ()):
        self._packages: dict[str, SyncPackage] = {}
        for package in packages:
            self.insert(package)

    def __getitem__(self, pkgname: str) -> SyncPackage:
        return self._packages[pkgname]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} packages)"

    def insert(self, package: SyncPackage) -> None:
        if (existing := self._packages.get(package.name)) and existing.repo != package.repo:
            logger.debug(f"{package.name} from {package.repo} replaces the one from {existing.repo}")
        self._packages[package.name] = package

    def load_archive(self, source: ArchiveSource, repo: Repo, filter: NameFilter = accept_all) -> int:
        """Load one database (e.g. the contents of `/var/lib/pacman/sync/core.db`) into the index.

        The database may be gzip or zstd compressed. Only `<pkgname>-<pkgver>-<pkgrel>/desc`
        members whose pkgname passes `filter` are parsed.

        If a `desc` fails to parse the whole database is abandoned and `DatabaseLoadError` is
        raised, but packages inserted before that point stay in the index.

        Returns:
            The number of packages inserted from this database.
        """
        count = 0
        try:
            for entry in iter_entries(source):
                if not entry.is_file or entry.name != "desc":
                    continue

                # determine pkgname from the path to the desc file (inside the archive)
                pkgname = split_pkgname(entry.path.parent.name)
                if pkgname is None or not filter(pkgname):
                    continue

                try:
                    text = decode_desc(entry.read_bytes(), entry.path)
                    package = SyncPackage.from_desc(text, repo=repo)
                except DescError as e:
                    raise DatabaseLoadError(f"{entry.path} in {repo} database", str(e)) from e

                self.insert(package)
                count += 1
        except ArchiveError as e:
            raise DatabaseLoadError(f"{repo} database", str(e)) from e

        logger.debug(f"Loaded {count} packages from {repo}")
        return count

    def load_db_file(self, db_path: Path, filter: NameFilter = accept_all) -> int:
        """Load a database file from disk, naming the repo after the file stem."""
        repo = Repo.from_str(db_path.stem)
        try:
            return self.load_archive(db_path, repo, filter)
        except DatabaseLoadError as e:
            raise DatabaseLoadError(str(db_path), str(e)) from e

    def load_sync_dir(self, sync_dir: Path, filter: NameFilter = accept_all) -> list[DatabaseLoadError]:
        """Load every `*.db` file in `sync_dir`, in file name order.

        A database that fails to load doesn't stop the rest; its error is logged and returned.

        Raises:
            DatabaseLoadError: `sync_dir` itself can't be listed
        """
        try:
            db_paths = sorted(p for p in sync_dir.iterdir() if p.suffix == ".db" and p.is_file())
        except OSError as e:
            raise DatabaseLoadError(str(sync_dir), f"failed to read directory: {e}") from e

        errors: list[DatabaseLoadError] = []
        for db_path in db_paths:
            try:
                self.load_db_file(db_path, filter)
            except DatabaseLoadError as e:
                logger.warning(f"Skipping database: {e}")
                errors.append(e)
        return errors

    def load_payloads(
        self,
        payloads: Iterable[tuple[Repo, bytes]],
        filter: NameFilter = accept_all,
    ) -> list[DatabaseLoadError]:
        """Load downloaded databases one after another.

        A database that fails to load doesn't stop the rest; its error is logged and returned.
        """
        errors: list[DatabaseLoadError] = []
        for repo, data in payloads:
            try:
                self.load_archive(data, repo, filter)
            except DatabaseLoadError as e:
                logger.warning(f"Skipping database: {e}")
                errors.append(e)
        return errors
