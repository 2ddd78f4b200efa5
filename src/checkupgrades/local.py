"""Scanning the local (installed packages) pacman database."""

import logging
from pathlib import Path

from checkupgrades.config import Config
from checkupgrades.desc import decode_desc, split_pkgname
from checkupgrades.errors import DescDecodeError, LocalDatabaseError
from checkupgrades.index import NameFilter, accept_all
from checkupgrades.models import LocalPackage

logger = logging.getLogger(__name__)


class LocalDatabase:
    """Reads `<db_path>/local/<pkgname>-<pkgver>-<pkgrel>/desc` files."""

    def __init__(self, config: Config):
        self.local_dir = config.local_db_dir

    def _read_desc(self, desc_path: Path) -> str:
        try:
            data = desc_path.read_bytes()
        except OSError as e:
            raise LocalDatabaseError(f"failed to read {desc_path}: {e}") from e
        try:
            return decode_desc(data, desc_path)
        except DescDecodeError as e:
            raise LocalDatabaseError(str(e)) from e

    def packages(self, filter: NameFilter = accept_all) -> dict[str, LocalPackage]:
        """Collect the installed packages whose pkgname passes `filter`.

        Directories that don't look like `<pkgname>-<pkgver>-<pkgrel>`, or whose `desc` names a
        different package, are skipped.

        Raises:
            LocalDatabaseError: the directory can't be listed or a `desc` file can't be read
            InvalidFieldError: a %SIZE% value isn't an unsigned integer
        """
        try:
            dirents = list(self.local_dir.iterdir())
        except OSError as e:
            raise LocalDatabaseError(f"failed to read directory {self.local_dir}: {e}") from e

        found: dict[str, LocalPackage] = {}
        for path in dirents:
            # skip non-directories (e.g. the ALPM_DB_VERSION file)
            if not path.is_dir():
                continue

            pkgname = split_pkgname(path.name)
            if pkgname is None or not filter(pkgname):
                continue

            package = LocalPackage.from_desc(self._read_desc(path / "desc"), path.name)
            if package is None:
                logger.debug(f"Skipping {path.name}, its desc doesn't describe {pkgname}")
                continue
            found[package.name] = package

        return found

    def package_sizes(self, filter: NameFilter = accept_all) -> dict[str, int]:
        """Get the installed size (%SIZE%) of each locally installed package."""
        return {name: int(pkg.installed_size) for name, pkg in self.packages(filter).items()}
