"""Attach repo and size metadata from the package index to a list of pending upgrades."""

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, ByteSize, ConfigDict

from checkupgrades.index import PackageIndex
from checkupgrades.models import Repo, Upgrade


class EnrichedUpgrade(BaseModel):
    """An upgrade plus whatever is known about it. Missing metadata stays None."""

    model_config = ConfigDict(frozen=True)

    upgrade: Upgrade
    repo: Repo | None = None
    download_size: ByteSize | None = None
    install_size: ByteSize | None = None
    installed_size: ByteSize | None = None

    @property
    def pkgname(self) -> str:
        return self.upgrade.pkgname

    @property
    def size_delta(self) -> int | None:
        """Change in installed size after upgrading, if both sizes are known."""
        if self.install_size is None or self.installed_size is None:
            return None
        return self.install_size - self.installed_size


def enrich(
    upgrades: Iterable[Upgrade],
    index: PackageIndex,
    installed_sizes: Mapping[str, int] | None = None,
) -> list[EnrichedUpgrade]:
    """Look up every upgrade in the index and the local installed sizes.

    The result is sorted by repo (unknown repo first, then core, extra, ..., custom repos by
    name); upgrades within a repo keep their input order.
    """
    installed_sizes = installed_sizes or {}
    rows = []
    for upgrade in upgrades:
        package = index.get(upgrade.pkgname)
        rows.append(
            EnrichedUpgrade(
                upgrade=upgrade,
                repo=package.repo if package else None,
                download_size=package.download_size if package else None,
                install_size=package.install_size if package else None,
                installed_size=installed_sizes.get(upgrade.pkgname),
            )
        )
    rows.sort(key=lambda row: (row.repo is not None, row.repo.sort_key if row.repo else (0, "")))
    return rows
