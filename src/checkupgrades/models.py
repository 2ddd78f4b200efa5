"""Data models for sync database packages, locally installed packages and upgrades."""

import re
from functools import total_ordering
from typing import Self, TypeAlias

from pydantic import BaseModel, ByteSize, ConfigDict

from checkupgrades.desc import iter_desc, split_dirname
from checkupgrades.errors import InvalidFieldError, MissingFieldError

OptionalStr: TypeAlias = str | None

U64_MAX = 2**64 - 1

# Repos sort in this order, anything else comes after them sorted by name
KNOWN_REPOS = ("core", "extra", "community", "multilib", "local")


def parse_u64(tag: str, value: str) -> int:
    """Parse the value of a numeric `desc` tag as an unsigned 64-bit integer."""
    if not (value.isascii() and value.isdigit()):
        raise InvalidFieldError(tag, value)
    number = int(value)
    if number > U64_MAX:
        raise InvalidFieldError(tag, value)
    return number


def _fold_desc(text: str) -> dict[str, str]:
    # later duplicates of a tag replace earlier ones
    return dict(iter_desc(text))


@total_ordering
class Repo(BaseModel):
    """A pacman repo. One of the standard ones, the local pseudo-repo, or a custom named repo."""

    model_config = ConfigDict(frozen=True)

    name: str

    @classmethod
    def from_str(cls, name: str) -> Self:
        return cls(name=name or "local")

    @property
    def is_custom(self) -> bool:
        return self.name not in KNOWN_REPOS

    @property
    def sort_key(self) -> tuple[int, str]:
        if self.is_custom:
            return len(KNOWN_REPOS), self.name
        return KNOWN_REPOS.index(self.name), ""

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Repo):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        return self.name


class SyncPackage(BaseModel):
    """A package from a desc file in a sync database."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: OptionalStr = None
    repo: Repo
    download_size: ByteSize
    install_size: ByteSize

    @classmethod
    def from_desc(cls, text: str, repo: Repo) -> Self:
        """Build a package from the text of a sync db `desc` file, tagged with the repo it came from.

        Raises:
            MissingFieldError: NAME, CSIZE or ISIZE is absent
            InvalidFieldError: CSIZE or ISIZE isn't an unsigned integer
        """
        fields = _fold_desc(text)
        for tag in ("NAME", "CSIZE", "ISIZE"):
            if tag not in fields:
                raise MissingFieldError(tag)

        return cls(
            name=fields["NAME"],
            version=fields.get("VERSION"),
            repo=repo,
            download_size=parse_u64("CSIZE", fields["CSIZE"]),
            install_size=parse_u64("ISIZE", fields["ISIZE"]),
        )


class LocalPackage(BaseModel):
    """A locally installed package, as described by `local/<name>-<ver>-<rel>/desc`."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    installed_size: ByteSize = ByteSize(0)

    @classmethod
    def from_desc(cls, text: str, dirname: str) -> Self | None:
        """Build a package from a local db `desc` file found in the directory `dirname`.

        Returns None when `dirname` isn't a package directory name, or when the NAME tag says
        the directory belongs to some other package. A missing SIZE means nothing is installed
        on disk (metapackages) and counts as zero.

        Raises:
            InvalidFieldError: SIZE isn't an unsigned integer
        """
        parts = split_dirname(dirname)
        if parts is None:
            return None
        dir_name, dir_version, dir_release = parts

        fields = _fold_desc(text)
        name = fields.get("NAME", dir_name)
        if name != dir_name:
            return None

        size = fields.get("SIZE")
        return cls(
            name=name,
            version=fields.get("VERSION", f"{dir_version}-{dir_release}"),
            installed_size=parse_u64("SIZE", size) if size is not None else 0,
        )


_UPGRADE_LINE = re.compile(r"^(\S+) (\S+) -> (\S+)$")


class Upgrade(BaseModel):
    """One pending upgrade, as listed by `checkupdates` or `pacman -Qu`."""

    model_config = ConfigDict(frozen=True)

    pkgname: str
    oldver: str
    newver: str

    @classmethod
    def parse(cls, line: str) -> Self | None:
        """Parse a `<pkgname> <oldver> -> <newver>` line, returning None if it doesn't match."""
        match = _UPGRADE_LINE.match(line.rstrip("\r\n"))
        if not match:
            return None
        pkgname, oldver, newver = match.groups()
        return cls(pkgname=pkgname, oldver=oldver, newver=newver)

    @classmethod
    def parse_lines(cls, text: str) -> list[Self]:
        return [upgrade for line in text.splitlines() if (upgrade := cls.parse(line))]
