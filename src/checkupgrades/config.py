"""Process-level configuration, resolved once from the environment at startup."""

import re
import tempfile
from os import getenv, getuid
from pathlib import Path
from typing import Self

import httpx
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, ValidationError, field_validator

from checkupgrades.errors import ConfigError
from checkupgrades.models import Repo

DEFAULT_DB_PATH = Path("/var/lib/pacman")
DEFAULT_TIMEOUT = 30.0

# fmt: off
DEFAULT_SYNC_DBS = (
    ("core", "https://arch.mirror.constant.com/core/os/x86_64/core.db"),
    ("extra", "https://arch.mirror.constant.com/extra/os/x86_64/extra.db"),
)
# fmt: on


class SyncSource(BaseModel):
    """A remote sync database and the repo its packages belong to."""

    model_config = ConfigDict(frozen=True)

    repo: Repo
    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, url: str) -> str:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid URL {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"invalid URL {url!r}: expected an absolute http(s) URL")
        return url

    @classmethod
    def parse(cls, pair: str) -> Self:
        """Parse a `repo=url` pair."""
        repo, sep, url = pair.partition("=")
        if not sep or not repo or not url:
            raise ConfigError(f"invalid sync source {pair!r}, expected repo=url")
        try:
            return cls(repo=Repo.from_str(repo), url=url)
        except ValidationError as e:
            raise ConfigError(f"invalid sync source {pair!r}: {e}") from e


def parse_sources(value: str) -> tuple[SyncSource, ...]:
    """Parse `repo=url` pairs separated by commas and/or whitespace."""
    return tuple(SyncSource.parse(pair) for pair in re.split(r"[,\s]+", value.strip()) if pair)


def default_cache_dir() -> Path:
    """Same location `checkupdates` uses: `$TMPDIR/checkup-db-<uid>`."""
    return Path(tempfile.gettempdir()) / f"checkup-db-{getuid()}"


class Config(BaseModel):
    """Paths and remote sources shared by the sync fetcher and the local database scanner."""

    model_config = ConfigDict(frozen=True)

    db_path: Path = DEFAULT_DB_PATH
    cache_dir: Path = Field(default_factory=default_cache_dir)
    sources: tuple[SyncSource, ...] = tuple(
        SyncSource(repo=Repo.from_str(repo), url=url) for repo, url in DEFAULT_SYNC_DBS
    )
    timeout: PositiveFloat = DEFAULT_TIMEOUT

    @field_validator("sources")
    @classmethod
    def _unique_repos(cls, sources: tuple[SyncSource, ...]) -> tuple[SyncSource, ...]:
        # each repo's database is cached at db_file(repo)
        seen: set[Repo] = set()
        for source in sources:
            if source.repo in seen:
                raise ValueError(f"sync source for repo {source.repo} given more than once")
            seen.add(source.repo)
        return sources

    @property
    def local_db_dir(self) -> Path:
        """One subdirectory per installed package lives here."""
        return self.db_path / "local"

    @property
    def sync_dir(self) -> Path:
        """Cached copies of the remote sync databases live here."""
        return self.cache_dir / "sync"

    def db_file(self, repo: Repo) -> Path:
        return self.sync_dir / f"{repo}.db"

    @classmethod
    def from_env(cls, **overrides) -> Self:
        """Build the configuration from environment variables, with explicit overrides on top.

        CHECKUPGRADES_DB_PATH: pacman DBPath (default /var/lib/pacman)
        CHECKUPDATES_DB: cache directory for downloaded sync databases
        CHECKUPGRADES_SOURCES: `repo=url` pairs separated by commas or whitespace
        CHECKUPGRADES_TIMEOUT: HTTP timeout in seconds
        """
        values = {}
        if db_path := getenv("CHECKUPGRADES_DB_PATH"):
            values["db_path"] = Path(db_path)
        if cache_dir := getenv("CHECKUPDATES_DB"):
            values["cache_dir"] = Path(cache_dir)
        if sources := getenv("CHECKUPGRADES_SOURCES"):
            values["sources"] = parse_sources(sources)
        if timeout := getenv("CHECKUPGRADES_TIMEOUT"):
            values["timeout"] = timeout
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}") from e
