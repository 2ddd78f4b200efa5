"""Exception hierarchy for the sync/local database pipeline."""

from pathlib import PurePath


class CheckupgradesError(Exception):
    """Root of the error hierarchy. Don't raise this directly, use more specific error types."""


class ConfigError(CheckupgradesError):
    """Invalid configuration value or unusable configured path."""


class DescError(CheckupgradesError):
    """A `desc` record could not be turned into a package record."""


class DescDecodeError(DescError):
    """The raw bytes of a `desc` file are not valid UTF-8."""

    def __init__(self, path: PurePath | str | None, reason: str):
        self.path = path
        where = f" {path}" if path is not None else ""
        super().__init__(f"failed to decode desc file{where}: {reason}")


class MissingFieldError(DescError):
    """A required tag is absent from a `desc` record."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"missing required field %{tag}% in desc")


class InvalidFieldError(DescError):
    """A numeric tag holds something that isn't an unsigned 64-bit integer."""

    def __init__(self, tag: str, value: str):
        self.tag = tag
        self.value = value
        super().__init__(f"failed to parse %{tag}% value {value!r} as an unsigned integer")


class ArchiveError(CheckupgradesError):
    """The database archive is truncated, corrupt or not a tar file."""


class DatabaseLoadError(CheckupgradesError):
    """Loading one sync database failed part way through."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"failed to load {source}: {reason}")


class LocalDatabaseError(CheckupgradesError):
    """I/O failure while scanning the local package database."""


class FetchError(CheckupgradesError):
    """Downloading or reading the cached copy of one sync database failed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"failed to fetch {url}: {reason}")
