"""Read-only access to (optionally compressed) tar archives such as pacman sync databases.

The compression of a database can't be trusted from its file name or the Content-Type it was
served with, so it is sniffed from the first few bytes of the data.
"""

import gzip
import io
import logging
import tarfile
import zlib
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import BinaryIO, TypeAlias

import zstandard

from checkupgrades.errors import ArchiveError

logger = logging.getLogger(__name__)

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
GZIP_MAGIC = b"\x1f\x8b"

ArchiveSource: TypeAlias = BinaryIO | Path | bytes


class Compression(StrEnum):
    """Compression schemes recognised by their magic bytes.
    ZSTD: zstd frame (28 B5 2F FD)
    GZIP: gzip member (1F 8B)
    NONE: anything else, assumed to be a plain tar stream
    """

    ZSTD = "zstd"
    GZIP = "gzip"
    NONE = "none"

    @classmethod
    def from_magic(cls, magic: bytes) -> "Compression":
        if magic[:4] == ZSTD_MAGIC:
            return cls.ZSTD
        if magic[:2] == GZIP_MAGIC:
            return cls.GZIP
        return cls.NONE


def sniff_compression(source: BinaryIO) -> Compression:
    """Read the 4-byte magic of a seekable stream, rewind it, and pick a compression."""
    try:
        magic = source.read(4)
        source.seek(0)
    except OSError as e:
        raise ArchiveError(f"failed to read file header: {e}") from e
    if len(magic) < 4:
        raise ArchiveError(f"failed to read file header: expected 4 bytes, got {len(magic)}")
    return Compression.from_magic(magic)


def open_decompressed(source: BinaryIO, compression: Compression | None = None) -> BinaryIO:
    """Wrap a seekable stream in the streaming decoder matching its compression."""
    if compression is None:
        compression = sniff_compression(source)
    logger.debug(f"Decoding archive as {compression}")

    match compression:
        case Compression.ZSTD:
            try:
                return zstandard.ZstdDecompressor().stream_reader(
                    source, read_across_frames=True, closefd=False
                )
            except zstandard.ZstdError as e:
                raise ArchiveError(f"failed to initialize zstd decoder: {e}") from e
        case Compression.GZIP:
            return gzip.GzipFile(fileobj=source, mode="rb")
        case Compression.NONE:
            return source
        case _:
            raise ValueError(f"Unknown or unsupported compression: {compression}")


@dataclass
class ArchiveEntry:
    """One member of a tar archive. The data can only be read while the entry is current."""

    path: PurePosixPath
    is_file: bool
    size: int
    _tar: tarfile.TarFile = field(repr=False)
    _member: tarfile.TarInfo = field(repr=False)

    @property
    def name(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        """Read the entry's full contents."""
        if not self.is_file:
            raise ArchiveError(f"{self.path} is not a regular file")
        try:
            handle = self._tar.extractfile(self._member)
            if handle is None:
                raise ArchiveError(f"{self.path} has no data")
            with handle:
                return handle.read()
        except (tarfile.TarError, OSError, EOFError, zlib.error, zstandard.ZstdError) as e:
            raise ArchiveError(f"failed to read tar entry data for {self.path}: {e}") from e


@contextmanager
def _open_source(source: ArchiveSource) -> Iterator[BinaryIO]:
    if isinstance(source, bytes):
        yield io.BytesIO(source)
    elif isinstance(source, Path):
        try:
            handle = source.open("rb")
        except OSError as e:
            raise ArchiveError(f"failed to open {source}: {e}") from e
        with handle:
            yield handle
    else:
        yield source


def iter_entries(source: ArchiveSource) -> Iterator[ArchiveEntry]:
    """Iterate over the members of a tar archive that may be gzip or zstd compressed.

    Args:
        source: a seekable binary stream, a path to the archive, or the archive bytes

    Raises:
        ArchiveError: the header can't be read, or the decompressed data isn't a valid tar stream
    """
    with ExitStack() as stack:
        raw = stack.enter_context(_open_source(source))
        stream = open_decompressed(raw)
        if stream is not raw:
            stack.enter_context(stream)

        try:
            tar = stack.enter_context(tarfile.open(fileobj=stream, mode="r|"))
            for member in tar:
                yield ArchiveEntry(
                    path=PurePosixPath(member.name),
                    is_file=member.isfile(),
                    size=member.size,
                    _tar=tar,
                    _member=member,
                )
        except (tarfile.TarError, OSError, EOFError, zlib.error, zstandard.ZstdError) as e:
            raise ArchiveError(f"failed to read tar file: {e}") from e
