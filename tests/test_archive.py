"""Unit tests for compression sniffing and tar archive iteration."""

import io
from pathlib import Path, PurePosixPath

import pytest

from checkupgrades.archive import Compression, iter_entries, open_decompressed, sniff_compression
from checkupgrades.errors import ArchiveError
from tests.utils import compress, make_tar

ARCHIVE_MEMBERS = {
    "bash-5.2.026-2/": None,
    "bash-5.2.026-2/desc": b"%NAME%\nbash\n\n",
    "zlib-1:1.3.1-2/": None,
    "zlib-1:1.3.1-2/desc": b"%NAME%\nzlib\n\n",
}


@pytest.mark.parametrize(
    "magic, expected",
    [
        (b"\x28\xb5\x2f\xfd", Compression.ZSTD),
        (b"\x1f\x8b\x08\x00", Compression.GZIP),
        (b"\x1f\x8bxx", Compression.GZIP),
        (b"\x28\xb5\x2f\x00", Compression.NONE),
        (b"bash", Compression.NONE),
    ],
)
def test_compression_from_magic(magic: bytes, expected: Compression) -> None:
    assert Compression.from_magic(magic) == expected


@pytest.mark.parametrize("compression", list(Compression))
def test_sniff_and_decompress(compression: Compression) -> None:
    tar_bytes = make_tar(ARCHIVE_MEMBERS)
    source = io.BytesIO(compress(tar_bytes, compression))

    assert sniff_compression(source) == compression
    # sniffing rewinds the stream
    assert source.tell() == 0
    assert open_decompressed(source).read() == tar_bytes


def test_sniff_short_input() -> None:
    with pytest.raises(ArchiveError, match="failed to read file header"):
        sniff_compression(io.BytesIO(b"\x1f\x8b"))


@pytest.mark.parametrize("compression", list(Compression))
def test_iter_entries(compression: Compression) -> None:
    data = compress(make_tar(ARCHIVE_MEMBERS), compression)

    entries = [
        (entry.path, entry.is_file, entry.read_bytes() if entry.is_file else None)
        for entry in iter_entries(data)
    ]

    assert entries == [
        (PurePosixPath("bash-5.2.026-2"), False, None),
        (PurePosixPath("bash-5.2.026-2/desc"), True, b"%NAME%\nbash\n\n"),
        (PurePosixPath("zlib-1:1.3.1-2"), False, None),
        (PurePosixPath("zlib-1:1.3.1-2/desc"), True, b"%NAME%\nzlib\n\n"),
    ]


def test_iter_entries_from_path(tmp_path: Path) -> None:
    db_path = tmp_path / "core.db"
    db_path.write_bytes(compress(make_tar(ARCHIVE_MEMBERS), Compression.ZSTD))

    names = [entry.name for entry in iter_entries(db_path) if entry.is_file]

    assert names == ["desc", "desc"]


def test_iter_entries_skipping_reads() -> None:
    data = compress(make_tar(ARCHIVE_MEMBERS), Compression.GZIP)
    assert len(list(iter_entries(data))) == 4


def test_iter_entries_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ArchiveError, match="failed to open"):
        list(iter_entries(tmp_path / "missing.db"))


@pytest.mark.parametrize(
    "data",
    [
        pytest.param(b"\x1f\x8b\x08\x00garbage-that-is-not-deflate", id="corrupt_gzip"),
        pytest.param(b"\x28\xb5\x2f\xfd\x00\x00\x00\x00garbage", id="corrupt_zstd"),
        pytest.param(b"this is not a tar archive, it is just some text" * 20, id="not_tar"),
    ],
)
def test_iter_entries_corrupt(data: bytes) -> None:
    with pytest.raises(ArchiveError):
        list(iter_entries(data))


def test_read_bytes_on_directory() -> None:
    entry = next(iter_entries(make_tar(ARCHIVE_MEMBERS)))
    with pytest.raises(ArchiveError, match="not a regular file"):
        entry.read_bytes()
