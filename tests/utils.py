"""Helpers for building sync and local database fixtures."""

import gzip
import io
import tarfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TypeAlias

import zstandard

from checkupgrades.archive import Compression
from checkupgrades.desc import format_desc

DescPairs: TypeAlias = Sequence[tuple[str, str]]


def sync_desc(name: str, version: str, csize: int, isize: int) -> DescPairs:
    return [
        ("FILENAME", f"{name}-{version}-x86_64.pkg.tar.zst"),
        ("NAME", name),
        ("BASE", name),
        ("VERSION", version),
        ("DESC", f"The {name} package"),
        ("CSIZE", str(csize)),
        ("ISIZE", str(isize)),
        ("DEPENDS", "glibc\nreadline"),
    ]


def compress(data: bytes, compression: Compression) -> bytes:
    match compression:
        case Compression.ZSTD:
            return zstandard.ZstdCompressor().compress(data)
        case Compression.GZIP:
            return gzip.compress(data)
        case _:
            return data


def make_tar(members: Mapping[str, bytes | None]) -> bytes:
    """Build a tar archive; a None value adds a directory instead of a file."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_sync_db(
    packages: Mapping[str, DescPairs | str],
    compression: Compression = Compression.GZIP,
    extra_members: Mapping[str, bytes | None] | None = None,
) -> bytes:
    """Build a sync database from `{"<name>-<ver>-<rel>": desc}` where desc is pairs or raw text."""
    members: dict[str, bytes | None] = {}
    for dirname, desc in packages.items():
        text = desc if isinstance(desc, str) else format_desc(desc)
        members[f"{dirname}/"] = None
        members[f"{dirname}/desc"] = text.encode()
    members.update(extra_members or {})
    return compress(make_tar(members), compression)


def make_local_db(db_path: Path, packages: Mapping[str, DescPairs | str]) -> Path:
    """Create `<db_path>/local/<dirname>/desc` for each package and return the local dir."""
    local_dir = db_path / "local"
    local_dir.mkdir(parents=True, exist_ok=True)
    (local_dir / "ALPM_DB_VERSION").write_text("9\n")
    for dirname, desc in packages.items():
        pkg_dir = local_dir / dirname
        pkg_dir.mkdir()
        text = desc if isinstance(desc, str) else format_desc(desc)
        (pkg_dir / "desc").write_text(text)
    return local_dir
