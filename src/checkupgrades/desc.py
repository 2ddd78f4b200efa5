"""Parser for the pacman/alpm `desc` file format.

A `desc` file is a series of blocks, each one a `%TAG%` line followed by the value (zero or more
lines) and terminated by a blank line:

    %NAME%
    bash

    %DEPENDS%
    readline
    glibc

Everything before the first tag line is ignored, and there is no way for the format to fail
validation: garbage in just means no pairs out.
"""

import re
from collections.abc import Iterable, Iterator
from pathlib import PurePath

from checkupgrades.errors import DescDecodeError

_TAG_LINE = re.compile(r"%([^%\n]+)%")


def _iter_lines(text: str) -> Iterator[tuple[str, bool]]:
    """Yield `(line, terminated)` for each line, where `terminated` means a newline follows it."""
    start = 0
    while True:
        end = text.find("\n", start)
        if end < 0:
            yield text[start:], False
            return
        yield text[start:end], True
        start = end + 1


def iter_desc(text: str) -> Iterator[tuple[str, str]]:
    """Iterate over the `(tag, value)` pairs of a `desc` document in document order.

    The value is every line after the tag line up to, but not including, the next blank line,
    joined with newlines. A block that isn't closed by a blank line (truncated input) is dropped.

    Examples:
        >>> list(iter_desc("%NAME%\\nbash\\n\\n%CSIZE%\\n42\\n\\n"))
        [('NAME', 'bash'), ('CSIZE', '42')]
        >>> list(iter_desc("no tags here\\n"))
        []
    """
    tag: str | None = None
    value_lines: list[str] = []
    for line, terminated in _iter_lines(text):
        if not terminated:
            return
        if tag is None:
            if match := _TAG_LINE.fullmatch(line):
                tag = match.group(1)
                value_lines = []
            continue
        if line == "":
            yield tag, "\n".join(value_lines)
            tag = None
        else:
            value_lines.append(line)


def format_desc(pairs: Iterable[tuple[str, str]]) -> str:
    """Render `(tag, value)` pairs as `desc` text that `iter_desc` reads back unchanged."""
    return "".join(f"%{tag}%\n{value}\n\n" if value else f"%{tag}%\n\n" for tag, value in pairs)


def decode_desc(data: bytes, path: PurePath | str | None = None) -> str:
    """Decode the raw contents of a `desc` file, which must be UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DescDecodeError(path, str(e)) from e


def split_dirname(dirname: str) -> tuple[str, str, str] | None:
    """Split a `${pkgname}-${pkgver}-${pkgrel}` directory name into its three parts.

    Returns None if there are fewer than two `-` characters or the name part is empty.

    Examples:
        >>> split_dirname("foo-bar-1.2-3")
        ('foo-bar', '1.2', '3')
        >>> split_dirname("one-dash") is None
        True
    """
    parts = dirname.rsplit("-", 2)
    if len(parts) != 3 or not parts[0]:
        return None
    name, version, release = parts
    return name, version, release


def split_pkgname(dirname: str) -> str | None:
    """Extract the pkgname part of a `${pkgname}-${pkgver}-${pkgrel}` string."""
    parts = split_dirname(dirname)
    return parts[0] if parts else None
