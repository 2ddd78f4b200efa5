"""Concurrent, cache-validating downloads of pacman sync databases."""

import asyncio
import logging
import stat
from dataclasses import dataclass
from os import utime
from pathlib import Path

import aiofiles
import aiofiles.os
import httpx

from checkupgrades.config import Config, SyncSource
from checkupgrades.errors import ConfigError, FetchError
from checkupgrades.models import Repo
from checkupgrades.utils import format_http_date, try_parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching one sync database: either its bytes or the error that stopped it."""

    source: SyncSource
    data: bytes | None = None
    error: FetchError | None = None
    cached: bool = False

    @property
    def repo(self) -> Repo:
        return self.source.repo

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> bytes:
        """Return the database bytes, raising the fetch error if there was one."""
        if self.error is not None:
            raise self.error
        assert self.data is not None
        return self.data


async def _read_cached(url: str, file_path: Path) -> bytes:
    try:
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()
    except OSError as e:
        raise FetchError(url, f"failed to read cached copy {file_path}: {e}") from e


async def _stream_to_disk(url: str, response: httpx.Response, file_path: Path) -> bytes:
    """Write the response body to `file_path` while also collecting it in memory.

    The body goes to a `.part` file next to `file_path` which only replaces it once the whole
    body has arrived, so an interrupted download never leaves a truncated cached copy behind.
    """
    part_path = file_path.with_name(f"{file_path.name}.part")
    data = bytearray()
    try:
        async with aiofiles.open(part_path, "wb") as f:
            async for chunk in response.aiter_bytes():
                data.extend(chunk)
                await f.write(chunk)
            await f.flush()
        await aiofiles.os.replace(part_path, file_path)
    except OSError as e:
        await _discard(part_path)
        raise FetchError(url, f"failed writing to {file_path}: {e}") from e
    except httpx.HTTPError:
        await _discard(part_path)
        raise
    return bytes(data)


async def _discard(part_path: Path) -> None:
    try:
        await aiofiles.os.remove(part_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial download {part_path}: {e}")


async def _set_mtime(file_path: Path, last_modified: str | None) -> None:
    """Set the mtime of a fresh download from Last-Modified. Failure only costs a later re-download."""
    if not last_modified:
        return
    if (remote_dt := try_parse_date(last_modified)) is None:
        logger.warning(f"Not setting mtime of {file_path}, unparseable Last-Modified {last_modified!r}")
        return

    remote_ts = remote_dt.timestamp()
    logger.debug(f"Setting mtime of {file_path} to {last_modified}")
    try:
        await asyncio.to_thread(utime, file_path, (remote_ts, remote_ts))
    except (OSError, OverflowError) as e:
        logger.warning(f"Failed to set mtime of {file_path} to {last_modified}: {e}")


async def download_to_disk(client: httpx.AsyncClient, url: str, file_path: Path) -> tuple[bytes, bool]:
    """Download a single file and save it to `file_path`.

    If `file_path` already exists its mtime is sent as If-Modified-Since, and a 304 response
    means the cached copy is read back instead of downloading anything.

    Args:
        client: The HTTP client to send the request with
        url: The URL to download from
        file_path: Where the cached copy lives

    Returns:
        The file contents, and whether they came from the cached copy

    Raises:
        FetchError: on a network error, an invalid URL, a non-success status, or local file I/O failure
    """
    headers: dict[str, str] = {}
    try:
        cached_stat = await aiofiles.os.stat(file_path)
    except FileNotFoundError:
        cached_stat = None
    except OSError as e:
        raise FetchError(url, f"failed to stat {file_path}: {e}") from e

    if cached_stat is not None:
        if not stat.S_ISREG(cached_stat.st_mode):
            raise FetchError(url, f"{file_path} exists but is not a file")
        mtime = format_http_date(cached_stat.st_mtime)
        logger.debug(f"Request if-modified-since {mtime!r} for {url}")
        headers["if-modified-since"] = mtime

    try:
        async with client.stream("GET", url, headers=headers) as response:
            if response.status_code == httpx.codes.NOT_MODIFIED:
                if cached_stat is None:
                    raise FetchError(url, "got 304 Not Modified without a cached copy")
                logger.info(f"Cached: {url}")
                return await _read_cached(url, file_path), True

            response.raise_for_status()
            logger.info(f"Downloading {url}")
            data = await _stream_to_disk(url, response, file_path)
            last_modified = response.headers.get("last-modified")

    except httpx.HTTPStatusError as e:
        raise FetchError(url, f"server returned {e.response.status_code} {e.response.reason_phrase}") from e
    except httpx.HTTPError as e:
        raise FetchError(url, str(e) or type(e).__name__) from e
    except httpx.InvalidURL as e:
        raise FetchError(url, f"invalid URL: {e}") from e

    await _set_mtime(file_path, last_modified)
    logger.debug(f"Downloaded {url} to {file_path}")
    return data, False


class SyncFetcher:
    """Fetches every configured sync database concurrently, one task per source."""

    def __init__(self, config: Config, client: httpx.AsyncClient | None = None):
        """Initialize the fetcher.

        Args:
            config: Supplies the sources, the cache directory and the HTTP timeout
            client: HTTP client to use instead of creating one per `fetch_all` call
        """
        self.config = config
        self.sync_dir = config.sync_dir
        self._client = client

    def _prepare_sync_dir(self) -> None:
        if self.sync_dir.exists() and not self.sync_dir.is_dir():
            raise ConfigError(f"sync db path '{self.sync_dir}' exists but is not a directory")
        try:
            self.sync_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to create sync db directory '{self.sync_dir}': {e}") from e

    async def _fetch_one(self, client: httpx.AsyncClient, source: SyncSource) -> FetchResult:
        file_path = self.config.db_file(source.repo)
        try:
            data, cached = await download_to_disk(client, source.url, file_path)
        except FetchError as e:
            logger.warning(f"Failed downloading repo {source.repo}: {e}")
            return FetchResult(source=source, error=e)
        return FetchResult(source=source, data=data, cached=cached)

    async def _fetch_with(self, client: httpx.AsyncClient) -> list[FetchResult]:
        tasks = [asyncio.create_task(self._fetch_one(client, source)) for source in self.config.sources]
        results: list[FetchResult] = []
        for next_done in asyncio.as_completed(tasks):
            results.append(await next_done)
        return results

    async def fetch_all(self) -> list[FetchResult]:
        """Fetch all sources. Results are in completion order, one per source.

        A source that fails doesn't affect the others; its result carries the error instead.

        Raises:
            ConfigError: the cache directory can't be used
        """
        self._prepare_sync_dir()
        if self._client is not None:
            return await self._fetch_with(self._client)
        async with httpx.AsyncClient(follow_redirects=True, timeout=self.config.timeout) as client:
            return await self._fetch_with(client)

    def fetch_all_sync(self) -> list[FetchResult]:
        return asyncio.run(self.fetch_all())
