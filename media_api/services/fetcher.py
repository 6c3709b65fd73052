"""Materialize a remote resource as a local file."""
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional
from urllib.parse import urljoin, urlparse

import httpx

from media_api.errors import (
    DownloadTimeout,
    NetworkError,
    RedirectLoopError,
    SizeLimitExceeded,
    UpstreamStatusError,
)
from media_api.storage import TempStorage, cleanup_files

from .extractor import ExtractorClient

_logger = logging.getLogger("media_api")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
EXTRACTOR_HOSTS = ("youtube.com", "youtu.be", "googlevideo.com")
REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024


def needs_extractor(url: str, extra_hosts: Iterable[str] = ()) -> bool:
    """Streaming-platform pages and HLS manifests go through yt-dlp."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    for known in (*EXTRACTOR_HOSTS, *extra_hosts):
        if host == known or host.endswith("." + known):
            return True
    return parsed.path.lower().endswith(".m3u8")


class Fetcher:
    def __init__(
        self,
        storage: TempStorage,
        extractor: ExtractorClient,
        *,
        max_file_size: int,
        timeout: float = 30.0,
        max_redirects: int = 10,
        extra_hosts: Iterable[str] = (),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.extractor = extractor
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.extra_hosts = tuple(extra_hosts)
        self.transport = transport

    def needs_extractor(self, url: str) -> bool:
        return needs_extractor(url, self.extra_hosts)

    async def fetch(
        self,
        url: str,
        local_name: str,
        headers: Optional[Mapping[str, str]] = None,
        format_id: Optional[str] = None,
    ) -> Path:
        """
        Download ``url`` into the temp directory as ``local_name``.

        Extractor downloads may append an extension to ``local_name``; the
        returned path is the file actually written. Partial files are
        removed before any error propagates.
        """
        self.storage.ensure()
        path = self.storage.root / local_name
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,
            ) as client:
                result = await self._fetch(client, url, path, dict(headers or {}), format_id, hops=0)
        except BaseException:
            self._discard(path)
            raise

        _logger.info(
            "Fetched url=%s path=%s size=%d elapsed_ms=%d",
            url,
            result,
            result.stat().st_size,
            int((time.monotonic() - start) * 1000),
        )
        return result

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        url: str,
        path: Path,
        headers: Dict[str, str],
        format_id: Optional[str],
        hops: int,
    ) -> Path:
        if self.needs_extractor(url):
            _logger.info("Fetch via extractor url=%s", url)
            return await self.extractor.download(url, path, format_id=format_id, headers=headers)

        target = await self._transfer(client, url, path, headers)
        if target is None:
            return path

        if hops >= self.max_redirects:
            raise RedirectLoopError(url, hops + 1)
        _logger.debug("Following redirect hop=%d from=%s to=%s", hops + 1, url, target)
        return await self._fetch(client, target, path, headers, format_id, hops + 1)

    async def _transfer(
        self,
        client: httpx.AsyncClient,
        url: str,
        path: Path,
        headers: Dict[str, str],
    ) -> Optional[str]:
        """Stream ``url`` into ``path``. Returns the redirect target instead when there is one."""
        request_headers = {"User-Agent": USER_AGENT, **headers}
        try:
            async with client.stream("GET", url, headers=request_headers) as response:
                status = response.status_code
                if status in REDIRECT_CODES:
                    location = response.headers.get("location")
                    if not location:
                        raise UpstreamStatusError(status, url, f"HTTP {status} without Location header")
                    return urljoin(str(response.url), location)
                if status != 200:
                    raise UpstreamStatusError(status, url)

                downloaded = 0
                with open(path, "wb") as fh:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        downloaded += len(chunk)
                        if downloaded > self.max_file_size:
                            _logger.warning(
                                "Aborting fetch over size limit url=%s limit=%d", url, self.max_file_size
                            )
                            raise SizeLimitExceeded(self.max_file_size)
                        fh.write(chunk)
        except httpx.TimeoutException as exc:
            raise DownloadTimeout(url, self.timeout) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error fetching {url}: {exc}") from exc
        return None

    def _discard(self, path: Path) -> None:
        leftovers = [path]
        if path.parent.exists():
            leftovers += [p for p in path.parent.iterdir() if p.name.startswith(f"{path.name}.")]
        cleanup_files(*leftovers)
