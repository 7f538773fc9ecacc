from __future__ import annotations

"""
Transports that deliver candidate resources to the index loader.

Each fetch is a suspension point for the loader coroutine: the blocking work (a requests call or
a file open) runs in a worker thread via asyncio.to_thread. A fetch either returns a readable
binary stream, which the caller must close, or raises FetchError.

Usage:
    fetcher = default_fetcher("https://example.com/tiles/")
    stream = await fetcher.fetch("https://example.com/tiles/", "foo.ppmz")
"""

import asyncio
import io
import os
from pathlib import Path
from typing import BinaryIO, Optional, Protocol
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import requests

from common.logging_setup import get_logger
from common.utils import split_query, url_scheme
from tile_index.errors import FetchError


log = get_logger("tile_index.fetch")

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_USER_AGENT = "tile-index/1.0"


class Fetcher(Protocol):
    async def fetch(self, base: str, name: str) -> BinaryIO:
        ...


class HttpFetcher:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        user_agent: Optional[str] = DEFAULT_USER_AGENT,
    ):
        """
        Params:
            session: optional requests.Session for connection reuse
            timeout: per-request timeout in seconds
            user_agent: User-Agent header (None leaves the requests default)
        """
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    @staticmethod
    def url_for(base: str, name: str) -> str:
        return urljoin(base, name) if base else name

    def get(self, url: str) -> bytes:
        try:
            r = self.session.get(url, timeout=self.timeout, headers=self.headers)
        except requests.RequestException as e:
            raise FetchError(f"request for {url} failed: {e}") from e
        if r.status_code != 200:
            raise FetchError(f"HTTP {r.status_code} for {url}")
        return r.content

    async def fetch(self, base: str, name: str) -> BinaryIO:
        url = self.url_for(base, name)
        log.debug("GET", extra={"extra": {"url": url}})
        content = await asyncio.to_thread(self.get, url)
        return io.BytesIO(content)


class FileFetcher:
    """
    Reads candidates from the local filesystem. `base` may be a directory path or a file:// URL;
    relative bases are resolved against `root` (default: current directory).
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root) if root else None

    def path_for(self, base: str, name: str) -> Path:
        base, _ = split_query(base)
        name, _ = split_query(name)
        if url_scheme(base) == "file":
            base = url2pathname(urlsplit(base).path)
            if base and not base.endswith(os.sep):
                base += os.sep
        p = Path(base + name) if base else Path(name)
        if self.root is not None and not p.is_absolute():
            p = self.root / p
        return p

    def open(self, path: Path) -> BinaryIO:
        try:
            return path.open("rb")
        except OSError as e:
            raise FetchError(f"cannot open {path}: {e.strerror or e}") from e

    async def fetch(self, base: str, name: str) -> BinaryIO:
        path = self.path_for(base, name)
        log.debug("open", extra={"extra": {"path": str(path)}})
        return await asyncio.to_thread(self.open, path)


def default_fetcher(
    base: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_S,
    user_agent: Optional[str] = DEFAULT_USER_AGENT,
    root: Optional[str] = None,
) -> Fetcher:
    """HttpFetcher for http(s) bases, FileFetcher for everything else."""
    if url_scheme(base) in ("http", "https"):
        return HttpFetcher(timeout=timeout, user_agent=user_agent)
    return FileFetcher(root=root)
