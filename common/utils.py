from __future__ import annotations

import posixpath
from typing import Tuple
from urllib.parse import urlsplit


def abbreviate(text: str, max_len: int = 100) -> str:
    """Shorten long strings (data URIs mostly) for error messages."""
    if text is None:
        return "None"
    return text[:max_len] + "..." if len(text) > max_len else text


def split_query(url: str) -> Tuple[str, str]:
    """
    Split 'a/b.glb?v=2#x' into ('a/b.glb', '?v=2#x').
    data: URIs are returned whole; their payload may legitimately contain '?' or '#'.
    """
    if url.startswith("data:"):
        return url, ""
    cut = len(url)
    for sep in ("?", "#"):
        i = url.find(sep)
        if 0 <= i < cut:
            cut = i
    return url[:cut], url[cut:]


def base_uri(url: str) -> str:
    """Directory part of a URL or path, with trailing slash ('' if there is none)."""
    path, _ = split_query(url)
    i = path.rfind("/")
    return path[: i + 1] if i >= 0 else ""


def last_path_segment(url: str) -> str:
    """Final path segment without query string: 'tiles/foo.b3dm?v=1' -> 'foo.b3dm'."""
    path, _ = split_query(url)
    return path.rsplit("/", 1)[-1]


def url_extension(url: str) -> str:
    """Lower-cased extension of the last segment including the dot, or ''."""
    _, ext = posixpath.splitext(last_path_segment(url))
    return ext.lower()


def strip_url_extension(url: str) -> str:
    """'tiles/foo.b3dm?v=1' -> 'tiles/foo?v=1'."""
    path, query = split_query(url)
    head, tail = path.rsplit("/", 1) if "/" in path else ("", path)
    stem, _ = posixpath.splitext(tail)
    return (head + "/" if head or path.startswith("/") else "") + stem + query


def change_url_extension(url: str, ext: str) -> str:
    """'foo.b3dm?v=1', '.ppm' -> 'foo.ppm?v=1'."""
    path, query = split_query(strip_url_extension(url))
    return path + ext + query


def url_scheme(url: str) -> str:
    """Lower-cased scheme ('http', 'file', ...) or '' for plain paths (Windows drives included)."""
    scheme = urlsplit(url).scheme.lower()
    return scheme if len(scheme) > 1 else ""
