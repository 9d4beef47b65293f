"""
url_sources.py - Where the page lists come from: URL-list files and XML sitemaps.

Usage:
    urls = read_url_list("urls.txt")
    urls = urls_from_sitemap("https://example.com/sitemap.xml")
    urls = urls_from_sitemap("/sitemap_index.xml", base_url="https://example.com")
"""

from __future__ import annotations

import logging
import os
import re
import time
from urllib.parse import urljoin, urlparse, urlunparse

from defusedxml import ElementTree as ET

from net_guardrails import MAX_SITEMAP_BYTES, FetchError, fetch_text

logger = logging.getLogger(__name__)

SITEMAP_RE = re.compile(r"\.xml($|\?)", re.I)
NON_CONTENT_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|svg|pdf|webp|zip|docx?|xlsx?)$", re.I)


class SitemapError(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


def read_url_list(path: str) -> list[str]:
    """One URL per line; blank lines and '#' comments are skipped."""
    with open(path, "r", encoding="utf-8") as f:
        lines = [line.strip() for line in f.read().splitlines()]
    return [line for line in lines if line and not line.startswith("#")]


def write_url_list(urls: list[str], directory: str) -> str:
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"urls-{int(time.time() * 1000)}.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(urls) + "\n")
    return path


def extract_locs(xml: str) -> list[str]:
    """<loc> values of a urlset or sitemapindex document, namespace-agnostic."""
    try:
        root = ET.fromstring(xml or "")
    except ET.ParseError as e:
        raise SitemapError(f"Invalid sitemap XML ({e})")
    locs = []
    for elem in root.iter():
        if isinstance(elem.tag, str) and elem.tag.lower().endswith("loc") and elem.text:
            locs.append(elem.text.strip())
    return locs


def is_sitemap_url(url: str) -> bool:
    return bool(SITEMAP_RE.search(url))


def is_content_url(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    path = parsed.path or "/"
    if path.startswith("/wp-") or "/feed" in path:
        return False
    return not NON_CONTENT_EXT_RE.search(path)


def _strip_fragment(url: str) -> str:
    return urlunparse(urlparse(url)._replace(fragment=""))


def _is_remote(source: str) -> bool:
    return bool(re.match(r"^https?://", source, re.I))


def resolve_source(source: str, base_url: str = "") -> str:
    if _is_remote(source):
        return source
    if source.startswith("/") and base_url and not os.path.exists(source):
        return urljoin(base_url.rstrip("/") + "/", source.lstrip("/"))
    return os.path.abspath(source)


def _load(source: str) -> str:
    if not _is_remote(source):
        try:
            with open(source, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise SitemapError(f"Failed to read XML: {source} ({e})")
    try:
        text, _ = fetch_text(source, max_bytes=MAX_SITEMAP_BYTES)
    except FetchError as e:
        raise SitemapError(f"Failed to fetch XML: {source} ({e.reason})")
    return text


def urls_from_sitemap(source: str, base_url: str = "") -> list[str]:
    """
    Page URLs listed in a sitemap, following nested *.xml sitemaps once each.
    Returns a sorted list without duplicates or fragments.
    """
    start = resolve_source(source, base_url)
    visited: set[str] = set()
    pages: set[str] = set()
    pending = [start]

    while pending:
        current = pending.pop()
        if current in visited:
            continue
        visited.add(current)
        logger.info(f"Reading sitemap {current}")

        for loc in extract_locs(_load(current)):
            if _is_remote(current):
                absolute = urljoin(current, loc)
            elif _is_remote(loc) or os.path.isabs(loc):
                absolute = loc
            else:
                absolute = os.path.abspath(os.path.join(os.path.dirname(current), loc))
            if is_sitemap_url(absolute):
                pending.append(absolute)
            elif is_content_url(absolute):
                pages.add(_strip_fragment(absolute))

    return sorted(pages)
