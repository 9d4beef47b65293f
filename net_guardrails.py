from __future__ import annotations

import ipaddress
import socket
from typing import Any
from urllib.parse import urljoin, urlparse

import requests

DEFAULT_USER_AGENT = "a11y-scanner/1.0 (+https://www.w3.org/WAI/)"
DEFAULT_HEADERS = {"User-Agent": DEFAULT_USER_AGENT}
DEFAULT_TIMEOUT = 15
MAX_HTML_BYTES = 5 * 1024 * 1024
MAX_SITEMAP_BYTES = 20 * 1024 * 1024
MAX_REDIRECTS = 10

PRIVATE_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


class FetchError(Exception):
    """Raised when a document cannot be fetched; ``reason`` is a short machine tag."""

    def __init__(self, reason: str, url: str, detail: str = ""):
        self.reason = reason
        self.url = url
        self.detail = detail
        super().__init__(f"{reason}: {url}" + (f" ({detail})" if detail else ""))


def validate_url(url: str, allow_private: bool = False) -> None:
    """
    Validates that the URL uses http(s) and, unless ``allow_private``,
    does not resolve to a private IP. Raises ValueError if unsafe.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsafe scheme: {parsed.scheme}")

    if not parsed.hostname:
        raise ValueError("Missing hostname")

    if allow_private:
        return

    try:
        ip_list = socket.getaddrinfo(parsed.hostname, None)
    except socket.gaierror:
        # Unresolvable hosts cannot be verified, fail closed.
        raise ValueError(f"DNS resolution failed for {parsed.hostname}")
    for _, _, _, _, sockaddr in ip_list:
        ip_str = sockaddr[0]
        ip_obj = ipaddress.ip_address(ip_str)
        for private_range in PRIVATE_IP_RANGES:
            if ip_obj in private_range:
                raise ValueError(f"Target resolves to private IP: {ip_str}")


def read_limited_text(resp: Any, max_bytes: int | None) -> tuple[str, bool]:
    if max_bytes is not None:
        content_length = resp.headers.get("Content-Length")
        try:
            if content_length and int(content_length) > max_bytes:
                return "", True
        except ValueError:
            pass
    chunks: list[bytes] = []
    size = 0
    for chunk in resp.iter_content(chunk_size=16384):
        if not chunk:
            continue
        chunks.append(chunk)
        size += len(chunk)
        if max_bytes is not None and size > max_bytes:
            return "", True
    data = b"".join(chunks)
    encoding = resp.encoding or "utf-8"
    try:
        return data.decode(encoding, errors="replace"), False
    except LookupError:
        return data.decode("utf-8", errors="replace"), False


def fetch_text(
    url: str,
    max_bytes: int | None = MAX_HTML_BYTES,
    allow_private: bool = True,
    session: requests.Session | None = None,
) -> tuple[str, str]:
    """
    GET ``url`` following redirects by hand so every hop is validated.
    Returns (text, final_url); raises FetchError on any failure.
    """
    try:
        validate_url(url, allow_private=allow_private)
    except ValueError as e:
        raise FetchError("invalid_url", url, str(e))

    session = session or requests.Session()
    session.max_redirects = MAX_REDIRECTS
    session.trust_env = False

    current_url = url
    redirects = 0
    while True:
        try:
            resp = session.get(
                current_url,
                headers=DEFAULT_HEADERS,
                timeout=DEFAULT_TIMEOUT,
                stream=True,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            raise FetchError("fetch_error", current_url, str(e))

        status = resp.status_code
        if status in (301, 302, 303, 307, 308):
            location = (resp.headers or {}).get("Location")
            if not location:
                raise FetchError("fetch_error", current_url, f"HTTP {status} without Location")
            redirects += 1
            if redirects > MAX_REDIRECTS:
                raise FetchError("too_many_redirects", current_url)
            next_url = urljoin(current_url, location)
            try:
                validate_url(next_url, allow_private=allow_private)
            except ValueError as e:
                raise FetchError("invalid_url", next_url, str(e))
            current_url = next_url
            continue

        if status >= 400:
            raise FetchError("http_error", current_url, f"HTTP {status}")

        text, too_large = read_limited_text(resp, max_bytes)
        if too_large:
            raise FetchError("too_large", current_url)
        return text, resp.url or current_url
