"""URL normalisation: validation, canonical form, default favicon location."""

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}
_DEFAULT_PORTS = {"http": 80, "https": 443}


class InvalidURL(ValueError):
    """Raised when a URL cannot be parsed or does not use http/https."""


def _host_with_port(scheme: str, hostname: str, port: int | None) -> str:
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        return f"{host}:{port}"
    return host


def _remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments of an absolute path (RFC 3986 §5.2.4)."""
    segments = path.split("/")
    output: list[str] = []
    for segment in segments:
        if segment == "..":
            if len(output) > 1:
                output.pop()
        elif segment != ".":
            output.append(segment)
    if segments[-1] in (".", ".."):
        output.append("")
    return "/".join(output)


def normalize_url(url: str) -> str:
    """Validate *url* and return its canonical absolute form.

    The scheme and host are lowercased, a default port is dropped, an empty
    path becomes ``/`` and ``.``/``..`` segments are resolved.  User info,
    query and fragment are kept as given.

    Raises:
        InvalidURL: if *url* is unparsable, relative, or not http/https.
    """
    if not isinstance(url, str):
        raise InvalidURL(f"Invalid URL: {url!r}")

    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL: {url}") from exc

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES or not parts.hostname:
        raise InvalidURL(f"Invalid URL: {url}")

    netloc = _host_with_port(scheme, parts.hostname, port)
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _remove_dot_segments(parts.path or "/")

    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def resolve_url(href: str, base_url: str) -> str:
    """Return *href* made absolute against *base_url*.

    Raises:
        ValueError: if *href* is malformed (e.g. an unclosed IPv6 bracket).
    """
    return urljoin(base_url, href.strip())


def try_resolve_url(href: str, base_url: str) -> Optional[str]:
    """Like :func:`resolve_url`, but return ``None`` for a malformed *href*."""
    try:
        return resolve_url(href, base_url)
    except ValueError:
        logger.debug("Skipping malformed URL %r relative to %s", href, base_url)
        return None


def default_favicon_url(page_url: str) -> str:
    """Return the conventional ``/favicon.ico`` location for *page_url*'s origin."""
    parts = urlsplit(page_url)
    host = _host_with_port(parts.scheme, parts.hostname or "", parts.port)
    return f"{parts.scheme}://{host}/favicon.ico"
