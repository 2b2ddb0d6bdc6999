import asyncio
from typing import Optional, Tuple

import httpx

from app.models.request import DEFAULT_TIMEOUT_MS

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_REDIRECTS = 5

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Browser-like headers; some sites serve a stripped page (or a 403) to
# clients that do not look like a desktop browser.
DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}


class FetchError(RuntimeError):
    """A single outbound request failed."""


class FetchTimeout(FetchError):
    """The request did not complete within the configured timeout."""


def build_headers(user_agent: Optional[str] = None) -> dict:
    """Return the outbound header set, optionally with a custom User-Agent."""
    headers = dict(DEFAULT_HEADERS)
    if user_agent:
        headers["User-Agent"] = user_agent
    return headers


def create_http_client(
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an :class:`httpx.AsyncClient` configured for page resolution.

    Redirects are followed up to ``MAX_REDIRECTS`` hops.  *transport* lets
    callers substitute the network layer (e.g. ``httpx.MockTransport``).
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        timeout=httpx.Timeout(timeout_ms / 1000),
        transport=transport,
    )


async def _request(
    client: httpx.AsyncClient,
    url: str,
    timeout_ms: int,
    user_agent: Optional[str],
) -> Tuple[str, bytes, httpx.Response]:
    try:
        async with client.stream(
            "GET",
            url,
            headers=build_headers(user_agent),
            timeout=timeout_ms / 1000,
            follow_redirects=True,
        ) as response:
            if response.status_code >= 400:
                raise FetchError(
                    f"HTTP {response.status_code}: {response.reason_phrase} for {url}"
                )

            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > MAX_CONTENT_SIZE:
                raise FetchError(f"Response body exceeds the maximum allowed size for {url}")

            chunks = []
            total = 0
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > MAX_CONTENT_SIZE:
                    raise FetchError(f"Response body exceeds the maximum allowed size for {url}")
                chunks.append(chunk)

            return str(response.url), b"".join(chunks), response
    except httpx.TimeoutException as exc:
        raise FetchTimeout(f"Request timeout after {timeout_ms}ms for {url}") from exc
    except httpx.TooManyRedirects as exc:
        raise FetchError(f"Too many redirects for {url}") from exc
    except httpx.ConnectError as exc:
        raise FetchError(f"Failed to connect to {url}: {exc}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Failed to fetch {url}: {exc}") from exc


async def _get(
    client: httpx.AsyncClient,
    url: str,
    timeout_ms: int,
    user_agent: Optional[str],
) -> Tuple[str, bytes, httpx.Response]:
    """GET *url* and return ``(final_url, body, response)``.

    Any 2xx or 3xx final status is accepted.  httpx applies *timeout_ms* to
    each network operation; the whole request, redirects and body included,
    is bounded by it as well.

    Raises:
        FetchTimeout: if the request exceeds *timeout_ms*.
        FetchError: on HTTP error status, redirect loops, network errors, or
            a body larger than ``MAX_CONTENT_SIZE``.
    """
    try:
        return await asyncio.wait_for(
            _request(client, url, timeout_ms, user_agent),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError as exc:
        raise FetchTimeout(f"Request timeout after {timeout_ms}ms for {url}") from exc


async def fetch_html(
    client: httpx.AsyncClient,
    url: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    user_agent: Optional[str] = None,
) -> Tuple[str, str]:
    """Fetch *url* and return ``(final_url, html)``.

    *final_url* is the address after redirects; relative references in the
    page must be resolved against it rather than against *url*.
    """
    final_url, body, response = await _get(client, url, timeout_ms, user_agent)
    encoding = response.encoding or "utf-8"
    try:
        html = body.decode(encoding, errors="replace")
    except LookupError:
        html = body.decode("utf-8", errors="replace")
    return final_url, html


async def fetch_resource(
    client: httpx.AsyncClient,
    url: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    user_agent: Optional[str] = None,
) -> bytes:
    """Fetch *url* and return the raw response body."""
    _final_url, body, _response = await _get(client, url, timeout_ms, user_agent)
    return body
