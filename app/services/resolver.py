"""Resolution pipeline: fetch one page and merge icons, titles and descriptions.

Stages, in order:

1. Normalise the URL (fatal on failure).
2. Fetch the HTML, following redirects (fatal on failure).
3. Run the HTML extractors.
4. Locate, fetch and read the Web App Manifest.
5. Merge candidates, HTML first, then manifest.
6. Fall back to ``/favicon.ico`` when no icon was found.
7. Optionally download every icon and attach its image metadata.

Everything after step 2 is recoverable: a failing step is recorded as an
:class:`~app.models.response.OperationError` and the pipeline moves on with
whatever data is available.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx

from app.models.candidate import DescriptionCandidate, TitleCandidate
from app.models.icon import Icon
from app.models.manifest import ManifestDocument
from app.models.request import FetchOptions
from app.models.response import FetchResult, OperationError
from app.services.extractor import (
    extract_descriptions,
    extract_icon_links,
    extract_manifest_url,
    extract_title,
    extract_titles,
    parse_html,
)
from app.services.fetcher import FetchError, create_http_client, fetch_html
from app.services.manifest import (
    extract_manifest_descriptions,
    extract_manifest_icons,
    extract_manifest_titles,
    fetch_manifest,
)
from app.services.metadata import add_metadata_to_icons
from app.services.normalizer import default_favicon_url, normalize_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResolveError(RuntimeError):
    """The page itself could not be fetched; no result can be produced."""


class StepRecorder:
    """Run recoverable pipeline steps and collect their failures."""

    def __init__(self) -> None:
        self.errors: List[OperationError] = []

    def record(self, step: str, exc: BaseException, url: Optional[str] = None) -> None:
        logger.warning("Step %s failed%s: %s", step, f" for {url}" if url else "", exc)
        self.errors.append(OperationError(step=step, message=str(exc), url=url))

    def run(self, step: str, func: Callable[..., T], *args: Any, default: T) -> T:
        try:
            return func(*args)
        except Exception as exc:
            self.record(step, exc)
            return default

    async def run_async(
        self,
        step: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        default: T,
        url: Optional[str] = None,
    ) -> T:
        try:
            return await func(*args)
        except Exception as exc:
            self.record(step, exc, url=url)
            return default


async def resolve(
    url: str,
    options: Optional[FetchOptions] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    """Resolve the icons, titles and descriptions of the page at *url*.

    Args:
        url: An absolute http(s) URL.
        options: Per-call settings; defaults to :class:`FetchOptions` ``()``.
        client: Optional shared HTTP client.  When omitted a client is created
            for this call and closed afterwards.

    Raises:
        InvalidURL: if *url* is not a valid http(s) URL.  Raised before any
            network access.
        ResolveError: if the page's HTML cannot be fetched.
    """
    options = options or FetchOptions()
    normalized_url = normalize_url(url)

    if client is not None:
        return await _resolve(url, normalized_url, options, client)

    async with create_http_client(options.timeout) as owned_client:
        return await _resolve(url, normalized_url, options, owned_client)


def resolve_sync(url: str, options: Optional[FetchOptions] = None) -> FetchResult:
    """Blocking wrapper around :func:`resolve` for callers without an event loop."""
    return asyncio.run(resolve(url, options))


async def _resolve(
    original_url: str,
    normalized_url: str,
    options: FetchOptions,
    client: httpx.AsyncClient,
) -> FetchResult:
    try:
        page_url, html = await fetch_html(
            client, normalized_url, options.timeout, options.user_agent
        )
    except FetchError as exc:
        logger.error("Failed to fetch page %s: %s", normalized_url, exc)
        raise ResolveError(f"Failed to fetch favicon for {original_url}: {exc}") from exc

    recorder = StepRecorder()
    soup = parse_html(html)

    title: str = recorder.run("parse_title", extract_title, soup, default="")
    html_titles: List[TitleCandidate] = recorder.run(
        "parse_titles", extract_titles, soup, default=[]
    )
    html_descriptions: List[DescriptionCandidate] = recorder.run(
        "parse_descriptions", extract_descriptions, soup, default=[]
    )
    html_icons: List[Icon] = recorder.run(
        "parse_icon_links", extract_icon_links, soup, page_url, default=[]
    )
    manifest_url: Optional[str] = recorder.run(
        "get_manifest_url", extract_manifest_url, soup, page_url, default=None
    )

    manifest_icons: List[Icon] = []
    manifest_titles: List[TitleCandidate] = []
    manifest_descriptions: List[DescriptionCandidate] = []
    if manifest_url:
        manifest: Optional[ManifestDocument] = await recorder.run_async(
            "fetch_manifest",
            fetch_manifest,
            client,
            manifest_url,
            options.timeout,
            options.user_agent,
            default=None,
            url=manifest_url,
        )
        if manifest is not None:
            manifest_icons = recorder.run(
                "parse_manifest_icons", extract_manifest_icons, manifest, page_url, default=[]
            )
            manifest_titles = recorder.run(
                "parse_manifest_titles", extract_manifest_titles, manifest, default=[]
            )
            manifest_descriptions = recorder.run(
                "parse_manifest_descriptions", extract_manifest_descriptions, manifest, default=[]
            )

    # Concatenation order is the priority order; duplicates are kept.
    icons = html_icons + manifest_icons
    titles = html_titles + manifest_titles
    descriptions = html_descriptions + manifest_descriptions

    if not icons:
        # Not fetched: the default location is a hint, not a verified resource.
        icons = [
            Icon(url=default_favicon_url(page_url), type="default", sizes="", source="default")
        ]

    if options.include_metadata and icons:
        try:
            icons, icon_errors = await add_metadata_to_icons(client, icons, options)
            recorder.errors.extend(icon_errors)
        except Exception as exc:
            recorder.record("add_metadata", exc)

    return FetchResult(
        url=page_url,
        title=title,
        titles=titles,
        descriptions=descriptions,
        icons=icons,
        errors=recorder.errors or None,
    )
