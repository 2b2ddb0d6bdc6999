"""Web App Manifest retrieval and candidate extraction."""

import json
import logging
from typing import List, Optional

import httpx

from app.models.candidate import DescriptionCandidate, TitleCandidate
from app.models.icon import Icon
from app.models.manifest import ManifestDocument
from app.models.request import DEFAULT_TIMEOUT_MS
from app.services.fetcher import FetchError, fetch_resource
from app.services.normalizer import try_resolve_url

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_ICON_TYPE = "manifest-icon"


class ManifestError(RuntimeError):
    """The manifest could not be fetched or is not a JSON object."""


async def fetch_manifest(
    client: httpx.AsyncClient,
    manifest_url: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    user_agent: Optional[str] = None,
) -> ManifestDocument:
    """Download *manifest_url* and parse it as a JSON object.

    Only the top-level shape is checked; individual fields are vetted lazily
    by :meth:`ManifestDocument.from_json`.

    Raises:
        ManifestError: on fetch failure, invalid UTF-8, invalid JSON, or a
            JSON value that is not an object.
    """
    try:
        body = await fetch_resource(client, manifest_url, timeout_ms, user_agent)
    except FetchError as exc:
        raise ManifestError(str(exc)) from exc

    try:
        data = json.loads(body.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ManifestError(f"Invalid manifest JSON at {manifest_url}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest at {manifest_url} is not a JSON object")

    logger.debug("Fetched manifest %s", manifest_url)
    return ManifestDocument.from_json(data)


def extract_manifest_icons(manifest: ManifestDocument, base_url: str) -> List[Icon]:
    """Return the manifest's icons, in array order, resolved against *base_url*.

    *base_url* is the page's final URL, not the manifest's own location.
    ``purpose`` is ignored.
    """
    if not manifest.icons:
        return []

    icons: List[Icon] = []
    for entry in manifest.icons:
        if not entry.src.strip():
            continue
        url = try_resolve_url(entry.src, base_url)
        if url is None:
            continue
        icons.append(
            Icon(
                url=url,
                type=entry.type or DEFAULT_MANIFEST_ICON_TYPE,
                sizes=entry.sizes or "",
                source="manifest",
            )
        )
    return icons


def extract_manifest_titles(manifest: ManifestDocument) -> List[TitleCandidate]:
    titles: List[TitleCandidate] = []
    for prop in ("name", "short_name"):
        value = (getattr(manifest, prop) or "").strip()
        if value:
            titles.append(TitleCandidate(value=value, source="manifest", property=prop))
    return titles


def extract_manifest_descriptions(manifest: ManifestDocument) -> List[DescriptionCandidate]:
    value = (manifest.description or "").strip()
    if not value:
        return []
    return [DescriptionCandidate(value=value, source="manifest", property="description")]
