"""Icon enrichment: download each icon and decode its dimensions and format."""

import asyncio
import logging
import math
import re
from io import BytesIO
from typing import List, Optional, Tuple

import httpx
from lxml import etree
from PIL import Image, UnidentifiedImageError

from app.models.icon import Icon, ImageMetadata
from app.models.request import FetchOptions
from app.models.response import OperationError
from app.services.fetcher import fetch_resource

logger = logging.getLogger(__name__)

ICON_METADATA_STEP = "icon_metadata"

# Leading number of an SVG length such as "32", "32px" or "24.5pt"
_SVG_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$", re.IGNORECASE)

_SVG_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


class ImageDecodeError(ValueError):
    """Image bytes are corrupt, of an unsupported format, or have no usable size."""


def _looks_like_svg(buffer: bytes) -> bool:
    head = buffer[:1024].lstrip().lower()
    return head.startswith(b"<") and b"<svg" in buffer[:4096].lower()


def _svg_length(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = _SVG_LENGTH_RE.match(value)
    return float(match.group(1)) if match else None


def _svg_dimensions(buffer: bytes) -> Tuple[int, int]:
    try:
        root = etree.fromstring(buffer, parser=_SVG_PARSER)
    except etree.XMLSyntaxError as exc:
        raise ImageDecodeError(f"Invalid SVG document: {exc}") from exc

    if root is None or not str(root.tag).endswith("svg"):
        raise ImageDecodeError("Document root is not an <svg> element")

    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))

    if width is None or height is None:
        view_box = (root.get("viewBox") or "").replace(",", " ").split()
        if len(view_box) == 4:
            try:
                width = width if width is not None else float(view_box[2])
                height = height if height is not None else float(view_box[3])
            except ValueError as exc:
                raise ImageDecodeError(f"Invalid SVG viewBox: {exc}") from exc

    if width is None or height is None:
        raise ImageDecodeError("SVG declares neither a usable size nor a viewBox")

    if not (math.isfinite(width) and math.isfinite(height)):
        raise ImageDecodeError(f"Non-finite SVG size {width}x{height}")

    return round(width), round(height)


def decode_image(buffer: bytes) -> ImageMetadata:
    """Return the dimensions, format and size of an image held in *buffer*.

    Raster formats are read with Pillow; SVG documents are measured from their
    root element's ``width``/``height`` (or ``viewBox``).

    Raises:
        ImageDecodeError: when the bytes cannot be decoded or the reported
            dimensions are not positive.
    """
    if not buffer:
        raise ImageDecodeError("Empty image body")

    if _looks_like_svg(buffer):
        width, height = _svg_dimensions(buffer)
        image_format = "svg"
    else:
        try:
            with Image.open(BytesIO(buffer)) as img:
                width, height = img.size
                image_format = (img.format or "").lower()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise ImageDecodeError(f"Unsupported or corrupt image: {exc}") from exc

    if width <= 0 or height <= 0 or not image_format:
        raise ImageDecodeError(f"Unusable image size {width}x{height}")

    return ImageMetadata(
        width=width,
        height=height,
        format=image_format,
        size=len(buffer),
        buffer=buffer,
    )


async def get_image_metadata(
    client: httpx.AsyncClient,
    image_url: str,
    options: FetchOptions,
) -> ImageMetadata:
    """Download *image_url* and decode it.

    Raises:
        FetchError: if the download fails.
        ImageDecodeError: if the bytes cannot be decoded.
    """
    buffer = await fetch_resource(client, image_url, options.timeout, options.user_agent)
    return decode_image(buffer)


async def _enrich_icon(
    client: httpx.AsyncClient,
    icon: Icon,
    options: FetchOptions,
) -> Tuple[Icon, Optional[OperationError]]:
    try:
        metadata = await get_image_metadata(client, icon.url, options)
    except Exception as exc:
        # Isolated per icon; a failure here must not reach asyncio.gather
        logger.debug("No metadata for icon %s: %s", icon.url, exc)
        return icon, OperationError(step=ICON_METADATA_STEP, message=str(exc), url=icon.url)
    return icon.model_copy(update={"metadata": metadata}), None


async def add_metadata_to_icons(
    client: httpx.AsyncClient,
    icons: List[Icon],
    options: FetchOptions,
) -> Tuple[List[Icon], List[OperationError]]:
    """Attach :class:`ImageMetadata` to every icon whose image can be decoded.

    All downloads run concurrently.  The returned list has the same length and
    order as *icons*; an icon whose fetch or decode failed is returned as is,
    and the failure is reported in the second element of the tuple.
    """
    results = await asyncio.gather(*(_enrich_icon(client, icon, options) for icon in icons))

    enriched: List[Icon] = []
    errors: List[OperationError] = []
    for icon, error in results:
        enriched.append(icon)
        if error is not None:
            errors.append(error)
    return enriched, errors
