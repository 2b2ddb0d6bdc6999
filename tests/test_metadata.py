"""Tests for app.services.metadata: image decoding and icon enrichment."""

from io import BytesIO

import httpx
import pytest
from PIL import Image

from app.models.icon import Icon
from app.models.request import FetchOptions
from app.services.fetcher import create_http_client
from app.services.metadata import (
    ImageDecodeError,
    add_metadata_to_icons,
    decode_image,
)


def _image_bytes(size=(32, 16), fmt="PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGBA" if fmt != "JPEG" else "RGB", size, (255, 0, 0)).save(buffer, format=fmt)
    return buffer.getvalue()


def _icon(url: str) -> Icon:
    return Icon(url=url, type="icon", sizes="", source="html")


# ---------------------------------------------------------------------------
# decode_image
# ---------------------------------------------------------------------------

class TestDecodeRaster:
    def test_png(self):
        data = _image_bytes((32, 16))
        meta = decode_image(data)
        assert (meta.width, meta.height, meta.format) == (32, 16, "png")
        assert meta.size == len(data)
        assert meta.buffer == data

    def test_jpeg(self):
        meta = decode_image(_image_bytes((10, 20), "JPEG"))
        assert (meta.width, meta.height, meta.format) == (10, 20, "jpeg")

    def test_ico(self):
        meta = decode_image(_image_bytes((48, 48), "ICO"))
        assert meta.format == "ico"
        assert (meta.width, meta.height) == (48, 48)

    def test_gif(self):
        meta = decode_image(_image_bytes((5, 7), "GIF"))
        assert (meta.width, meta.height, meta.format) == (5, 7, "gif")


class TestDecodeSvg:
    def test_width_and_height_attributes(self):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="24px" height="12"></svg>'
        meta = decode_image(svg)
        assert (meta.width, meta.height, meta.format) == (24, 12, "svg")

    def test_viewbox_fallback(self):
        svg = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 32"></svg>'
        meta = decode_image(svg)
        assert (meta.width, meta.height) == (64, 32)

    def test_percentage_size_uses_viewbox(self):
        svg = (
            b'<svg xmlns="http://www.w3.org/2000/svg" width="100%" height="100%" '
            b'viewBox="0,0,16,16"></svg>'
        )
        meta = decode_image(svg)
        assert (meta.width, meta.height) == (16, 16)

    def test_svg_without_size_fails(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b'<svg xmlns="http://www.w3.org/2000/svg"></svg>')

    def test_malformed_svg_fails(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"<svg width='1' height='1'><unclosed></svg>")


class TestDecodeFailures:
    def test_garbage_bytes(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"this is definitely not an image")

    def test_empty_body(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"")

    def test_html_error_page(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"<html><body>Not found</body></html>")

    @pytest.mark.parametrize("view_box", ["0 0 1e999 1e999", "0 0 nan 16", "0 0 16 inf"])
    def test_non_finite_svg_view_box(self, view_box):
        svg = f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{view_box}"/>'.encode()
        with pytest.raises(ImageDecodeError, match="Non-finite SVG size"):
            decode_image(svg)


# ---------------------------------------------------------------------------
# add_metadata_to_icons
# ---------------------------------------------------------------------------

class TestAddMetadataToIcons:
    @pytest.mark.asyncio
    async def test_corrupt_icon_does_not_affect_siblings(self):
        good = _image_bytes((32, 32))

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/bad.png":
                return httpx.Response(200, content=b"corrupt")
            if request.url.path == "/missing.png":
                return httpx.Response(404)
            return httpx.Response(200, content=good)

        icons = [
            _icon("https://example.com/good.png"),
            _icon("https://example.com/bad.png"),
            _icon("https://example.com/missing.png"),
            _icon("https://example.com/also-good.png"),
        ]
        async with create_http_client(transport=httpx.MockTransport(handler)) as client:
            enriched, errors = await add_metadata_to_icons(client, icons, FetchOptions())

        assert [icon.url for icon in enriched] == [icon.url for icon in icons]
        assert enriched[0].metadata is not None
        assert (enriched[0].metadata.width, enriched[0].metadata.format) == (32, "png")
        assert enriched[0].metadata.size == len(good)
        assert enriched[1].metadata is None
        assert enriched[2].metadata is None
        assert enriched[3].metadata is not None

        assert [(e.step, e.url) for e in errors] == [
            ("icon_metadata", "https://example.com/bad.png"),
            ("icon_metadata", "https://example.com/missing.png"),
        ]

    @pytest.mark.asyncio
    async def test_overflowing_svg_does_not_affect_siblings(self):
        good = _image_bytes((16, 16))
        huge_svg = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 1e999 1e999"/>'

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/huge.svg":
                return httpx.Response(200, content=huge_svg)
            return httpx.Response(200, content=good)

        icons = [
            _icon("https://example.com/good.png"),
            _icon("https://example.com/huge.svg"),
        ]
        async with create_http_client(transport=httpx.MockTransport(handler)) as client:
            enriched, errors = await add_metadata_to_icons(client, icons, FetchOptions())

        assert enriched[0].metadata is not None
        assert enriched[0].metadata.width == 16
        assert enriched[1].metadata is None
        assert [(e.step, e.url) for e in errors] == [
            ("icon_metadata", "https://example.com/huge.svg"),
        ]

    @pytest.mark.asyncio
    async def test_original_icons_are_not_mutated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_image_bytes())

        icons = [_icon("https://example.com/i.png")]
        async with create_http_client(transport=httpx.MockTransport(handler)) as client:
            enriched, _ = await add_metadata_to_icons(client, icons, FetchOptions())

        assert icons[0].metadata is None
        assert enriched[0].metadata is not None

    @pytest.mark.asyncio
    async def test_user_agent_override_is_sent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["User-Agent"])
            return httpx.Response(200, content=_image_bytes())

        options = FetchOptions(user_agent="IconBot/1.0")
        async with create_http_client(transport=httpx.MockTransport(handler)) as client:
            await add_metadata_to_icons(client, [_icon("https://example.com/i.png")], options)

        assert seen == ["IconBot/1.0"]

    @pytest.mark.asyncio
    async def test_metadata_buffer_is_not_serialised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_image_bytes())

        async with create_http_client(transport=httpx.MockTransport(handler)) as client:
            enriched, _ = await add_metadata_to_icons(
                client, [_icon("https://example.com/i.png")], FetchOptions()
            )

        dumped = enriched[0].model_dump()
        assert "buffer" not in dumped["metadata"]
        assert dumped["metadata"]["width"] == 32
