"""Candidate extraction from a page's HTML.

Every function here is pure: it reads a parsed document (and, for URLs, the
page's final address) and returns new candidate records.  Failures are left
to propagate; the resolver wraps each call and records what went wrong.
"""

from typing import List, Optional

from bs4 import BeautifulSoup

from app.models.candidate import DescriptionCandidate, TitleCandidate
from app.models.icon import Icon
from app.services.normalizer import try_resolve_url

# Substring tokens matched against the lowercased ``rel`` value.  Because the
# match is by substring, "icon" alone already covers most of the others.
ICON_REL_TOKENS = (
    "icon",
    "shortcut icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
    "mask-icon",
)

# (css selector, candidate source, property name), in priority order
_TITLE_META = (
    ('meta[property="og:title"]', "opengraph", "og:title"),
    ('meta[name="twitter:title"]', "twitter", "twitter:title"),
)

_DESCRIPTION_META = (
    ('meta[name="description"]', "html", "description"),
    ('meta[property="og:description"]', "opengraph", "og:description"),
    ('meta[name="twitter:description"]', "twitter", "twitter:description"),
)


def parse_html(html: str) -> BeautifulSoup:
    """Parse *html* with lxml, keeping multi-valued attributes such as ``rel`` verbatim."""
    return BeautifulSoup(html, "lxml", multi_valued_attributes=None)


def _meta_content(soup: BeautifulSoup, selector: str) -> str:
    meta = soup.select_one(selector)
    if meta is None:
        return ""
    content = meta.get("content")
    return str(content).strip() if content else ""


def extract_title(soup: BeautifulSoup) -> str:
    """Return the text of the first ``<title>`` element, or an empty string."""
    title_tag = soup.find("title")
    if title_tag is None:
        return ""
    return title_tag.get_text().strip()


def extract_titles(soup: BeautifulSoup) -> List[TitleCandidate]:
    titles: List[TitleCandidate] = []

    html_title = extract_title(soup)
    if html_title:
        titles.append(TitleCandidate(value=html_title, source="html", property="title"))

    for selector, source, prop in _TITLE_META:
        value = _meta_content(soup, selector)
        if value:
            titles.append(TitleCandidate(value=value, source=source, property=prop))

    return titles


def extract_descriptions(soup: BeautifulSoup) -> List[DescriptionCandidate]:
    descriptions: List[DescriptionCandidate] = []
    for selector, source, prop in _DESCRIPTION_META:
        value = _meta_content(soup, selector)
        if value:
            descriptions.append(DescriptionCandidate(value=value, source=source, property=prop))
    return descriptions


def _is_icon_rel(rel: str) -> bool:
    rel_lower = rel.lower()
    return any(token in rel_lower for token in ICON_REL_TOKENS)


def extract_icon_links(soup: BeautifulSoup, base_url: str) -> List[Icon]:
    """Return icon candidates declared by ``<link>`` elements, in document order.

    When the page declares no icon links at all, the ``og:image`` meta tag is
    used as a single last-resort candidate.
    """
    icons: List[Icon] = []

    for link in soup.find_all("link"):
        rel = link.get("rel")
        href = link.get("href")
        if not rel or not href or not _is_icon_rel(str(rel)):
            continue
        url = try_resolve_url(str(href), base_url)
        if url is None:
            continue
        icons.append(
            Icon(
                url=url,
                type=str(rel),
                sizes=str(link.get("sizes") or ""),
                source="html",
            )
        )

    if not icons:
        og_image = _meta_content(soup, 'meta[property="og:image"]')
        og_url = try_resolve_url(og_image, base_url) if og_image else None
        if og_url:
            icons.append(Icon(url=og_url, type="og:image", sizes="", source="html"))

    return icons


def extract_manifest_url(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """Return the absolute URL of the first ``<link rel="manifest">``, if any."""
    link = soup.select_one('link[rel="manifest"]')
    if link is None:
        return None
    href = link.get("href")
    if not href or not str(href).strip():
        return None
    return try_resolve_url(str(href), base_url)
