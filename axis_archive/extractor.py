"""Discovery of the external resources a document depends on."""

import re
from typing import Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from axis_archive.models import AssetKind, AssetReference, DiscoverySource, ElementBinding
from axis_archive.urls import extension_of, is_fetchable, resolve_url

FALLBACK_ICON_PATH = "/favicon.ico"

FONT_EXTENSIONS = ("woff", "woff2", "ttf", "otf", "eot")
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "webp", "avif")

# url( 'x' ) / url("x") / url(x); a quoted token ends only at its own quote
CSS_URL_PATTERN = re.compile(
    r"""url\(\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^"'\s)][^)]*?))\s*\)""",
    re.IGNORECASE,
)


def _rel_tokens(element: Tag) -> List[str]:
    rel = element.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel]


def _is_icon_link(tag: Tag) -> bool:
    return tag.name == "link" and tag.has_attr("href") and "icon" in _rel_tokens(tag)


def _bind(element: Tag, attribute: str, base_url: str, kind: AssetKind,
          source: DiscoverySource = DiscoverySource.HTML) -> Optional[ElementBinding]:
    value = element.get(attribute)
    if not isinstance(value, str) or not is_fetchable(value):
        return None
    reference = AssetReference(resolve_url(base_url, value), kind, source)
    return ElementBinding(element, attribute, reference)


def find_document_assets(soup: BeautifulSoup, base_url: str) -> List[ElementBinding]:
    """Find every element pointing at an external resource, in discovery order.

    Stylesheets, scripts, images, the first icon link and font preload hints
    are scanned in that order; the order decides which kind wins when the same
    URL shows up more than once.
    """
    bindings: List[Optional[ElementBinding]] = []

    for link in soup.find_all("link", href=True):
        if "stylesheet" in _rel_tokens(link):
            bindings.append(_bind(link, "href", base_url, AssetKind.STYLESHEET))

    for script in soup.find_all("script", src=True):
        bindings.append(_bind(script, "src", base_url, AssetKind.SCRIPT))

    for img in soup.find_all("img", src=True):
        bindings.append(_bind(img, "src", base_url, AssetKind.IMAGE))

    icon_link = soup.find(_is_icon_link)
    if icon_link is not None:
        bindings.append(_bind(icon_link, "href", base_url, AssetKind.ICON))

    for link in soup.find_all("link", href=True):
        if "preload" in _rel_tokens(link) and (link.get("as") or "").lower() == "font":
            bindings.append(_bind(link, "href", base_url, AssetKind.FONT, DiscoverySource.PRELOAD))

    return [binding for binding in bindings if binding is not None]


def has_icon_link(soup: BeautifulSoup) -> bool:
    return soup.find(_is_icon_link) is not None


def dedupe_references(references: Iterable[AssetReference]) -> List[AssetReference]:
    """Keep the first reference for each ``origin_url``."""
    seen = set()
    unique = []
    for reference in references:
        if reference.origin_url in seen:
            continue
        seen.add(reference.origin_url)
        unique.append(reference)
    return unique


def discover(soup: BeautifulSoup, base_url: str) -> List[AssetReference]:
    """Ordered, deduplicated references found directly in the document."""
    references = [binding.reference for binding in find_document_assets(soup, base_url)]
    if not has_icon_link(soup):
        references.append(
            AssetReference(resolve_url(base_url, FALLBACK_ICON_PATH), AssetKind.ICON)
        )
    return dedupe_references(references)


def css_url_token(match: re.Match) -> Tuple[str, str]:
    """Quote character (possibly empty) and URL of a ``CSS_URL_PATTERN`` match."""
    if match.group("dq") is not None:
        return '"', match.group("dq").strip()
    if match.group("sq") is not None:
        return "'", match.group("sq").strip()
    return "", match.group("bare").strip()


def extract_css_urls(css: str) -> List[str]:
    """Extract the raw ``url(...)`` tokens of a stylesheet, in order."""
    urls = [css_url_token(match)[1] for match in CSS_URL_PATTERN.finditer(css or "")]
    return [url for url in urls if url]


def classify_css_asset(url: str) -> Optional[AssetKind]:
    """Fonts and images by extension; anything else is not collected."""
    ext = extension_of(url)
    if ext in FONT_EXTENSIONS:
        return AssetKind.FONT
    if ext in IMAGE_EXTENSIONS:
        return AssetKind.IMAGE
    return None


def discover_css_assets(css: str, base_url: str) -> List[AssetReference]:
    """Font and image references of a stylesheet.

    ``base_url`` must be the stylesheet's own URL (the page URL for inline
    CSS), as CSS resolves ``url()`` against the sheet that contains it.
    """
    references = []
    for raw_url in extract_css_urls(css):
        if not is_fetchable(raw_url):
            continue
        resolved = resolve_url(base_url, raw_url)
        kind = classify_css_asset(resolved)
        if kind is None:
            continue
        references.append(AssetReference(resolved, kind, DiscoverySource.CSS_URL))
    return dedupe_references(references)
