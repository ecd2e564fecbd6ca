"""Rewriting of the document (and its CSS) to point at archived copies."""

from typing import Iterable, Mapping

from bs4 import BeautifulSoup

from axis_archive.extractor import CSS_URL_PATTERN, css_url_token
from axis_archive.fetcher import INLINE_SCRIPTS_NAME, INLINE_STYLES_NAME
from axis_archive.models import AssetKind, ElementBinding, FetchResult, InlineCode
from axis_archive.urls import is_fetchable, resolve_url

DOCTYPE = "<!doctype html>\n"
INLINE_STYLES_PATH = f"css/{INLINE_STYLES_NAME}"
INLINE_SCRIPTS_PATH = f"js/{INLINE_SCRIPTS_NAME}"


def _block_text(element) -> str:
    return "".join(str(child) for child in element.contents)


def extract_inline(soup: BeautifulSoup) -> InlineCode:
    """Remove inline ``<style>`` and ``<script>`` blocks and collect their text.

    Each block's text is followed by a blank line, in document order. Scripts
    with a ``src`` attribute are left in place.
    """
    inline = InlineCode()

    style_elements = soup.find_all("style")
    for element in style_elements:
        inline.css += _block_text(element) + "\n\n"
        element.decompose()
    inline.css_blocks = len(style_elements)

    script_elements = [script for script in soup.find_all("script") if not script.has_attr("src")]
    for element in script_elements:
        inline.js += _block_text(element) + "\n\n"
        element.decompose()
    inline.js_blocks = len(script_elements)

    return inline


def rewrite_references(bindings: Iterable[ElementBinding], results: Mapping[str, FetchResult]) -> int:
    """Point each bound element at its archived copy.

    Elements whose fetch failed get the absolute original URL so the archive
    never holds a dangling local path. Returns the number of rewritten
    elements.
    """
    rewritten = 0
    for binding in bindings:
        result = results.get(binding.reference.origin_url)
        if result is not None and result.ok:
            binding.element[binding.attribute] = result.local_path
            rewritten += 1
        else:
            binding.element[binding.attribute] = binding.reference.origin_url
    return rewritten


def append_inline_assets(soup: BeautifulSoup, inline: InlineCode) -> None:
    """Link the combined inline CSS/JS files from the document."""
    if inline.css.strip():
        head = soup.head or _ensure_section(soup, "head")
        head.append(soup.new_tag("link", rel="stylesheet", href=INLINE_STYLES_PATH))
    if inline.js.strip():
        body = soup.body or _ensure_section(soup, "body")
        body.append(soup.new_tag("script", src=INLINE_SCRIPTS_PATH))


def _ensure_section(soup: BeautifulSoup, name: str):
    section = soup.new_tag(name)
    html = soup.html
    if html is None:
        html = soup.new_tag("html")
        for child in list(soup.contents):
            html.append(child.extract())
        soup.append(html)
    if name == "head":
        html.insert(0, section)
    else:
        html.append(section)
    return section


def rewrite_css_urls(css: str, base_url: str, results: Mapping[str, FetchResult]) -> str:
    """Rewrite ``url()`` tokens of fetched fonts and images.

    The archived stylesheets live in ``css/`` so tokens become
    ``../fonts/<name>`` or ``../images/<name>``. Tokens without a successful
    result are left as they are.
    """

    def replace_css_url(match):
        quote, raw_url = css_url_token(match)
        if not is_fetchable(raw_url):
            return match.group(0)
        resolved = resolve_url(base_url, raw_url)
        result = results.get(resolved)
        if result is None or not result.ok:
            return match.group(0)
        if result.reference.kind not in (AssetKind.FONT, AssetKind.IMAGE):
            return match.group(0)
        return f"url({quote}../{result.local_path}{quote})"

    return CSS_URL_PATTERN.sub(replace_css_url, css)


def serialize_document(soup: BeautifulSoup) -> str:
    """Final markup: doctype followed by the outer markup of ``<html>``."""
    root = soup.html if soup.html is not None else soup
    return DOCTYPE + str(root)
