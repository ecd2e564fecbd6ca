"""Tests for asset discovery."""

import pytest
from bs4 import BeautifulSoup
from axis_archive.extractor import (
    dedupe_references,
    discover,
    discover_css_assets,
    extract_css_urls,
    find_document_assets,
)
from axis_archive.models import AssetKind, AssetReference, DiscoverySource

BASE_URL = "https://example.com/blog/post.html"

PAGE = """
<html><head>
<link rel="stylesheet" href="/css/site.css">
<link rel="shortcut icon" href="/static/fav.png">
<link rel="icon" href="/static/second.png">
<link rel="preload" as="font" href="/fonts/inter.woff2" crossorigin>
<link rel="preload" as="image" href="/hero.jpg">
<link rel="stylesheet" href="https://cdn.example.net/lib.css">
<script src="js/app.js"></script>
</head><body>
<img src="img/a.png"><img src="data:image/png;base64,AAAA"><img src="">
<script src="//cdn.example.net/lib.js"></script>
</body></html>
"""


class TestFindDocumentAssets:
    """Test element discovery in the document."""

    def setup_method(self):
        self.soup = BeautifulSoup(PAGE, "lxml")

    def test_discovery_order_and_kinds(self):
        """Test stylesheets, scripts, images, icon and preload fonts in order."""
        bindings = find_document_assets(self.soup, BASE_URL)
        found = [(b.reference.kind, b.reference.origin_url) for b in bindings]

        assert found == [
            (AssetKind.STYLESHEET, "https://example.com/css/site.css"),
            (AssetKind.STYLESHEET, "https://cdn.example.net/lib.css"),
            (AssetKind.SCRIPT, "https://example.com/blog/js/app.js"),
            (AssetKind.SCRIPT, "https://cdn.example.net/lib.js"),
            (AssetKind.IMAGE, "https://example.com/blog/img/a.png"),
            (AssetKind.ICON, "https://example.com/static/fav.png"),
            (AssetKind.FONT, "https://example.com/fonts/inter.woff2"),
        ]

    def test_preload_source(self):
        bindings = find_document_assets(self.soup, BASE_URL)
        font = [b for b in bindings if b.reference.kind == AssetKind.FONT][0]
        assert font.reference.discovered_via == DiscoverySource.PRELOAD
        assert font.attribute == "href"
        assert font.element.name == "link"

    def test_bindings_keep_elements(self):
        bindings = find_document_assets(self.soup, BASE_URL)
        image = [b for b in bindings if b.reference.kind == AssetKind.IMAGE][0]
        assert image.element["src"] == "img/a.png"
        assert image.attribute == "src"


class TestDiscover:
    """Test deduplicated discovery."""

    def test_fallback_icon_when_no_icon_link(self):
        soup = BeautifulSoup('<html><body><img src="/a.png"></body></html>', "lxml")
        references = discover(soup, BASE_URL)

        assert references[-1] == AssetReference("https://example.com/favicon.ico", AssetKind.ICON)

    def test_no_fallback_icon_with_icon_link(self):
        soup = BeautifulSoup(PAGE, "lxml")
        icons = [r for r in discover(soup, BASE_URL) if r.kind == AssetKind.ICON]
        assert [r.origin_url for r in icons] == ["https://example.com/static/fav.png"]

    def test_duplicates_collapse_first_kind_wins(self):
        soup = BeautifulSoup(
            '<html><head><link rel="stylesheet" href="/shared"></head>'
            '<body><script src="/shared"></script><img src="/shared"></body></html>',
            "lxml",
        )
        references = [r for r in discover(soup, BASE_URL) if r.kind != AssetKind.ICON]

        assert references == [AssetReference("https://example.com/shared", AssetKind.STYLESHEET)]

    def test_dedupe_references_keeps_order(self):
        a = AssetReference("https://x.com/a.png", AssetKind.IMAGE)
        b = AssetReference("https://x.com/b.woff", AssetKind.FONT)
        a_font = AssetReference("https://x.com/a.png", AssetKind.FONT, DiscoverySource.CSS_URL)

        assert dedupe_references([a, b, a_font]) == [a, b]


class TestCssUrls:
    """Test url() extraction from CSS."""

    def test_extract_quoted_and_unquoted(self):
        assert extract_css_urls("background:url('a.png') , url(b.woff2)") == ["a.png", "b.woff2"]

    def test_extract_double_quotes_and_spaces(self):
        css = '@font-face{src:url( "fonts/x.woff" ) format("woff")} .a{background:URL(bg.jpg)}'
        assert extract_css_urls(css) == ["fonts/x.woff", "bg.jpg"]

    def test_quoted_token_ends_at_its_own_quote(self):
        css = """.a{background:url("it's.png")} .b{background:url('say "hi".gif')}"""
        assert extract_css_urls(css) == ["it's.png", 'say "hi".gif']

    def test_extract_empty(self):
        assert extract_css_urls("") == []
        assert extract_css_urls(None) == []

    def test_css_assets_resolve_against_stylesheet(self):
        """Test url() tokens resolve against the stylesheet URL, not the page."""
        css = "@font-face{src:url(../fonts/f.woff2)} .hero{background:url('img/bg.webp?v=1')}"
        references = discover_css_assets(css, "https://cdn.example.net/theme/css/main.css")

        assert references == [
            AssetReference("https://cdn.example.net/theme/fonts/f.woff2", AssetKind.FONT, DiscoverySource.CSS_URL),
            AssetReference("https://cdn.example.net/theme/css/img/bg.webp?v=1", AssetKind.IMAGE, DiscoverySource.CSS_URL),
        ]

    @pytest.mark.parametrize("token", ["cursor.cur", "other.css", "data:font/woff2;base64,AAAA", "#svgfilter"])
    def test_css_assets_skip_other_tokens(self, token):
        assert discover_css_assets(f".a{{x:url({token})}}", "https://example.com/css/a.css") == []

    def test_css_assets_classification(self):
        css = "".join(f"url(f.{ext})" for ext in ("woff", "woff2", "ttf", "otf", "eot", "png", "jpg", "jpeg", "gif", "svg", "webp", "avif"))
        kinds = [r.kind for r in discover_css_assets(css, "https://example.com/")]

        assert kinds == [AssetKind.FONT] * 5 + [AssetKind.IMAGE] * 7
