"""Tests for document and stylesheet rewriting."""

import pytest
from bs4 import BeautifulSoup
from axis_archive.extractor import find_document_assets
from axis_archive.models import AssetKind, AssetReference, FetchResult, InlineCode
from axis_archive.rewriter import (
    append_inline_assets,
    extract_inline,
    rewrite_css_urls,
    rewrite_references,
    serialize_document,
)

BASE_URL = "https://example.com/"


def _by_url(results):
    return {result.reference.origin_url: result for result in results}


def _ok(url, kind, name, payload=b"x"):
    return FetchResult(AssetReference(url, kind), name, payload, True)


def _failed(url, kind, name):
    return FetchResult(AssetReference(url, kind), name, None, False)


class TestExtractInline:
    """Test inline block extraction."""

    def test_collects_in_document_order(self):
        soup = BeautifulSoup(
            "<html><head><style>a{}</style><script>one()</script></head>"
            "<body><style>b{}</style><script src='s.js'></script><script>two()</script></body></html>",
            "lxml",
        )

        inline = extract_inline(soup)

        assert inline.css == "a{}\n\nb{}\n\n"
        assert inline.js == "one()\n\ntwo()\n\n"
        assert inline.css_blocks == 2
        assert inline.js_blocks == 2

    def test_removes_blocks_keeps_external_scripts(self):
        soup = BeautifulSoup(
            "<html><head><style>a{}</style></head><body><script>x()</script>"
            "<script src='s.js'></script></body></html>",
            "lxml",
        )

        extract_inline(soup)

        assert soup.find("style") is None
        scripts = soup.find_all("script")
        assert len(scripts) == 1
        assert scripts[0]["src"] == "s.js"

    def test_no_inline_blocks(self):
        soup = BeautifulSoup("<html><body><p>hi</p></body></html>", "lxml")
        inline = extract_inline(soup)
        assert inline == InlineCode()


class TestRewriteReferences:
    """Test attribute rewriting."""

    def setup_method(self):
        self.soup = BeautifulSoup(
            "<html><head><link rel='stylesheet' href='/css/site.css'>"
            "<link rel='icon' href='/fav.png'></head>"
            "<body><img src='img/a.png'><img src='img/missing.png'>"
            "<script src='app.js'></script></body></html>",
            "lxml",
        )
        self.bindings = find_document_assets(self.soup, BASE_URL)

    def test_success_points_at_local_path(self):
        """Test fetched assets point at <folder>/<name>."""
        results = _by_url([
            _ok("https://example.com/css/site.css", AssetKind.STYLESHEET, "site.css"),
            _ok("https://example.com/img/a.png", AssetKind.IMAGE, "a.png"),
            _ok("https://example.com/app.js", AssetKind.SCRIPT, "app.js"),
            _ok("https://example.com/fav.png", AssetKind.ICON, "fav.png"),
        ])

        rewritten = rewrite_references(self.bindings, results)

        assert rewritten == 4
        assert self.soup.find("link", rel="stylesheet")["href"] == "css/site.css"
        assert self.soup.find_all("img")[0]["src"] == "images/a.png"
        assert self.soup.find("script")["src"] == "js/app.js"
        assert self.soup.find("link", rel="icon")["href"] == "fav.png"

    def test_failure_points_at_absolute_url(self):
        """Test failed or unfetched assets keep their absolute original URL."""
        results = _by_url([
            _failed("https://example.com/img/missing.png", AssetKind.IMAGE, "missing.png"),
        ])

        rewrite_references(self.bindings, results)

        assert self.soup.find_all("img")[1]["src"] == "https://example.com/img/missing.png"
        assert self.soup.find("script")["src"] == "https://example.com/app.js"

    def test_binding_uses_first_kind_folder(self):
        """Test an element rewrites to the folder of the result that fetched its URL."""
        results = _by_url([
            _ok("https://example.com/img/a.png", AssetKind.STYLESHEET, "a.png"),
        ])

        rewrite_references(self.bindings, results)

        assert self.soup.find_all("img")[0]["src"] == "css/a.png"


class TestAppendInlineAssets:
    """Test the combined inline files are linked."""

    def test_appends_link_and_script(self):
        soup = BeautifulSoup("<html><head><title>t</title></head><body><p>x</p></body></html>", "lxml")

        append_inline_assets(soup, InlineCode(css="a{}\n\n", js="x()\n\n", css_blocks=1, js_blocks=1))

        assert soup.head.find_all("link")[-1]["href"] == "css/inline-styles.css"
        assert "stylesheet" in soup.head.find_all("link")[-1]["rel"]
        assert soup.body.find_all("script")[-1]["src"] == "js/inline-scripts.js"

    def test_whitespace_only_blocks_add_nothing(self):
        soup = BeautifulSoup("<html><head></head><body></body></html>", "lxml")

        append_inline_assets(soup, InlineCode(css="  \n\n", js="\n\n", css_blocks=1, js_blocks=1))

        assert soup.find("link") is None
        assert soup.find("script") is None


class TestRewriteCssUrls:
    """Test url() rewriting inside archived stylesheets."""

    def test_fetched_tokens_point_at_archive_folders(self):
        results = _by_url([
            _ok("https://example.com/fonts/f.woff2", AssetKind.FONT, "f.woff2"),
            _ok("https://example.com/css/bg.png", AssetKind.IMAGE, "bg.png"),
        ])
        css = "@font-face{src:url('../fonts/f.woff2')} .a{background:url(bg.png)}"

        rewritten = rewrite_css_urls(css, "https://example.com/css/site.css", results)

        assert rewritten == "@font-face{src:url('../fonts/f.woff2')} .a{background:url(../images/bg.png)}"

    def test_quote_style_preserved(self):
        results = _by_url([_ok("https://example.com/css/it's.png", AssetKind.IMAGE, "it's.png")])
        css = '.a{background:url( "it\'s.png" )}'

        rewritten = rewrite_css_urls(css, "https://example.com/css/site.css", results)

        assert rewritten == '.a{background:url("../images/it\'s.png")}'

    def test_other_tokens_untouched(self):
        results = _by_url([
            _failed("https://example.com/css/bg.png", AssetKind.IMAGE, "bg.png"),
        ])
        css = ".a{background:url(bg.png)} .b{cursor:url(x.cur)} .c{background:url(data:image/png;base64,AA)}"

        assert rewrite_css_urls(css, "https://example.com/css/site.css", results) == css


class TestSerializeDocument:
    """Test final markup."""

    def test_doctype_prepended(self):
        soup = BeautifulSoup("<!DOCTYPE html><html lang='en'><body><p>x</p></body></html>", "lxml")

        html = serialize_document(soup)

        assert html.startswith("<!doctype html>\n<html")
        assert html.count("<!DOCTYPE") == 0
        assert "<p>x</p>" in html
