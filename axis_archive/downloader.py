"""Core pipeline: fetch a page, localize its assets and package the project."""

import time
from dataclasses import replace
from io import BytesIO
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from axis_archive.archive import ArchiveBuilder
from axis_archive.audit import audit
from axis_archive.config import Config
from axis_archive.context import ProgressCallback, RunContext
from axis_archive.errors import FetchUnavailable, NoHtmlFetched, PackagingFailure, RunCancelled
from axis_archive.extractor import (
    dedupe_references,
    discover,
    discover_css_assets,
    find_document_assets,
)
from axis_archive.fetcher import Fetcher, FetchCoordinator, RelayFetcher
from axis_archive.models import (
    ArchiveResult,
    AssetKind,
    AssetReference,
    AuditMeta,
    FetchResult,
    InlineCode,
)
from axis_archive.rewriter import (
    append_inline_assets,
    extract_inline,
    rewrite_css_urls,
    rewrite_references,
    serialize_document,
)
from axis_archive.urls import archive_name_for, domain_from_url, extension_of

TRUNCATION_MARKER = "\n\n... (truncated)"

IMAGE_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
}


def _of_kind(references: List[AssetReference], *kinds: AssetKind) -> List[AssetReference]:
    return [reference for reference in references if reference.kind in kinds]


class SiteDownloader:
    """Mirror one page into a zip project.

    Phases, each joined before the next starts: fetch HTML, parse, extract
    inline code, fetch stylesheets, fetch scripts, fetch images, fetch fonts
    and icon, rewrite, audit, package.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        fetcher: Optional[Fetcher] = None,
        context: Optional[RunContext] = None,
    ):
        """Initialize downloader with configuration."""
        self.config = config or Config()
        self.context = context or RunContext(
            log_max_entries=self.config.log_max_entries, echo=self.config.verbose
        )
        self.fetcher = fetcher or RelayFetcher(
            relay_url=self.config.relay_url,
            timeout=self.config.fetch_timeout,
            user_agent=self.config.user_agent,
        )
        self.builder = ArchiveBuilder()

    def run(self, url: str) -> ArchiveResult:
        """Archive ``url``.

        Raises NoHtmlFetched, PackagingFailure or RunCancelled; failures of
        individual assets only leave their references unresolved.
        """
        try:
            return self._run(url.strip())
        except RunCancelled:
            self.context.log("Run cancelled, no archive produced")
            raise
        except (NoHtmlFetched, PackagingFailure) as e:
            self.context.log(f"Fatal error: {e}")
            raise

    def _fetch_document(self, url: str) -> str:
        try:
            html = self.fetcher.fetch_text(url)
        except FetchUnavailable as e:
            self.context.log(f"fetchText failed: {url} — {e.reason}")
            raise NoHtmlFetched(url) from e
        except RunCancelled:
            raise
        except Exception as e:
            self.context.log(f"fetchText failed: {url} — {type(e).__name__}: {e}")
            raise NoHtmlFetched(url) from e
        if not html or not html.strip():
            raise NoHtmlFetched(url)
        return html

    def _run(self, url: str) -> ArchiveResult:
        started = time.monotonic()
        ctx = self.context

        ctx.report(5, "Fetching HTML...")
        ctx.log(f"Starting fetch for {url}")
        html = self._fetch_document(url)
        ctx.check_cancelled()

        ctx.report(15, "Parsing HTML...")
        soup = BeautifulSoup(html, "lxml")

        ctx.report(20, "Extracting inline CSS/JS...")
        inline = extract_inline(soup)
        bindings = find_document_assets(soup, url)
        direct = discover(soup, url)
        coordinator = FetchCoordinator(self.fetcher, ctx, self.config.max_workers)

        ctx.check_cancelled()
        ctx.report(30, "Fetching external CSS...")
        stylesheets = coordinator.fetch_all(_of_kind(direct, AssetKind.STYLESHEET))

        # url() tokens resolve against the stylesheet that contains them
        css_references: List[AssetReference] = []
        for result in stylesheets:
            if result.ok:
                css_text = result.payload.decode("utf-8", errors="replace")
                css_references.extend(discover_css_assets(css_text, result.reference.origin_url))
        css_references.extend(discover_css_assets(inline.css, url))
        references = dedupe_references(direct + css_references)
        if css_references:
            ctx.log(f"Found {len(css_references)} resources in CSS")

        ctx.check_cancelled()
        ctx.report(55, "Fetching external JS...")
        coordinator.fetch_all(_of_kind(references, AssetKind.SCRIPT))

        ctx.check_cancelled()
        ctx.report(70, "Fetching images...")
        coordinator.fetch_all(_of_kind(references, AssetKind.IMAGE))

        ctx.check_cancelled()
        ctx.report(80, "Fetching favicons & fonts (preload)...")
        coordinator.fetch_all(_of_kind(references, AssetKind.ICON, AssetKind.FONT))
        ctx.check_cancelled()

        ctx.report(90, "Building final project files...")
        results = coordinator.results
        rewrite_references(bindings, results)
        append_inline_assets(soup, inline)
        archived = self._prepare_results([results[ref.origin_url] for ref in references], results)
        archived_inline = InlineCode(
            css=self._minify_css(rewrite_css_urls(inline.css, url, results)),
            js=self._minify_js(inline.js),
            css_blocks=inline.css_blocks,
            js_blocks=inline.js_blocks,
        )
        final_html = self._optimize_html(serialize_document(soup))

        ctx.report(92, "Running audit...")
        domain = domain_from_url(url)
        meta = AuditMeta(
            css_files=len(_of_kind(references, AssetKind.STYLESHEET)),
            js_files=len(_of_kind(references, AssetKind.SCRIPT)),
            images=len(_of_kind(references, AssetKind.IMAGE)),
            fonts=len(_of_kind(references, AssetKind.FONT)),
            inline_css_blocks=inline.css_blocks,
            inline_js_blocks=inline.js_blocks,
            inline_css_size=len(inline.css),
            inline_js_size=len(inline.js),
        )
        report = audit(soup, domain, meta)

        ctx.check_cancelled()
        ctx.report(95, "Packaging ZIP...")
        container_bytes = self.builder.build(
            final_html,
            archived,
            report,
            url,
            archived_inline,
            progress=lambda fraction: ctx.report(min(95 + int(fraction * 4), 99), "Packaging ZIP..."),
        )
        container_name = archive_name_for(url)

        duration = time.monotonic() - started
        ctx.report(100, f"Done — project ready: {container_name}")
        ctx.log(f"Packaging complete: {container_name}")
        failed = sum(1 for result in archived if not result.ok)
        if failed:
            ctx.log(f"{failed} asset(s) could not be fetched and keep their original URL")

        return ArchiveResult(
            container_bytes=container_bytes,
            container_name=container_name,
            audit_report=report,
            rendered_html_preview=self._preview(final_html),
            duration_seconds=duration,
            results=archived,
            diagnostics=ctx.entries,
        )

    def _prepare_results(
        self, ordered: List[FetchResult], results: Dict[str, FetchResult]
    ) -> List[FetchResult]:
        """Copies of the fetched results with archive-ready payloads."""
        prepared = []
        for result in ordered:
            if not result.ok or result.payload is None:
                prepared.append(result)
                continue
            kind = result.reference.kind
            if kind == AssetKind.STYLESHEET:
                css = result.payload.decode("utf-8", errors="replace")
                css = rewrite_css_urls(css, result.reference.origin_url, results)
                result = replace(result, payload=self._minify_css(css).encode("utf-8"))
            elif kind == AssetKind.SCRIPT:
                js = result.payload.decode("utf-8", errors="replace")
                result = replace(result, payload=self._minify_js(js).encode("utf-8"))
            elif kind == AssetKind.IMAGE:
                image_format = IMAGE_FORMATS.get(extension_of(result.reference.origin_url))
                if image_format:
                    result = replace(result, payload=self._optimize_image(result.payload, image_format))
            prepared.append(result)
        return prepared

    def _preview(self, html: str) -> str:
        limit = self.config.preview_chars
        if len(html) <= limit:
            return html
        return html[:limit] + TRUNCATION_MARKER

    def _optimize_html(self, html: str) -> str:
        """Optimize HTML code."""
        if not self.config.optimize_html:
            return html

        try:
            import minify_html

            return minify_html.minify(html, minify_js=False, minify_css=False)
        except Exception as e:
            self.context.log(f"Error optimizing HTML: {e}")
            return html

    def _minify_js(self, content: str) -> str:
        """Minify JavaScript."""
        if not self.config.minify_js:
            return content

        try:
            import rjsmin

            return rjsmin.jsmin(content)
        except Exception as e:
            self.context.log(f"Error minifying JS: {e}")
            return content

    def _minify_css(self, content: str) -> str:
        """Minify CSS."""
        if not self.config.minify_css:
            return content

        try:
            import cssmin

            return cssmin.cssmin(content)
        except Exception as e:
            self.context.log(f"Error minifying CSS: {e}")
            return content

    def _optimize_image(self, content: bytes, format: str = "JPEG") -> bytes:
        """Optimize image."""
        if not self.config.optimize_images:
            return content

        try:
            from PIL import Image

            img = Image.open(BytesIO(content))

            # Convert RGBA to RGB for JPEG
            if format == "JPEG" and img.mode in ("RGBA", "LA", "P"):
                img = img.convert("RGBA")
                background = Image.new("RGB", img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[3])
                img = background

            output = BytesIO()
            img.save(output, format=format, optimize=True, quality=85)
            return output.getvalue()
        except Exception as e:
            self.context.log(f"Error optimizing image: {e}")
            return content


def run(
    url: str,
    config: Optional[Config] = None,
    fetcher: Optional[Fetcher] = None,
    context: Optional[RunContext] = None,
    progress: Optional[ProgressCallback] = None,
) -> ArchiveResult:
    """Archive ``url`` with a fresh downloader."""
    config = config or Config()
    if context is None:
        context = RunContext(
            progress=progress, log_max_entries=config.log_max_entries, echo=config.verbose
        )
    return SiteDownloader(config, fetcher=fetcher, context=context).run(url)
