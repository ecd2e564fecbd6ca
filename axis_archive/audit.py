"""Heuristic quality scan of the rewritten page."""

from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup

from axis_archive.models import AuditMeta, AuditReport, Finding

MAX_ASSETS = 40
MAX_INLINE_CSS = 20000
MAX_INLINE_JS = 50000


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    element = soup.find("meta", attrs={"name": name})
    if element is None:
        return ""
    return (element.get("content") or "").strip()


def _count_unlabeled_forms(soup: BeautifulSoup) -> int:
    forms_with_issues = 0
    for form in soup.find_all("form"):
        for control in form.find_all(["input", "textarea", "select"]):
            control_id = control.get("id")
            if control_id and soup.find("label", attrs={"for": control_id}) is not None:
                continue
            if control.find_parent("label") is not None:
                continue
            forms_with_issues += 1
            break
    return forms_with_issues


def audit(
    soup: BeautifulSoup,
    domain: str,
    meta: AuditMeta,
    scanned_at: Optional[datetime] = None,
) -> AuditReport:
    """Run the heuristic rules against the final document."""
    report = AuditReport(domain=domain, scanned_at=scanned_at or datetime.now(timezone.utc))

    def warn(text, suggestion=None):
        report.findings.append(Finding("warn", text))
        if suggestion:
            report.suggestions.append(suggestion)

    def info(text):
        report.findings.append(Finding("info", text))

    def ok(text):
        report.findings.append(Finding("ok", text))

    # Basic meta checks
    title = soup.title.get_text().strip() if soup.title is not None else ""
    description = _meta_content(soup, "description")
    has_viewport = soup.find("meta", attrs={"name": "viewport"}) is not None
    lang = ((soup.html.get("lang") if soup.html is not None else None) or "").strip()
    has_charset = soup.find("meta", attrs={"charset": True}) is not None

    if not title:
        warn("Missing <title> tag", "Add a clear title tag for SEO and usability.")
    if not description:
        warn("Missing meta description", "Add a meta description for previews.")
    if not has_viewport:
        warn("Missing viewport meta", "Add viewport meta for mobile-friendliness.")
    if not lang:
        warn("Missing html lang attribute", 'Add <html lang="en"> or appropriate locale.')
    if not has_charset:
        info("No charset meta tag; default will be used")

    # Images
    images = soup.find_all("img")
    missing_alt = [img for img in images if not (img.get("alt") or "").strip()]
    if missing_alt:
        warn(f"{len(missing_alt)} image(s) missing alt attribute",
             "Add alt attributes to images for accessibility.")
    else:
        ok(f"All {len(images)} images have alt text (or none present).")

    # Headings
    h1_count = len(soup.find_all("h1"))
    if h1_count == 0:
        warn("No H1 found", "Add a single H1 for page structure.")
    elif h1_count > 1:
        info(f"Multiple H1 tags ({h1_count}) — check semantics")
    else:
        ok("Single H1 found")

    # Inline code
    if meta.inline_css_blocks > 0:
        info(f"{meta.inline_css_blocks} inline <style> block(s)")
    if meta.inline_js_blocks > 0:
        info(f"{meta.inline_js_blocks} inline <script> block(s)")

    total_assets = meta.total_assets
    if total_assets > MAX_ASSETS:
        warn(f"{total_assets} external assets detected",
             "Consider bundling, lazy-loading, or using CDNs for large counts of assets.")
    else:
        ok(f"{total_assets} external assets detected")

    # Forms
    forms_with_issues = _count_unlabeled_forms(soup)
    if forms_with_issues:
        warn(f"{forms_with_issues} form(s) with unlabeled controls",
             "Label form controls for accessibility.")
    else:
        ok("Forms appear labeled (if any).")

    # Anchors
    bad_anchors = 0
    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        if not href or href == "#" or href.lower().startswith("javascript:"):
            bad_anchors += 1
    if bad_anchors:
        warn(f"{bad_anchors} anchor(s) have empty or javascript: href")

    if meta.inline_css_size > MAX_INLINE_CSS:
        warn("Large inline CSS (>20KB)")
    if meta.inline_js_size > MAX_INLINE_JS:
        warn("Large inline JS (>50KB)")

    report.summary_fields = {
        "title": title,
        "description": description,
        "lang": lang,
        "assets": total_assets,
        "images": meta.images,
        "css": meta.css_files,
        "js": meta.js_files,
        "fonts": meta.fonts,
        "inline_css_blocks": meta.inline_css_blocks,
        "inline_js_blocks": meta.inline_js_blocks,
    }
    return report
