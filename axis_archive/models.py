"""Record types passed between the pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from bs4 import Tag


class AssetKind(Enum):
    """Category of a resource: decides its archive folder and fetch mode."""

    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    FONT = "font"
    ICON = "icon"

    @property
    def folder(self) -> str:
        return _KIND_FOLDERS[self]

    @property
    def is_text(self) -> bool:
        return self in (AssetKind.STYLESHEET, AssetKind.SCRIPT)


_KIND_FOLDERS = {
    AssetKind.STYLESHEET: "css",
    AssetKind.SCRIPT: "js",
    AssetKind.IMAGE: "images",
    AssetKind.FONT: "fonts",
    AssetKind.ICON: "",
}


class DiscoverySource(Enum):
    HTML = "html"
    CSS_URL = "css-url"
    PRELOAD = "preload"


@dataclass(frozen=True)
class AssetReference:
    """An absolute URL the page needs. Identity is ``origin_url``."""

    origin_url: str
    kind: AssetKind
    discovered_via: DiscoverySource = DiscoverySource.HTML


@dataclass(eq=False)
class ElementBinding:
    """Links a document element attribute to the reference it produced."""

    element: Tag
    attribute: str
    reference: AssetReference


@dataclass(frozen=True)
class FetchResult:
    reference: AssetReference
    local_name: str
    payload: Optional[bytes] = None
    ok: bool = False

    @property
    def local_path(self) -> str:
        """Path of the stored copy, relative to the archive root."""
        folder = self.reference.kind.folder
        return f"{folder}/{self.local_name}" if folder else self.local_name


@dataclass
class InlineCode:
    """Inline ``<style>`` and ``<script>`` payloads collected from the page."""

    css: str = ""
    js: str = ""
    css_blocks: int = 0
    js_blocks: int = 0


@dataclass(frozen=True)
class Finding:
    level: str  # "warn", "info" or "ok"
    text: str


@dataclass
class AuditMeta:
    """Asset inventory handed to the auditor."""

    css_files: int = 0
    js_files: int = 0
    images: int = 0
    fonts: int = 0
    inline_css_blocks: int = 0
    inline_js_blocks: int = 0
    inline_css_size: int = 0
    inline_js_size: int = 0

    @property
    def total_assets(self) -> int:
        return self.css_files + self.js_files + self.images + self.fonts


@dataclass
class AuditReport:
    domain: str
    findings: List[Finding] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    summary_fields: Dict[str, Any] = field(default_factory=dict)
    scanned_at: Optional[datetime] = None

    @property
    def issue_count(self) -> int:
        return sum(1 for finding in self.findings if finding.level == "warn")

    def to_markdown(self) -> str:
        """Human-readable report written to ``audit/report.md``."""
        fields = self.summary_fields
        description = fields.get("description") or ""
        lines = [
            f"# Audit Report — {self.domain}",
            f"Scan date: {self.scanned_at.isoformat() if self.scanned_at else '(unknown)'}",
            "",
            "## Summary",
            f"- Title: {fields.get('title') or '(missing)'}",
            f"- Description: {description[:140] if description else '(missing)'}",
            f"- Lang: {fields.get('lang') or '(missing)'}",
            f"- Assets: {fields.get('assets', 0)}",
            "",
            "## Findings",
        ]
        lines.extend(f"- [{finding.level.upper()}] {finding.text}" for finding in self.findings)
        lines.append("")
        lines.append("## Suggestions")
        lines.extend(f"- {suggestion}" for suggestion in self.suggestions)
        lines.append("")
        lines.append("---")
        lines.append("Keep this file in `audit/report.md` for developer guidance.")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form written to ``audit/report.json``."""
        data: Dict[str, Any] = {"domain": self.domain}
        data.update(self.summary_fields)
        data["scanned_at"] = self.scanned_at.isoformat() if self.scanned_at else None
        data["issues"] = self.issue_count
        data["findings"] = [{"level": f.level, "text": f.text} for f in self.findings]
        data["suggestions"] = list(self.suggestions)
        return data


@dataclass
class ArchiveResult:
    """Outcome of a successful run."""

    container_bytes: bytes
    container_name: str
    audit_report: AuditReport
    rendered_html_preview: str
    duration_seconds: float
    results: List[FetchResult] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
