"""Assembly of the generated project into a zip container."""

import io
import json
import zipfile
from typing import Callable, Dict, Iterable, List, Optional, Union

from axis_archive.errors import PackagingFailure
from axis_archive.models import AuditReport, FetchResult, InlineCode
from axis_archive.rewriter import INLINE_SCRIPTS_PATH, INLINE_STYLES_PATH

# Fixed entry timestamp so the container only depends on its content
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

README_TEMPLATE = """# Website Project (generated)
This project was generated from {source_url}
Open in your editor to inspect & edit:
- index.html
- css/
- js/
- images/
- fonts/
- audit/report.md

Notes:
- Some assets may not have been fetched due to cross-origin restrictions.
- Review audit/report.md for suggested fixes.
"""


class ZipContainer:
    """In-memory hierarchical container serialized as a zip file.

    Writing a path twice keeps the last content.
    """

    def __init__(self):
        self._entries: Dict[str, bytes] = {}

    def create_entry(self, path: str, content: Union[str, bytes]) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._entries[path.lstrip("/")] = content

    @property
    def paths(self) -> List[str]:
        return list(self._entries)

    def read(self, path: str) -> bytes:
        return self._entries[path]

    def serialize(self, progress: Optional[Callable[[float], None]] = None) -> bytes:
        """Write every entry into a deflated zip and return its bytes."""
        buffer = io.BytesIO()
        paths = self.paths
        total = len(paths) or 1
        try:
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for index, path in enumerate(paths, start=1):
                    info = zipfile.ZipInfo(path, date_time=ZIP_DATE_TIME)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = 0o644 << 16
                    archive.writestr(info, self.read(path))
                    if progress is not None:
                        progress(index / total)
        except (OSError, ValueError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise PackagingFailure(f"Could not serialize archive: {e}") from e
        return buffer.getvalue()


class ArchiveBuilder:
    """Lay out the rewritten page and its assets under ``layout_root``.

    Layout::

        website/index.html
        website/css/  website/js/  website/images/  website/fonts/
        website/audit/report.md  website/audit/report.json
        website/README.md
        website/<favicon>
    """

    def __init__(self, layout_root: str = "website", container_factory=ZipContainer):
        self.layout_root = layout_root.strip("/")
        self.container_factory = container_factory

    def _path(self, relative: str) -> str:
        return f"{self.layout_root}/{relative}" if self.layout_root else relative

    def layout(
        self,
        document_html: str,
        results: Iterable[FetchResult],
        audit_report: AuditReport,
        source_url: str,
        inline: Optional[InlineCode] = None,
    ) -> ZipContainer:
        """Fill a new container with the project files."""
        container = self.container_factory()
        container.create_entry(self._path("index.html"), document_html)

        for result in results:
            if result.ok and result.payload is not None:
                container.create_entry(self._path(result.local_path), result.payload)

        if inline is not None:
            if inline.css.strip():
                container.create_entry(self._path(INLINE_STYLES_PATH), inline.css)
            if inline.js.strip():
                container.create_entry(self._path(INLINE_SCRIPTS_PATH), inline.js)

        container.create_entry(self._path("audit/report.md"), audit_report.to_markdown())
        container.create_entry(
            self._path("audit/report.json"),
            json.dumps(audit_report.to_dict(), indent=2, ensure_ascii=False),
        )
        container.create_entry(self._path("README.md"), README_TEMPLATE.format(source_url=source_url))
        return container

    def build(
        self,
        document_html: str,
        results: Iterable[FetchResult],
        audit_report: AuditReport,
        source_url: str,
        inline: Optional[InlineCode] = None,
        progress: Optional[Callable[[float], None]] = None,
    ) -> bytes:
        """Lay out the project and serialize it into container bytes."""
        container = self.layout(document_html, results, audit_report, source_url, inline)
        return container.serialize(progress)
