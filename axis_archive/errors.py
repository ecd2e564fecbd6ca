"""Exception types raised while archiving a page."""

from typing import Optional


class ArchiveError(Exception):
    """Base class for every error raised by Axis-Archive."""


class FetchUnavailable(ArchiveError):
    """A single resource could not be retrieved (network, relay or HTTP status)."""

    def __init__(self, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason or "unavailable"
        super().__init__(f"{url}: {self.reason}")


class NoHtmlFetched(ArchiveError):
    """The root document could not be retrieved."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No HTML fetched from {url}")


class MalformedUrl(ArchiveError):
    """A reference could not be resolved into an absolute URL."""


class PackagingFailure(ArchiveError):
    """The archive container could not be serialized."""


class RunCancelled(ArchiveError):
    """The caller aborted the run before the archive was produced."""
