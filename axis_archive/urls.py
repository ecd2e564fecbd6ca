"""URL helpers: resolution, domain extraction and local file naming."""

import re
from urllib.parse import urljoin, urlparse

from axis_archive.errors import MalformedUrl

DEFAULT_ASSET_NAME = "asset"
DEFAULT_SITE_NAME = "site"

# Characters that are not allowed in the archive file name
UNSAFE_NAME_PATTERN = re.compile(r'[:/\\?%*|"<> ]+')

# Schemes that never point at a downloadable resource
NON_FETCHABLE_SCHEMES = ("data:", "javascript:", "about:", "blob:", "mailto:", "tel:")


def _absolutize(base: str, relative: str) -> str:
    try:
        joined = urljoin(base, relative.strip())
        parsed = urlparse(joined)
    except ValueError as e:
        raise MalformedUrl(relative) from e
    if not parsed.scheme or (parsed.scheme in ("http", "https") and not parsed.netloc):
        raise MalformedUrl(relative)
    return joined


def resolve_url(base: str, relative: str) -> str:
    """Resolve ``relative`` against ``base``.

    Handles scheme-relative (``//cdn/x.js``), root-relative and path-relative
    references and keeps query strings and fragments. When no absolute URL can
    be built the raw ``relative`` value is returned unchanged.
    """
    try:
        return _absolutize(base, relative)
    except MalformedUrl:
        return relative


def is_fetchable(value: str) -> bool:
    """Check if an attribute value can point at a downloadable resource."""
    value = (value or "").strip()
    if not value or value.startswith("#"):
        return False
    return not value.lower().startswith(NON_FETCHABLE_SCHEMES)


def domain_from_url(url: str) -> str:
    """Get the host (and explicit port) of ``url``, keeping its case."""
    try:
        netloc = urlparse(url).netloc
    except ValueError:
        netloc = ""
    if netloc:
        return netloc.rsplit("@", 1)[-1]
    # Fallback: remove protocol and path
    return re.sub(r"^https?://", "", url, flags=re.IGNORECASE).split("/")[0]


def sanitize_name(name: str) -> str:
    """Replace every run of unsafe characters with a single hyphen."""
    return UNSAFE_NAME_PATTERN.sub("-", name)


def archive_name_for(url: str) -> str:
    """Name of the zip produced for ``url``, e.g. ``example.com.zip``."""
    domain = domain_from_url(url) or DEFAULT_SITE_NAME
    return f"{sanitize_name(domain)}.zip"


def file_name_from_url(url: str) -> str:
    """
    Get the local file name for an asset URL.

    Uses the last non-empty path segment without its query string. Names
    without an extension are kept as they are; an empty path gives ``asset``.
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_ASSET_NAME

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return DEFAULT_ASSET_NAME

    name = segments[-1].split("?")[0]
    return name or DEFAULT_ASSET_NAME


def extension_of(url: str) -> str:
    """Lowercase extension of the URL path, without the dot."""
    try:
        path = urlparse(url).path
    except ValueError:
        path = url.split("?")[0].split("#")[0]
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()
