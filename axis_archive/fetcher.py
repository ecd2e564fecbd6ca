"""Fetching of discovered assets through an injected transport."""

import hashlib
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import quote

import requests

from axis_archive.context import RunContext
from axis_archive.errors import FetchUnavailable, RunCancelled
from axis_archive.models import AssetReference, FetchResult
from axis_archive.urls import file_name_from_url

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

INLINE_STYLES_NAME = "inline-styles.css"
INLINE_SCRIPTS_NAME = "inline-scripts.js"

# Names the archive builder writes itself, per folder
RESERVED_NAMES = {
    "": {"index.html", "README.md", "audit"},
    "css": {INLINE_STYLES_NAME},
    "js": {INLINE_SCRIPTS_NAME},
}


class Fetcher:
    """Transport used to retrieve resources.

    Implementations raise FetchUnavailable for every failure mode.
    """

    def fetch_text(self, url: str) -> str:
        raise NotImplementedError

    def fetch_blob(self, url: str) -> bytes:
        raise NotImplementedError


class RelayFetcher(Fetcher):
    """Fetch resources over HTTP, optionally through a CORS relay.

    With a relay such as ``https://api.allorigins.win/raw?url=`` the target
    URL is percent-encoded and appended to it; with an empty relay the target
    is requested directly.
    """

    def __init__(
        self,
        relay_url: str = "",
        timeout: float = 15,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.relay_url = relay_url or ""
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def _request_url(self, url: str) -> str:
        if not self.relay_url:
            return url
        return self.relay_url + quote(url, safe="")

    def _get(self, url: str) -> requests.Response:
        try:
            response = self.session.get(
                self._request_url(url), timeout=self.timeout, allow_redirects=True
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise FetchUnavailable(url, f"timed out after {self.timeout}s") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "error"
            raise FetchUnavailable(url, f"HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            raise FetchUnavailable(url, str(e)) from e
        return response

    def fetch_text(self, url: str) -> str:
        return decode_text(self._get(url))

    def fetch_blob(self, url: str) -> bytes:
        return self._get(url).content


def decode_text(response: requests.Response) -> str:
    """Decode a text body, preferring UTF-8 over the ISO-8859-1 default of requests."""
    content = response.content
    try:
        return content.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        pass

    candidates = []
    if "charset" in (response.headers.get("Content-Type") or "").lower():
        candidates.append(response.encoding)
    candidates.append(response.apparent_encoding)
    for encoding in candidates:
        if not encoding:
            continue
        try:
            return content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue

    # Last resort: latin-1 can decode any byte sequence
    return content.decode("latin-1", errors="ignore")


def _disambiguate(name: str, url: str) -> str:
    stem, ext = os.path.splitext(name)
    digest = hashlib.md5(url.encode()).hexdigest()[:8]
    return f"{stem}-{digest}{ext}"


class FetchCoordinator:
    """Fetch every distinct URL exactly once during a run.

    Fetches of one ``fetch_all`` call run on a bounded thread pool. Workers
    only return payloads; results are assembled after the join, in reference
    order, so local names do not depend on completion order.
    """

    def __init__(self, fetcher: Fetcher, context: Optional[RunContext] = None, max_workers: int = 8):
        self.fetcher = fetcher
        self.context = context or RunContext()
        self.max_workers = max(1, max_workers)
        self.results: Dict[str, FetchResult] = {}
        self.fetch_count = 0
        # folder -> local name -> origin URL
        self._names: Dict[str, Dict[str, str]] = {}

    def _fetch_one(self, reference: AssetReference) -> Tuple[Optional[bytes], Optional[str]]:
        self.context.check_cancelled()
        try:
            if reference.kind.is_text:
                payload = self.fetcher.fetch_text(reference.origin_url).encode("utf-8")
            else:
                payload = self.fetcher.fetch_blob(reference.origin_url)
        except FetchUnavailable as e:
            return None, e.reason
        except RunCancelled:
            raise
        except Exception as e:
            return None, f"{type(e).__name__}: {e}"
        return payload, None

    def _local_name(self, reference: AssetReference) -> str:
        folder = reference.kind.folder
        taken = self._names.setdefault(folder, {})
        name = file_name_from_url(reference.origin_url)
        owner = taken.get(name)
        if owner == reference.origin_url:
            return name
        if owner is not None or name in RESERVED_NAMES.get(folder, set()):
            name = _disambiguate(name, reference.origin_url)
        taken[name] = reference.origin_url
        return name

    def fetch_all(self, references: Iterable[AssetReference]) -> List[FetchResult]:
        """Fetch the references not fetched yet and return one result per URL."""
        ordered: List[AssetReference] = []
        seen: Set[str] = set()
        for reference in references:
            if reference.origin_url not in seen:
                seen.add(reference.origin_url)
                ordered.append(reference)

        pending = [ref for ref in ordered if ref.origin_url not in self.results]
        outcomes: Dict[str, Tuple[Optional[bytes], Optional[str]]] = {}

        if pending:
            self.context.check_cancelled()
            pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(pending)))
            try:
                future_map: Dict[Future, AssetReference] = {}
                for reference in pending:
                    self.context.log(f"Fetching {reference.kind.value}: {reference.origin_url}")
                    future_map[pool.submit(self._fetch_one, reference)] = reference
                    self.fetch_count += 1
                for future in as_completed(future_map):
                    self.context.check_cancelled()
                    outcomes[future_map[future].origin_url] = future.result()
            except BaseException:
                pool.shutdown(wait=False, cancel_futures=True)
                raise
            pool.shutdown(wait=True)

        # Join done: build results in reference order
        for reference in pending:
            payload, error = outcomes[reference.origin_url]
            if error is not None:
                self.context.log(f"Fetch failed: {reference.origin_url} — {error}")
                result = FetchResult(reference, file_name_from_url(reference.origin_url), None, False)
            else:
                result = FetchResult(reference, self._local_name(reference), payload, True)
            self.results[reference.origin_url] = result

        return [self.results[ref.origin_url] for ref in ordered]
