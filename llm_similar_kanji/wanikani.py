"""WaniKani v2 API access.

HTTP client that walks a paginated collection (``assignments`` or
``subjects``) by following ``pages.next_url`` and returns every record in
server order.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlencode, urlparse

import requests

from .config import Settings, load_settings
from .errors import MalformedResponse, RemoteUnavailable

logger = logging.getLogger(__name__)

SUPPORTED_COLLECTIONS = {"assignments", "subjects"}
# upper bound on a server-requested Retry-After wait, in seconds
MAX_RETRY_AFTER = 60.0


class WaniKaniClient:
    def __init__(
        self,
        token: str,
        http: Optional[requests.Session] = None,
        api_root: str = "https://api.wanikani.com/v2",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff: float = 1.0,
        api_revision: str = "20170710",
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not isinstance(token, str) or not token.strip():
            raise ValueError("API token must be a non-empty string")
        self.token = token.strip()
        self.http = http or requests.Session()
        self.api_root = api_root.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.api_revision = api_revision
        self.sleep = sleep

    @classmethod
    def from_settings(cls, token: str, settings: Optional[Settings] = None, **kwargs: Any) -> "WaniKaniClient":
        settings = settings or load_settings()
        return cls(
            token,
            api_root=settings.api_root,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            backoff=settings.backoff,
            api_revision=settings.api_revision,
            **kwargs,
        )

    # -- URLs --------------------------------------------------------------

    def assignments_url(self) -> str:
        """Started kanji assignments for the token's user."""
        return f"{self.api_root}/assignments?{urlencode({'subject_types': 'kanji', 'started': 'true'})}"

    def subjects_url(self, ids: Iterable[int]) -> str:
        id_list = ",".join(str(i) for i in ids)
        # commas stay literal so the query matches what the API documents
        return f"{self.api_root}/subjects?{urlencode({'types': 'kanji', 'ids': id_list}, safe=',')}"

    # -- fetching ----------------------------------------------------------

    def fetch_all(self, url: str) -> List[Dict[str, Any]]:
        """Fetch every page starting at `url` and return the concatenated records.

        Pages are requested one at a time because each cursor is only known
        once the previous page arrives. Any failure aborts the whole fetch;
        nothing fetched so far is returned.
        """
        if not _is_supported_collection(url):
            raise ValueError(f"Unsupported collection URL: {url}")
        records: List[Dict[str, Any]] = []
        next_url: Optional[str] = url
        page = 0
        while next_url:
            if page and not _is_supported_collection(next_url):
                raise MalformedResponse(f"Page {page - 1} of {url} points at an unsupported collection: {next_url}")
            body = self._get_page(next_url)
            data = body.get("data")
            if not isinstance(data, list):
                raise MalformedResponse(f"Page {page} of {url} has no 'data' list")
            records.extend(data)
            next_url = _next_url(body, page, url)
            page += 1
            logger.debug("Fetched page %d (%d records, next=%s)", page, len(data), next_url)
        return records

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Wanikani-Revision": self.api_revision,
        }

    def _get_page(self, url: str) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                resp = self.http.get(url, headers=self._headers(), timeout=self.timeout)
            except requests.RequestException as e:
                raise RemoteUnavailable(f"Request to {url} failed: {e}") from e

            if resp.status_code == 429 and attempt < self.max_retries:
                delay = self._retry_delay(resp, attempt)
                logger.warning("Rate limited on %s, retrying in %.1fs (%d/%d)", url, delay, attempt + 1, self.max_retries)
                self.sleep(delay)
                attempt += 1
                continue
            if not 200 <= resp.status_code < 300:
                raise RemoteUnavailable(f"WaniKani API returned {resp.status_code} for {url}", status=resp.status_code)

            try:
                body = resp.json()
            except ValueError as e:
                raise MalformedResponse(f"Response from {url} is not JSON: {e}") from e
            if not isinstance(body, dict):
                raise MalformedResponse(f"Response from {url} is not a JSON object")
            return body

    def _retry_delay(self, resp: requests.Response, attempt: int) -> float:
        retry_after = resp.headers.get("Retry-After")
        if retry_after:
            try:
                return min(max(0.0, float(retry_after)), MAX_RETRY_AFTER)
            except ValueError:
                pass
        return self.backoff * (2 ** attempt)


def _is_supported_collection(url: str) -> bool:
    path = urlparse(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1] in SUPPORTED_COLLECTIONS


def _next_url(body: Dict[str, Any], page: int, url: str) -> Optional[str]:
    pages = body.get("pages")
    if pages is None:
        return None
    if not isinstance(pages, dict):
        raise MalformedResponse(f"Page {page} of {url} has an invalid 'pages' field")
    next_url = pages.get("next_url")
    if next_url is not None and not isinstance(next_url, str):
        raise MalformedResponse(f"Page {page} of {url} has a non-string next_url")
    return next_url or None
