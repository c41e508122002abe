import logging
import time
from typing import Iterable, Protocol, runtime_checkable
from urllib.parse import urlparse

import requests

from .schema import CrawledPage, SearchResult, SourceItem

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Raised when a source cannot fetch its items at all."""


@runtime_checkable
class FiltersItems(Protocol):
    def skip_reason(self, item: SourceItem) -> str | None:
        """Return why the item should not be ingested, or None to accept it."""
        ...


@runtime_checkable
class Source(Protocol):
    """Base source for providing items for the index."""

    @property
    def source_id(self) -> str:
        """Get unique identifier for this source."""
        return self.__class__.__name__

    def get_items(self) -> Iterable[SourceItem]:
        """Get all items from this source."""
        ...


class StaticSource(Source):
    """Source for items supplied in code, e.g. hand-written FAQ entries."""

    def __init__(self, items: Iterable[SourceItem], *, source_id: str | None = None):
        self.items = list(items)
        self._source_id = source_id

    @property
    def source_id(self) -> str:
        return self._source_id or self.__class__.__name__

    def get_items(self) -> Iterable[SourceItem]:
        return iter(self.items)


class FirecrawlSource(Source, FiltersItems):
    """Crawls a site with the Firecrawl API and yields its pages as markdown.

    Only pages from ``allowed_domain`` that returned HTTP 200 with some
    markdown are ingested.
    """

    base_url = "https://api.firecrawl.dev/v1"
    finished_statuses = ("completed", "failed", "cancelled")

    def __init__(
        self,
        *,
        start_url: str,
        api_key: str,
        allowed_domain: str | None = None,
        include_paths: list[str] | None = None,
        limit: int = 20,
        max_age: int = 14400000,
        poll_interval: float = 2.0,
        max_wait: float = 600.0,
        request_timeout: float = 30.0,
    ):
        self.start_url = start_url
        self.api_key = api_key
        self.allowed_domain = allowed_domain or urlparse(start_url).hostname or ""
        # www.example.com also accepts example.com and its other subdomains
        self.site_domain = self.allowed_domain.removeprefix("www.")
        self.include_paths = include_paths or []
        self.limit = limit
        self.max_age = max_age
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.request_timeout = request_timeout
        self.session = requests.Session()
        self.session.headers["Authorization"] = f"Bearer {api_key}"

    @property
    def source_id(self) -> str:
        return f"firecrawl:{self.allowed_domain}"

    def _start_crawl(self) -> str:
        response = self.session.post(
            f"{self.base_url}/crawl",
            json={
                "url": self.start_url,
                "limit": self.limit,
                "includePaths": self.include_paths,
                "scrapeOptions": {
                    "formats": ["markdown"],
                    "onlyMainContent": True,
                    "parsePDF": False,
                    "maxAge": self.max_age,
                },
            },
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("success"):
            raise SourceError(f"Failed to start crawl: {data.get('error')}")
        return data["id"]

    def _wait_for_crawl(self, crawl_id: str) -> dict:
        deadline = time.monotonic() + self.max_wait
        while True:
            response = self.session.get(
                f"{self.base_url}/crawl/{crawl_id}", timeout=self.request_timeout
            )
            response.raise_for_status()
            status = response.json()
            if status.get("status") in self.finished_statuses:
                break
            if time.monotonic() > deadline:
                raise SourceError(f"Crawl {crawl_id} did not finish in {self.max_wait}s")
            time.sleep(self.poll_interval)

        if status["status"] != "completed":
            raise SourceError(f"Crawl {crawl_id} ended with status {status['status']}")
        return status

    def _iter_pages(self, status: dict) -> Iterable[dict]:
        yield from status.get("data") or []
        next_url = status.get("next")
        while next_url:
            response = self.session.get(next_url, timeout=self.request_timeout)
            response.raise_for_status()
            batch = response.json()
            yield from batch.get("data") or []
            next_url = batch.get("next")

    def get_items(self) -> Iterable[CrawledPage]:
        logger.info(f"Starting Firecrawl crawl of {self.start_url}")
        crawl_id = self._start_crawl()
        status = self._wait_for_crawl(crawl_id)
        logger.info(
            f"Crawl {crawl_id} completed with {status.get('total', 0)} pages, "
            f"{status.get('creditsUsed', 0)} credits used"
        )

        for page in self._iter_pages(status):
            metadata = page.get("metadata") or {}
            yield CrawledPage(
                url=metadata.get("sourceURL") or metadata.get("url") or "",
                title=metadata.get("title") or "",
                markdown=page.get("markdown") or "",
                description=metadata.get("description") or "",
                status_code=metadata.get("statusCode"),
            )

    def skip_reason(self, item: SourceItem) -> str | None:
        if not item.primary_text or not item.primary_text.strip():
            return "no markdown"
        hostname = urlparse(item.url).hostname or ""
        if not (
            hostname == self.site_domain or hostname.endswith(f".{self.site_domain}")
        ):
            return "wrong domain"
        if getattr(item, "status_code", None) != 200:
            return "bad status"
        return None


class ExaSource(Source, FiltersItems):
    """Fetches page text and generated summaries for a fixed list of URLs
    from the Exa contents API."""

    base_url = "https://api.exa.ai"

    def __init__(
        self,
        *,
        urls: list[str],
        api_key: str,
        summary_query: str | None = None,
        max_characters: int = 10000,
        request_timeout: float = 60.0,
    ):
        self.urls = urls
        self.api_key = api_key
        self.summary_query = summary_query
        self.max_characters = max_characters
        self.request_timeout = request_timeout

    @property
    def source_id(self) -> str:
        return "exa"

    def get_items(self) -> Iterable[SearchResult]:
        payload: dict = {
            "urls": self.urls,
            "text": {"maxCharacters": self.max_characters},
        }
        if self.summary_query:
            payload["summary"] = {"query": self.summary_query}

        logger.info(f"Fetching {len(self.urls)} pages from Exa")
        response = requests.post(
            f"{self.base_url}/contents",
            json=payload,
            headers={"x-api-key": self.api_key},
            timeout=self.request_timeout,
        )
        response.raise_for_status()

        for result in response.json().get("results", []):
            yield SearchResult(
                id=result.get("id"),
                url=result.get("url") or "",
                title=result.get("title") or "",
                text=result.get("text") or "",
                summary=result.get("summary"),
                date=result.get("publishedDate"),
                author=result.get("author"),
            )

    def skip_reason(self, item: SourceItem) -> str | None:
        if not item.primary_text or not item.primary_text.strip():
            return "no text"
        return None
