"""Base scraper class with common functionality."""

import logging
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from hnplus.errors import ScraperError

logger = logging.getLogger(__name__)


class BaseScraper:
    """Base class for HTTP scrapers."""

    # Default headers to mimic a browser
    DEFAULT_HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(self, timeout: float = 30.0):
        """Initialize scraper with HTTP client."""
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.DEFAULT_HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, method: str = "GET", **kwargs: Any) -> str:
        """Fetch URL and return the response body."""
        try:
            logger.info(f"Fetching: {method} {url}")
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.text
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error fetching {url}: {e}")
            raise ScraperError(f"HTTP {e.response.status_code}: {url}", status_code=e.response.status_code)
        except httpx.RequestError as e:
            logger.error(f"Request error fetching {url}: {e}")
            raise ScraperError(f"Request failed: {url}")

    def parse_html(self, html: str) -> BeautifulSoup:
        """Parse HTML into BeautifulSoup object."""
        return BeautifulSoup(html, "lxml")

    @staticmethod
    def clean_text(text: Optional[str]) -> Optional[str]:
        """Clean and normalize text."""
        if text is None:
            return None
        return " ".join(text.strip().split())
