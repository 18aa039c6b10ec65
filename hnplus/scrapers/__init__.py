"""HarnessNation retrieval: HTTP client, response cache, throttle and parsers."""

from hnplus.scrapers.base import BaseScraper, ScraperError
from hnplus.scrapers.cache import NullResponseCache, SqlResponseCache, open_response_cache
from hnplus.scrapers.harnessnation import HarnessNationClient
from hnplus.scrapers.throttle import RequestThrottle

__all__ = [
    "BaseScraper",
    "ScraperError",
    "HarnessNationClient",
    "NullResponseCache",
    "SqlResponseCache",
    "RequestThrottle",
    "open_response_cache",
]
