"""HarnessNation client with a local response cache and request throttle.

Every document the catalog needs goes through ``fetch_resource``: cached
bodies are served straight from the cache, everything else is throttled,
fetched, normalized and written back to the cache without waiting on the
write.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from hnplus.config import settings
from hnplus.errors import ScraperError
from hnplus.scrapers.base import BaseScraper
from hnplus.scrapers.cache import NullResponseCache, ResponseCache
from hnplus.scrapers.throttle import RequestThrottle

logger = logging.getLogger(__name__)

CSRF_TOKEN_RE = re.compile(r"""setRequestHeader\((["'])X-CSRF-TOKEN\1,\s*(["'])(.*?)\2\)""", re.IGNORECASE)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"


def normalize_body(text: str) -> str:
    """Undo the entity escaping HarnessNation applies to names."""
    return text.replace("&nbsp;", " ").replace("&#039;", "'").replace("&#39;", "'")


class HarnessNationClient(BaseScraper):
    """Rate-limited, cache-backed access to HarnessNation documents."""

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        throttle: Optional[RequestThrottle] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(timeout=timeout or settings.request_timeout)
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.cache: ResponseCache = cache or NullResponseCache()
        self.throttle = throttle or RequestThrottle(
            batch_size=settings.throttle_batch_size,
            cooldown=settings.cooldown_timeout,
            window=settings.throttle_window,
            abort=asyncio.Event(),
        )
        self._pending_writes: set[asyncio.Task] = set()

    @property
    def cache_ttl(self) -> int:
        return self.cache.ttl

    @property
    def request_count(self) -> int:
        return self.throttle.request_count

    def abort(self) -> None:
        """Cancel any cooldown in progress, and any started before ``reset_abort``."""
        if self.throttle.abort is not None:
            self.throttle.abort.set()

    def reset_abort(self) -> None:
        if self.throttle.abort is not None:
            self.throttle.abort.clear()

    async def fetch_resource(self, key: str, generator: Callable[[], Awaitable[str]]) -> str:
        """Return the document for ``key``, from cache when fresh, otherwise via ``generator``."""
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached

        while True:
            await self.throttle.before_request()
            try:
                body = await generator()
            except ScraperError as e:
                if e.status_code != 429:
                    raise
                await self.throttle.start_cooldown()
                continue
            finally:
                self.throttle.after_request()
            break

        value = normalize_body(body)

        if self.cache.ttl > 0:
            task = asyncio.ensure_future(self.cache.put(key, value))
            self._pending_writes.add(task)
            task.add_done_callback(self._pending_writes.discard)

        return value

    async def flush(self) -> None:
        """Wait for outstanding cache writes."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def close(self) -> None:
        await self.flush()
        await super().close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _signed_headers(self, token: str) -> dict[str, str]:
        return {
            "Content-Type": FORM_CONTENT_TYPE,
            "Referer": f"{self.base_url}/",
            "X-Csrf-Token": token,
            "X-Requested-With": "XMLHttpRequest",
        }

    async def _post(self, path: str, data: dict[str, str], headers: Optional[dict[str, str]] = None) -> str:
        headers = headers or {"Content-Type": FORM_CONTENT_TYPE, "Referer": f"{self.base_url}/"}
        return await self.fetch(self._url(path), method="POST", data=data, headers=headers)

    async def get_signing_token(self) -> Optional[str]:
        """CSRF token used to sign POST requests.

        Any cached page carrying the token will do; otherwise the dashboard
        is fetched directly.
        """
        html = await self.cache.scan(lambda body: CSRF_TOKEN_RE.search(body) is not None)

        if html is None:
            html = await self.fetch_resource("/stable/dashboard", lambda: self.fetch(self._url("/stable/dashboard")))

        match = CSRF_TOKEN_RE.search(html or "")
        return match.group(3) if match else None

    async def _token(self, token: Optional[str]) -> str:
        return token or await self.get_signing_token() or ""

    async def get_horse(self, horse_id: int) -> str:
        """A horse's profile page."""
        return await self.fetch_resource(
            f"/horses/{horse_id}",
            lambda: self.fetch(self._url(f"/horse/{horse_id}")),
        )

    async def get_pedigree(self, horse_id: int, token: Optional[str] = None) -> str:
        token = await self._token(token)
        return await self.fetch_resource(
            f"/horses/{horse_id}/pedigree",
            lambda: self._post("/horse/pedigree", {"_token": token, "horseId": str(horse_id)}, self._signed_headers(token)),
        )

    async def get_progeny_list(self, horse_id: int, token: Optional[str] = None) -> str:
        token = await self._token(token)
        return await self.fetch_resource(
            f"/horses/{horse_id}/progeny/list",
            lambda: self._post(
                "/api/progeny/list",
                {
                    "horseId": str(horse_id),
                    "filterGait": "",
                    "filterAgeGroup": "",
                    "filterGender": "",
                    "filterStable": "",
                },
                self._signed_headers(token),
            ),
        )

    async def get_race_history(self, horse_id: int, token: Optional[str] = None, page: int = 1) -> str:
        """One page of a horse's race history."""
        token = await self._token(token)
        return await self.fetch_resource(
            f"/horses/{horse_id}/races?page={page}",
            lambda: self._post(
                "/horse/api/race-history",
                {"_token": token, "horseId": str(horse_id), "page": str(page)},
                self._signed_headers(token),
            ),
        )

    async def prune_cache(self) -> int:
        """Remove expired entries from the response cache."""
        return await self.cache.sweep_expired()

    async def clear_cache(self) -> None:
        await self.cache.clear()
