"""
TMDB client for MovieVerse.
- Async httpx client; api_key and language appended to every call.
- Successful GET responses cached in Redis for one hour, keyed by endpoint + params.
- Handles 429 with exponential backoff.
- Non-2xx responses raise CatalogError; callers decide whether to absorb it.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.redis_client import get_redis
from app.services.rate_limit import with_backoff

logger = logging.getLogger(__name__)

CACHE_PREFIX = "tmdb:"


class CatalogError(Exception):
    """Raised when TMDB answers with a non-success status."""

    def __init__(self, status: Optional[int], body: Any = None, endpoint: str = ""):
        self.status = status
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"TMDB API error {status} for {endpoint}: {str(body)[:200]}")


class CatalogNetworkError(CatalogError):
    """Raised when TMDB cannot be reached at all (timeout, DNS, refused)."""

    def __init__(self, endpoint: str, reason: str):
        super().__init__(None, reason, endpoint)


class TMDBClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        language: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        cache_enabled: Optional[bool] = None,
        cache: Any = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_api_base).rstrip("/")
        self.language = language or settings.tmdb_language
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.tmdb_cache_ttl
        self.cache_enabled = settings.catalog_cache_enabled if cache_enabled is None else cache_enabled
        self.timeout = timeout or settings.tmdb_timeout_seconds
        self.max_retries = max_retries or settings.tmdb_max_retries
        self.retry_base_delay = retry_base_delay
        self._cache = cache
        self._transport = transport
        if not self.api_key:
            logger.warning("TMDB API key not configured")

    def _r(self):
        """Return the response cache; a loop-bound Redis client unless one was injected."""
        if self._cache is not None:
            return self._cache
        if not self.cache_enabled:
            return None
        return get_redis()

    @staticmethod
    def cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        return f"{CACHE_PREFIX}{endpoint}:{json.dumps(params or {}, sort_keys=True, default=str)}"

    async def _cache_get(self, key: str) -> Optional[Dict[str, Any]]:
        cache = self._r()
        if cache is None:
            return None
        try:
            cached = await cache.get(key)
        except Exception as e:
            logger.debug(f"TMDB cache read failed for {key}: {e}")
            return None
        if not cached:
            return None
        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")
        try:
            return json.loads(cached)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse cached TMDB response: {e}, fetching fresh")
            return None

    async def _cache_set(self, key: str, payload: Dict[str, Any]) -> None:
        cache = self._r()
        if cache is None:
            return
        try:
            await cache.set(key, json.dumps(payload), ex=self.cache_ttl)
        except Exception as e:
            logger.debug(f"TMDB cache write failed for {key}: {e}")

    async def query(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET `endpoint` with `params` and return the parsed JSON body.

        Raises:
            CatalogError: TMDB answered with a non-2xx status.
            CatalogNetworkError: TMDB could not be reached.
        """
        params = dict(params or {})
        key = self.cache_key(endpoint, params)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.debug(f"TMDB cache hit: {endpoint}")
            return cached

        url = f"{self.base_url}{endpoint}"
        request_params = {"api_key": self.api_key, "language": self.language}
        request_params.update({k: _stringify(v) for k, v in params.items()})

        async def make_request():
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.get(url, params=request_params)
            except httpx.TimeoutException as e:
                logger.error(f"TMDB request timeout for {endpoint}: {e}")
                raise CatalogNetworkError(endpoint, f"timeout: {e}")
            except httpx.HTTPError as e:
                logger.error(f"TMDB network error for {endpoint}: {e}")
                raise CatalogNetworkError(endpoint, str(e))
            if not resp.is_success:
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text
                logger.error(f"TMDB API Error: {resp.status_code} {endpoint} {body}")
                raise CatalogError(resp.status_code, body, endpoint)
            return resp.json()

        payload = await with_backoff(
            make_request,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            service="tmdb_api",
        )
        await self._cache_set(key, payload)
        return payload

    async def search_multi(self, query: str, include_adult: bool = False, page: int = 1) -> Dict[str, Any]:
        """Search TMDB multi-endpoint for movies, TV shows and people."""
        return await self.query("/search/multi", {"query": query, "include_adult": include_adult, "page": page})

    async def discover(self, media_type: str = "movie", **filters: Any) -> Dict[str, Any]:
        return await self.query(f"/discover/{media_type}", filters)

    async def trending(self, media_type: str = "movie", time_window: str = "week") -> Dict[str, Any]:
        return await self.query(f"/trending/{media_type}/{time_window}")

    async def recommendations(self, tmdb_id: int, media_type: str = "movie") -> Dict[str, Any]:
        return await self.query(f"/{media_type}/{tmdb_id}/recommendations")

    async def details(self, tmdb_id: int, media_type: str = "movie") -> Dict[str, Any]:
        """Full detail record including videos, credits and recommendations."""
        return await self.query(f"/{media_type}/{tmdb_id}", {"append_to_response": "videos,credits,recommendations"})

    async def genres(self, media_type: str = "movie") -> list:
        data = await self.query(f"/genre/{media_type}/list")
        return data.get("genres", [])


def _stringify(value: Any) -> str:
    # TMDB expects lowercase booleans
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


_tmdb_client: Optional[TMDBClient] = None


def get_tmdb_client() -> TMDBClient:
    """Get or create the process-wide TMDB client."""
    global _tmdb_client
    if _tmdb_client is None:
        _tmdb_client = TMDBClient()
    return _tmdb_client
