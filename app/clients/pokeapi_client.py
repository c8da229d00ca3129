import httpx
import json
import logging
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from fastapi import HTTPException
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential
from app.config import get_settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def _is_retryable(exc: BaseException) -> bool:
    """Network errors and throttling/5xx responses are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return isinstance(exc, httpx.RequestError)


# Custom exception for upstream failures. The caller only ever sees the generic
# detail; the actual cause (status code, network error) is logged here.
class APIClientError(HTTPException):
    def __init__(self, detail: str, status_code: int = 500):
        super().__init__(status_code=status_code, detail=detail)


class PokeAPIClient:
    CACHE_PREFIX = "pokeapi:"
    BULK_LIST_LIMIT = 100000

    def __init__(
        self,
        base_url: str = None,
        redis_url: str = None,
        cache_ttl: int = None,
        timeout: float = None,
        retries: int = None,
        backoff: float = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.pokeapi_base_url).rstrip("/")
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.cache_ttl
        self.retries = retries if retries is not None else settings.pokeapi_retries
        self.backoff = backoff if backoff is not None else settings.pokeapi_retry_backoff
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.pokeapi_timeout,
        )
        # No Redis URL means no cache: every call goes to PokeAPI
        redis_url = redis_url or settings.redis_url
        self.redis = aioredis.from_url(redis_url, decode_responses=True) if redis_url else None

    def _absolute_url(self, url_or_path: str) -> str:
        if url_or_path.startswith(("http://", "https://")):
            return url_or_path
        return f"{self.base_url}/{url_or_path.lstrip('/')}"

    async def _cache_get(self, url: str) -> dict | None:
        if self.redis is None:
            return None
        try:
            cached = await self.redis.get(self.CACHE_PREFIX + url)
        except RedisError as e:
            logger.warning(f"Cache read failed for {url}: {e}")
            return None
        if cached:
            logger.info(f"Cache hit for: {url}")
            return json.loads(cached)
        logger.info(f"Cache miss for: {url}")
        return None

    async def _cache_set(self, url: str, data: dict) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.setex(self.CACHE_PREFIX + url, self.cache_ttl, json.dumps(data))
        except RedisError as e:
            logger.warning(f"Cache write failed for {url}: {e}")

    async def _request(self, url: str) -> httpx.Response:
        response = await self.client.get(url)
        response.raise_for_status()  # Raises for 4xx/5xx status codes
        return response

    async def _fetch(self, url: str, what: str) -> dict:
        """Performs the network call with bounded retry and maps every failure to APIClientError."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            response = await retrying(self._request, url)
        except httpx.HTTPStatusError as e:
            logger.error(f"PokeAPI failed with status {e.response.status_code} for {url}")
            raise APIClientError(detail=f"Failed to fetch {what}")
        except httpx.RequestError as e:
            logger.error(f"PokeAPI network error for {url}: {e}")
            raise APIClientError(detail=f"Failed to fetch {what}")

        try:
            return response.json()
        except ValueError:
            # json.JSONDecodeError is a ValueError
            logger.error(f"PokeAPI returned a body that is not JSON for {url}")
            raise APIClientError(detail=f"Failed to fetch {what}")

    async def get_json(self, url_or_path: str, what: str = "Pokemon data") -> dict:
        """Fetches one PokeAPI resource by relative path or canonical URL, with caching."""
        url = self._absolute_url(url_or_path)

        cached = await self._cache_get(url)
        if cached is not None:
            return cached

        data = await self._fetch(url, what)
        # Only successful results get cached
        await self._cache_set(url, data)
        return data

    async def get_pokemon(self, id_or_url: int | str) -> dict:
        if isinstance(id_or_url, int):
            return await self.get_json(f"/pokemon/{id_or_url}", what=f"Pokemon {id_or_url}")
        return await self.get_json(id_or_url, what="Pokemon details")

    async def list_all_pokemon(self) -> list[dict]:
        """Single large page standing in for 'every known Pokemon'."""
        data = await self.get_json(
            f"/pokemon?limit={self.BULK_LIST_LIMIT}&offset=0",
            what="Pokemon list",
        )
        return data["results"]

    async def get_type(self, type_name: str) -> list[dict]:
        """Members of a type, flattened to the same {name, url} shape as the bulk listing."""
        data = await self.get_json(f"/type/{type_name}", what=f"Pokemon by type '{type_name}'")
        return [entry["pokemon"] for entry in data.get("pokemon", [])]

    async def get_species(self, url: str) -> dict:
        return await self.get_json(url, what="species data")

    async def get_evolution_chain(self, url: str) -> dict:
        return await self.get_json(url, what="evolution data")

    async def get_move(self, url: str) -> dict:
        return await self.get_json(url, what="move data")

    async def clear_cache(self):
        """Clear the PokeAPI response cache. Useful for testing."""
        if self.redis is None:
            return
        keys = await self.redis.keys(f"{self.CACHE_PREFIX}*")
        if keys:
            await self.redis.delete(*keys)

    async def close(self):
        """Close the HTTP client and Redis connection (call on app shutdown)."""
        await self.client.aclose()
        if self.redis is not None:
            await self.redis.aclose()
