import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from dexscan.errors import FetchTimeout, NetworkError, RateLimited, TransientError, UpstreamError
from dexscan.services.metrics import fetch_retries_counter, fetch_stale_counter

logger = logging.getLogger("fetch_client")

RATE_LIMIT_STATUSES = (418, 429)


@dataclass
class _CacheEntry:
    stored_at: float
    payload: bytes


class TTLCache:
    """Small in-memory cache; entries outlive their TTL so callers can fall back to stale data."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    def get_fresh(self, key: str, ttl: float) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= ttl:
            return None
        return entry.payload

    def get_stale(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        return entry.payload if entry else None

    def put(self, key: str, payload: bytes) -> None:
        self._entries[key] = _CacheEntry(self._clock(), payload)

    def clear(self) -> None:
        self._entries.clear()


def _cache_key(url: str, params: Optional[Dict[str, Any]]) -> str:
    if not params:
        return url
    query = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return f"{url}?{query}"


class RateLimitedFetchClient:
    """Outbound GET with bounded exponential backoff and an optional TTL cache.

    Retries rate-limit responses (418/429), transport errors, timeouts and 5xx
    responses. Other 4xx responses raise UpstreamError right away. When every
    attempt fails and a cached payload exists for the same request, the stale
    payload is returned instead of raising.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout_s: float = 15.0,
        max_attempts: int = 4,
        backoff_base_s: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        self._client = client
        self._owns_client = client is None
        self.timeout_s = timeout_s
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base_s = backoff_base_s
        self._sleep = sleep
        self._jitter = jitter
        self.cache = TTLCache(clock)
        self.network_calls = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def backoff_delay(self, attempt: int) -> float:
        base = self.backoff_base_s
        return base * (2 ** (attempt - 1)) + self._jitter(0.0, base)

    async def fetch(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        cache_ttl: Optional[float] = None,
        decode: Optional[Callable[[bytes], Any]] = None,
    ) -> Any:
        """GET `url`; returns raw bytes, or `decode(bytes)` when a decoder is given.

        A payload the decoder rejects counts as an upstream failure: it is never
        cached and the stale entry (if any) is served instead.
        """
        key = _cache_key(url, params)
        if cache_ttl:
            cached = self.cache.get_fresh(key, cache_ttl)
            if cached is not None:
                logger.debug("cache hit %s", key)
                return _decode(cached, decode, url)

        try:
            payload = await self._fetch_with_retry(url, params, headers)
            value = _decode(payload, decode, url)
        except TransientError as e:
            stale = self.cache.get_stale(key) if cache_ttl else None
            if stale is not None:
                fetch_stale_counter.inc()
                logger.warning("fetch failed for %s (%s); serving stale cached payload", key, e.kind)
                return _decode(stale, decode, url)
            raise

        if cache_ttl:
            self.cache.put(key, payload)
        return value

    async def fetch_json(self, url: str, **kwargs) -> Any:
        return await self.fetch(url, decode=json.loads, **kwargs)

    async def _fetch_with_retry(self, url, params, headers) -> bytes:
        client = self._get_client()
        last_err: Optional[TransientError] = None
        for attempt in range(1, self.max_attempts + 1):
            retry_after = None
            try:
                self.network_calls += 1
                resp = await client.get(url, params=params, headers=headers, timeout=self.timeout_s)
                if resp.status_code in RATE_LIMIT_STATUSES:
                    retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
                    raise RateLimited(f"HTTP {resp.status_code} from {url}")
                if resp.status_code >= 500:
                    raise UpstreamError(f"HTTP {resp.status_code} from {url}", status_code=resp.status_code)
                if resp.status_code >= 400:
                    raise UpstreamError(f"HTTP {resp.status_code} from {url}: {resp.text[:200]}",
                                        status_code=resp.status_code)
                return resp.content
            except httpx.TimeoutException as e:
                last_err = FetchTimeout(f"timeout fetching {url}: {e}")
            except httpx.TransportError as e:
                last_err = NetworkError(f"network error fetching {url}: {e}")
            except UpstreamError as e:
                if e.status_code is not None and e.status_code < 500:
                    # client errors do not improve with retries
                    raise
                last_err = e
            except TransientError as e:
                last_err = e

            if attempt >= self.max_attempts:
                break
            delay = retry_after if retry_after is not None else self.backoff_delay(attempt)
            fetch_retries_counter.labels(kind=last_err.kind).inc()
            logger.warning("fetch attempt %d/%d failed (%s) url=%s retry_in=%.2fs",
                           attempt, self.max_attempts, last_err.kind, url, delay)
            await self._sleep(delay)

        logger.error("fetch gave up after %d attempts url=%s: %s", self.max_attempts, url, last_err)
        raise last_err


def _decode(payload: bytes, decode: Optional[Callable[[bytes], Any]], url: str) -> Any:
    if decode is None:
        return payload
    try:
        return decode(payload)
    except ValueError as e:
        raise UpstreamError(f"undecodable payload from {url}: {e}")


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value and value.strip().isdigit():
        return float(value.strip())
    return None


__all__ = ["RateLimitedFetchClient", "TTLCache"]
