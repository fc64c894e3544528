"""
Signing key cache for access token verification.

PyJWKClient does the caching, kid matching and refresh-on-unknown-kid. This subclass
injects the httpx client, serialises refreshes behind a lock so concurrent readers with an
expired set trigger a single fetch, and rate limits the unknown-kid refresh. Readers use
the cached set without locking; a fetch publishes the new set with a single assignment.
"""
import logging
import threading
import time

import httpx
from jwt import PyJWKClient, PyJWKClientConnectionError, PyJWKClientError, PyJWKSet, PyJWKSetError
from jwt.jwk_set_cache import JWKSetCache

logger = logging.getLogger(__name__)


class ClockedJWKSetCache(JWKSetCache):
    """JWKSetCache whose expiry follows an injectable clock."""

    def __init__(self, lifespan: float, clock=time.monotonic):
        super().__init__(lifespan)
        self._clock = clock
        self.fetched_at: float | None = None

    def put(self, jwk_set) -> None:
        super().put(jwk_set)
        self.fetched_at = self._clock() if jwk_set is not None else None

    def is_expired(self) -> bool:
        return self.fetched_at is not None and self._clock() - self.fetched_at >= self.lifespan


class SigningKeyCache(PyJWKClient):
    def __init__(
        self,
        jwks_url: str,
        *,
        http_client: httpx.Client | None = None,
        lifespan: float = 300,
        min_refresh_interval: float = 10,
        timeout: float = 5.0,
        clock=time.monotonic,
    ):
        super().__init__(jwks_url, cache_jwk_set=True, lifespan=lifespan, timeout=timeout)
        self.jwk_set_cache = ClockedJWKSetCache(lifespan, clock)
        self.min_refresh_interval = min_refresh_interval
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0

    def fetch_data(self) -> dict:
        jwk_set = None
        try:
            response = self._http.get(self.uri, timeout=self.timeout)
            response.raise_for_status()
            jwk_set = response.json()
        except httpx.HTTPError as e:
            raise PyJWKClientConnectionError(f"Failed to fetch JWKs from [{self.uri}]: {e}") from e
        except ValueError as e:
            raise PyJWKClientError(f"Invalid JWK set from [{self.uri}]: {e}") from e
        finally:
            # A failed fetch clears the cache, as PyJWKClient does
            self.jwk_set_cache.put(jwk_set)
            self._generation += 1
        logger.info("Fetched JWK set from %s", self.uri)
        return jwk_set

    def get_jwk_set(self, refresh: bool = False) -> PyJWKSet:
        generation = self._generation
        data = None if refresh else self.jwk_set_cache.get()
        if data is None:
            with self._lock:
                # Another thread fetched while this one waited
                if self._generation != generation:
                    data = self.jwk_set_cache.get()
                if data is None:
                    data = self.fetch_data()
        if not isinstance(data, dict):
            raise PyJWKClientError("The JWKS endpoint did not return a JSON object")
        try:
            return PyJWKSet.from_dict(data)
        except (PyJWKSetError, AttributeError, TypeError) as e:
            raise PyJWKClientError(f"Invalid JWK set from [{self.uri}]: {e}") from e

    def get_signing_keys(self, refresh: bool = False):
        fetched_at = self.jwk_set_cache.fetched_at
        if refresh and fetched_at is not None and self._clock() - fetched_at < self.min_refresh_interval:
            logger.info("Key set fetched %.1fs ago; skipping unknown-kid refresh", self._clock() - fetched_at)
            refresh = False
        elif refresh:
            logger.info("Signing key not in cached set; refreshing")
        return super().get_signing_keys(refresh)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()
