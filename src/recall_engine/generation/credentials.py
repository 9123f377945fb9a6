"""Short-lived OAuth access tokens for Google service accounts."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
import jwt

from recall_engine.exceptions import EmbeddingError
from recall_engine.observability.logger import get_logger

logger = get_logger("credentials")

TOKEN_URL = "https://oauth2.googleapis.com/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
EXPIRY_BUFFER_S = 300.0


@dataclass
class AccessToken:
    value: str
    expires_at: float  # time.time() seconds


class AccessTokenCache:
    """Caches one access token, refreshing it lazily before it expires.

    The expiry check and the refresh run under one lock: concurrent callers
    that find the token stale wait for a single refresh instead of each
    fetching their own.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[AccessToken]],
        buffer_s: float = EXPIRY_BUFFER_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch = fetch
        self._buffer_s = buffer_s
        self._clock = clock
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._token is not None and self._clock() < self._token.expires_at - self._buffer_s

    async def get(self) -> str:
        async with self._lock:
            if not self._is_fresh():
                self._token = await self._fetch()
                logger.info("access_token_refreshed", expires_at=self._token.expires_at)
            return self._token.value

    def invalidate(self) -> None:
        self._token = None


class ServiceAccountTokenSource:
    """Exchanges a signed service-account JWT for an access token."""

    def __init__(
        self,
        service_account_file: str,
        scope: str = CLOUD_PLATFORM_SCOPE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        with open(service_account_file, encoding="utf-8") as f:
            info = json.load(f)
        self._client_email = info["client_email"]
        self._private_key = info["private_key"]
        self._token_uri = info.get("token_uri", TOKEN_URL)
        self._scope = scope
        self._transport = transport

    def _assertion(self, now: float) -> str:
        claims = {
            "iss": self._client_email,
            "scope": self._scope,
            "aud": self._token_uri,
            "iat": int(now),
            "exp": int(now) + 3600,
        }
        return jwt.encode(claims, self._private_key, algorithm="RS256")

    async def fetch(self) -> AccessToken:
        now = time.time()
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(
                    self._token_uri,
                    data={
                        "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                        "assertion": self._assertion(now),
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Access token request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError("Access token response is not JSON") from e

        try:
            return AccessToken(
                value=payload["access_token"],
                expires_at=now + float(payload.get("expires_in", 3600)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise EmbeddingError("Access token response missing access_token") from e
