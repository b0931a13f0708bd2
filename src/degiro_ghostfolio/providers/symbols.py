"""Ghostfolio API client used to turn ISINs into ticker symbols."""

from __future__ import annotations

from typing import Any

import requests

from degiro_ghostfolio.models import ConversionError
from degiro_ghostfolio.utils.logging import get_logger

logger = get_logger(__name__)

_UNAUTHORIZED_STATUSES = {401, 403}


class AuthenticationError(ConversionError):
    """The Ghostfolio API rejected the secret or the bearer token."""


class SymbolLookupError(ConversionError):
    """A lookup failed for a reason other than authentication."""


class GhostfolioClient:
    def __init__(
        self,
        base_url: str,
        secret: str,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = str(base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ValueError("base_url is required")
        self.secret = secret
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self._token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def _get(self, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(url, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as exc:
            raise SymbolLookupError(f"Request to {path} failed: {exc}") from exc

    @staticmethod
    def _json(response: requests.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise SymbolLookupError(f"Invalid JSON from {path}") from exc

    def authenticate(self) -> str:
        path = f"/api/v1/auth/anonymous/{self.secret}"
        response = self._get(path)
        if response.status_code in _UNAUTHORIZED_STATUSES:
            raise AuthenticationError("Ghostfolio secret was rejected")
        if not response.ok:
            raise SymbolLookupError(
                f"Authentication request failed with HTTP {response.status_code}"
            )
        token = self._json(response, "/api/v1/auth/anonymous").get("authToken")
        if not token:
            raise AuthenticationError("Ghostfolio did not return an auth token")
        self._token = str(token)
        logger.debug("Obtained Ghostfolio bearer token")
        return self._token

    def lookup(self, identifier: str) -> list[str]:
        if self._token is None:
            raise AuthenticationError("authenticate() must be called before lookup()")

        path = "/api/v1/symbol/lookup"
        response = self._get(
            path,
            params={"query": identifier},
            headers={"Authorization": f"Bearer {self._token}"},
        )
        if response.status_code == 401:
            raise AuthenticationError("Ghostfolio access token is not valid")
        if not response.ok:
            raise SymbolLookupError(
                f"Lookup for {identifier!r} failed with HTTP {response.status_code}"
            )

        body = self._json(response, path)
        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise SymbolLookupError(f"Lookup for {identifier!r} returned no 'items' list")
        return [
            str(item["symbol"])
            for item in items
            if isinstance(item, dict) and item.get("symbol")
        ]


class SymbolResolver:
    """Resolves ISINs to the first candidate symbol, once per ISIN per run."""

    def __init__(self, client: GhostfolioClient) -> None:
        self.client = client
        self._cache: dict[str, str] = {}
        self.lookups = 0

    def resolve(self, isin: str) -> str:
        key = isin.strip().upper()
        if not key:
            return ""
        if key in self._cache:
            return self._cache[key]

        candidates = self.client.lookup(key)
        self.lookups += 1
        symbol = candidates[0] if candidates else ""
        if symbol:
            logger.debug("Resolved %s to %s", key, symbol)
        else:
            logger.warning("No symbol found for %s", key)
        self._cache[key] = symbol
        return symbol
