from __future__ import annotations

from typing import Any

import pytest
import requests

from degiro_ghostfolio.providers.symbols import (
    AuthenticationError,
    GhostfolioClient,
    SymbolLookupError,
    SymbolResolver,
)


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(responses: list[Any]) -> tuple[GhostfolioClient, _FakeSession]:
    session = _FakeSession(responses)
    return GhostfolioClient("https://gf.example/", "s3cret", session=session), session


def test_authenticate_then_lookup_uses_bearer_token():
    client, session = _client(
        [
            _FakeResponse(payload={"authToken": "tok-1"}),
            _FakeResponse(payload={"items": [{"symbol": "VWRL.AS"}, {"symbol": "VWRL.L"}]}),
        ]
    )

    assert client.authenticate() == "tok-1"
    assert client.lookup("IE00B3RBWM25") == ["VWRL.AS", "VWRL.L"]

    assert session.calls[0]["url"] == "https://gf.example/api/v1/auth/anonymous/s3cret"
    lookup_call = session.calls[1]
    assert lookup_call["url"] == "https://gf.example/api/v1/symbol/lookup"
    assert lookup_call["params"] == {"query": "IE00B3RBWM25"}
    assert lookup_call["headers"] == {"Authorization": "Bearer tok-1"}
    assert lookup_call["timeout"] == 30.0


def test_lookup_401_is_an_authentication_error():
    client, _ = _client([_FakeResponse(payload={"authToken": "tok"}), _FakeResponse(401)])
    client.authenticate()

    with pytest.raises(AuthenticationError):
        client.lookup("IE00B3RBWM25")


def test_rejected_secret_is_an_authentication_error():
    client, _ = _client([_FakeResponse(403)])

    with pytest.raises(AuthenticationError):
        client.authenticate()


def test_lookup_before_authenticate_is_rejected():
    client, session = _client([])

    with pytest.raises(AuthenticationError):
        client.lookup("IE00B3RBWM25")
    assert session.calls == []


@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse(500),
        _FakeResponse(payload={"unexpected": True}),
        _FakeResponse(payload=ValueError("not json")),
        requests.ConnectionError("boom"),
    ],
)
def test_other_lookup_failures_are_lookup_errors(response):
    client, _ = _client([_FakeResponse(payload={"authToken": "tok"}), response])
    client.authenticate()

    with pytest.raises(SymbolLookupError):
        client.lookup("IE00B3RBWM25")


def test_resolver_picks_first_candidate_and_caches_per_isin():
    client, session = _client(
        [
            _FakeResponse(payload={"authToken": "tok"}),
            _FakeResponse(payload={"items": [{"symbol": "AAPL"}, {"symbol": "APC.DE"}]}),
            _FakeResponse(payload={"items": []}),
        ]
    )
    client.authenticate()
    resolver = SymbolResolver(client)

    assert resolver.resolve("US0378331005") == "AAPL"
    assert resolver.resolve("us0378331005 ") == "AAPL"
    assert resolver.resolve("XS0000000000") == ""
    assert resolver.resolve("") == ""
    assert resolver.lookups == 2
    assert len(session.calls) == 3
