from __future__ import annotations

import pytest
import requests

import service


class _Response:
    def __init__(self, payload=None, status=200, bad_json=False):
        self._payload = payload
        self.status_code = status
        self._bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


def _patch_get(monkeypatch, response=None, exc=None, seen=None):
    def _get(url, timeout=None):
        if seen is not None:
            seen.append((url, timeout))
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(service.requests, "get", _get)


def test_fetch_countries_returns_list(monkeypatch) -> None:
    seen = []
    _patch_get(monkeypatch, _Response([{"name": "A"}]), seen=seen)
    ok, data = service.fetch_countries(url="http://countries.test", timeout=3)
    assert ok is True
    assert data == [{"name": "A"}]
    assert seen == [("http://countries.test", 3)]


def test_fetch_uses_configured_timeout(monkeypatch) -> None:
    seen = []
    _patch_get(monkeypatch, _Response([]), seen=seen)
    service.fetch_countries()
    assert seen[0][1] == service.settings.fetch_timeout


@pytest.mark.parametrize(
    "kwargs",
    [
        {"exc": requests.Timeout("read timed out")},
        {"exc": requests.ConnectionError("refused")},
        {"response": _Response(status=502)},
        {"response": _Response(bad_json=True)},
    ],
)
def test_fetch_countries_failures(monkeypatch, kwargs) -> None:
    _patch_get(monkeypatch, **kwargs)
    ok, cause = service.fetch_countries()
    assert ok is False
    assert cause == "Could not fetch data from Countries API"


def test_fetch_countries_rejects_non_list(monkeypatch) -> None:
    _patch_get(monkeypatch, _Response({"message": "oops"}))
    ok, cause = service.fetch_countries()
    assert ok is False
    assert "payload invalid" in cause


def test_fetch_exchange_rates_extracts_rates(monkeypatch) -> None:
    _patch_get(monkeypatch, _Response({"result": "success", "rates": {"USD": 1, "NGN": 1600.5}}))
    ok, rates = service.fetch_exchange_rates()
    assert ok is True
    assert rates == {"USD": 1, "NGN": 1600.5}


def test_fetch_exchange_rates_timeout(monkeypatch) -> None:
    _patch_get(monkeypatch, exc=requests.Timeout("slow"))
    ok, cause = service.fetch_exchange_rates()
    assert ok is False
    assert cause == "Could not fetch data from Exchange Rates API"


@pytest.mark.parametrize("payload", [{"result": "error"}, {"rates": []}, ["USD"]])
def test_fetch_exchange_rates_invalid_payload(monkeypatch, payload) -> None:
    _patch_get(monkeypatch, _Response(payload))
    ok, cause = service.fetch_exchange_rates()
    assert ok is False
    assert cause == "Exchange rates payload invalid"
