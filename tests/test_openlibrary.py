import requests

import openlibrary
from openlibrary import extract_summary, fetch_summary_by_isbn, normalize_isbn


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


def fake_get(responses, calls):
    def get(url, timeout):
        calls.append(url)
        response = responses[url]
        if isinstance(response, Exception):
            raise response
        return response
    return get


def test_normalize_isbn():
    assert normalize_isbn(" 978-0-14-143958-7 ") == "9780141439587"
    assert normalize_isbn(None) == ""


def test_extract_summary_shapes():
    assert extract_summary({"description": "  Plain. "}) == "Plain."
    assert extract_summary({"description": {"value": "Nested"}}) == "Nested"
    assert extract_summary({"description": "   "}) is None
    assert extract_summary({}) is None


def test_fetch_falls_back_to_work(monkeypatch):
    calls = []
    responses = {
        "https://openlibrary.org/isbn/9780141439587.json":
            FakeResponse(payload={"works": [{"key": "/works/OL66554W"}]}),
        "https://openlibrary.org/works/OL66554W.json":
            FakeResponse(payload={"description": {"value": "Emma Woodhouse..."}}),
    }
    monkeypatch.setattr(openlibrary.SESSION, "get", fake_get(responses, calls))

    assert fetch_summary_by_isbn("978-0141439587") == "Emma Woodhouse..."
    assert len(calls) == 2


def test_fetch_failures_mean_no_summary(monkeypatch):
    calls = []
    responses = {
        "https://openlibrary.org/isbn/1.json": FakeResponse(status_code=404),
        "https://openlibrary.org/isbn/2.json": requests.ConnectionError("offline"),
        "https://openlibrary.org/isbn/3.json": FakeResponse(payload=None),
    }
    monkeypatch.setattr(openlibrary.SESSION, "get", fake_get(responses, calls))

    assert fetch_summary_by_isbn("1") is None
    assert fetch_summary_by_isbn("2") is None
    assert fetch_summary_by_isbn("3") is None
    assert fetch_summary_by_isbn("") is None
    assert len(calls) == 3
