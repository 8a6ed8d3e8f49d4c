"""
Tests for EntryQueryService with a fake HTTP session.
"""

import os
import tempfile

import pytest
import requests

from lshstore import (
    DimensionMismatchError,
    EmptyInputError,
    EntryCache,
    EntryQueryService,
    FetchError,
    InvalidEntriesError,
)
from lshstore.service import dedupe_entries

URL = "https://example.com/sfdc/account.json"

ENTRIES = [
    {"id": "x", "vector": [1, 0, 0, 0], "payload": {"field": "Name"}},
    {"id": "y", "vector": [0, 1, 0, 0], "payload": {"field": "Industry"}},
]


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Records requested URLs and replays a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def cache(temp_db):
    cache = EntryCache(db_path=temp_db, ttl_seconds=3600)
    yield cache
    cache.close()


class TestQuery:
    """Test the fetch-upsert-query flow."""

    def test_query_ranks_entries(self):
        session = FakeSession(FakeResponse(payload=ENTRIES))
        service = EntryQueryService(session=session, timeout=5)

        results = service.query(URL, [1, 0, 0, 0], k=1)
        assert len(results) == 1
        assert results[0]["id"] == "x"
        assert results[0]["payload"] == {"field": "Name"}
        assert results[0]["score"] == pytest.approx(1.0, abs=1e-6)
        assert session.calls == [(URL, 5)]

    def test_cache_used_on_second_query(self, cache):
        session = FakeSession(FakeResponse(payload=ENTRIES))
        service = EntryQueryService(cache=cache, session=session)

        first = service.query(URL, [0, 1, 0, 0], k=2)
        second = service.query(URL, [0, 1, 0, 0], k=2)

        assert len(session.calls) == 1
        assert [r["id"] for r in first] == [r["id"] for r in second]
        assert cache.get(URL) == ENTRIES

    def test_duplicates_keep_first(self):
        entries = ENTRIES + [{"id": "x", "vector": [0, 0, 1, 0], "payload": {"field": "Other"}}]
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=entries)))

        results = service.query(URL, [1, 0, 0, 0], k=3)
        ids = [r["id"] for r in results]
        assert sorted(ids) == ["x", "y"]
        assert results[0] == {"id": "x", "payload": {"field": "Name"}, "score": pytest.approx(1.0, abs=1e-6)}

    def test_empty_entries(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=[])))
        assert service.query(URL, [1, 0, 0, 0]) == []

    def test_mixed_dimension_entries_skipped(self, caplog):
        """Test that entries of a different dimension are skipped, not fatal."""
        entries = ENTRIES + [
            {"id": "short", "vector": [1, 0, 0], "payload": {"field": "Short"}},
            {"id": "long", "vector": [1, 0, 0, 0, 0], "payload": {"field": "Long"}},
        ]
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=entries)))

        with caplog.at_level("WARNING", logger="lshstore.service"):
            results = service.query(URL, [1, 0, 0, 0], k=5)

        assert sorted(r["id"] for r in results) == ["x", "y"]
        assert results[0]["id"] == "x"
        assert "short" in caplog.text
        assert "long" in caplog.text

    def test_store_options_passed_through(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=ENTRIES)), tables=2, bits=4)
        assert service.query(URL, [0, 1, 0, 0], k=1)[0]["id"] == "y"


class TestValidation:
    """Test error reporting."""

    def test_missing_inputs(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=ENTRIES)))
        with pytest.raises(EmptyInputError) as exc_info:
            service.query("", [1, 0, 0, 0])
        assert exc_info.value.status_code == 400
        with pytest.raises(EmptyInputError):
            service.query(URL, [])

    def test_dimension_mismatch(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(payload=ENTRIES)))
        with pytest.raises(DimensionMismatchError):
            service.query(URL, [1, 0, 0])

    def test_http_error(self, cache):
        service = EntryQueryService(cache=cache, session=FakeSession(FakeResponse(status_code=404)))
        with pytest.raises(FetchError) as exc_info:
            service.query(URL, [1, 0, 0, 0])
        assert exc_info.value.status_code == 502
        assert "404" in str(exc_info.value)
        assert cache.get(URL) is None

    def test_connection_error(self):
        session = FakeSession(error=requests.ConnectionError("connection refused"))
        service = EntryQueryService(session=session)
        with pytest.raises(FetchError):
            service.query(URL, [1, 0, 0, 0])

    def test_invalid_json(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(invalid_json=True)))
        with pytest.raises(InvalidEntriesError):
            service.query(URL, [1, 0, 0, 0])

    def test_not_an_array(self):
        service = EntryQueryService(session=FakeSession(FakeResponse(payload={"entries": ENTRIES})))
        with pytest.raises(InvalidEntriesError):
            service.query(URL, [1, 0, 0, 0])


class TestDedupe:
    def test_dedupe_entries(self):
        entries = [{"id": "a", "n": 1}, {"n": 2}, {"id": "a", "n": 3}, {"id": "b"}, "junk"]
        assert dedupe_entries(entries) == [{"id": "a", "n": 1}, {"id": "b"}]
