"""
Pytest configuration and shared fixtures.
"""

import re

import pytest
from typing import Dict, List, Optional

from crmdedupe.client import NotFoundError, RateLimitedError, StoreError
from crmdedupe.schema import ORGANIZATION, PERSON, Record
from crmdedupe.search import CONTAINS_TOKEN, EQ


class FakeStore:
    """
    In-memory CRM store with scripted failures.

    Filters compare case-insensitively; CONTAINS_TOKEN matches on word
    boundaries and free-text queries match when any query word is a
    substring of a property. Every call is recorded in `calls`.
    """

    def __init__(self, records: Optional[List[Record]] = None):
        self.records: Dict[str, Record] = {}
        for r in records or []:
            self.records[r.id] = r
        self.calls: List[tuple] = []
        self.merges: List[tuple] = []
        self.updates: List[tuple] = []
        self.merge_errors: Dict[str, List[Exception]] = {}
        self.update_errors: List[Exception] = []
        self.search_error: Optional[Exception] = None

    def add(self, record_id: str, kind: str = PERSON, **properties) -> Record:
        record = Record(str(record_id), kind, properties)
        self.records[record.id] = record
        return record

    def _project(self, record: Record, properties) -> Record:
        return Record(record.id, record.kind, {p: record.properties.get(p) for p in properties})

    def get_record(self, kind, record_id, properties):
        self.calls.append(("get", kind, str(record_id)))
        record = self.records.get(str(record_id))
        if record is None or record.kind != kind:
            raise NotFoundError(f"{kind} {record_id} not found", status=404)
        return self._project(record, properties)

    def _matches(self, record: Record, request, properties) -> bool:
        def ok(f):
            value = (record.properties.get(f.property) or "").lower()
            if f.operator == EQ:
                return value == f.value.lower()
            if f.operator == CONTAINS_TOKEN:
                return re.search(r"\b" + re.escape(f.value.lower()) + r"\b", value) is not None
            return False

        if request.filter_groups and not any(all(ok(f) for f in g) for g in request.filter_groups):
            return False
        if request.query is not None:
            terms = request.query.lower().split()
            return any(t in (record.properties.get(p) or "").lower() for t in terms for p in properties)
        return True

    def search(self, kind, request, properties, limit):
        self.calls.append(("search", kind, request))
        if self.search_error is not None:
            raise self.search_error
        found = [
            self._project(r, properties)
            for r in self.records.values()
            if r.kind == kind and self._matches(r, request, properties)
        ]
        return found[:limit]

    def update_record(self, kind, record_id, properties):
        self.calls.append(("update", kind, str(record_id)))
        if self.update_errors:
            raise self.update_errors.pop(0)
        self.updates.append((str(record_id), dict(properties)))

    def merge_records(self, kind, primary_id, secondary_id):
        self.calls.append(("merge", kind, str(primary_id), str(secondary_id)))
        pending = self.merge_errors.get(str(secondary_id))
        if pending:
            raise pending.pop(0)
        self.merges.append((str(primary_id), str(secondary_id)))

    def count(self, op: str) -> int:
        return sum(1 for c in self.calls if c[0] == op)


@pytest.fixture
def rate_limited():
    """Factory for the error a throttled store raises."""
    return lambda: RateLimitedError("HubSpot rate limited (429)", status=429)


@pytest.fixture
def server_error():
    """Factory for a non-retryable store failure."""
    return lambda: StoreError("HubSpot request failed (500)", status=500)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def sleep(sleeps):
    """Records requested delays instead of sleeping."""
    return sleeps.append


@pytest.fixture
def enrolled_contact(store) -> Record:
    return store.add(
        "101",
        firstname="Jane",
        lastname="Doe",
        phone="(305) 555-1234",
        email="jane.doe@acme.com",
        company="Acme",
        hs_analytics_last_timestamp="2024-01-10T12:00:00Z",
    )


@pytest.fixture
def enrolled_company(store) -> Record:
    return store.add(
        "500",
        kind=ORGANIZATION,
        name="Acme Corporation",
        domain="acme.com",
        website="https://www.acme.com/",
        createdate="2022-05-01T00:00:00Z",
        hs_is_merged="false",
    )
