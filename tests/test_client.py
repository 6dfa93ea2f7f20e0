"""
Tests for the HubSpot client, with the HTTP session mocked out.
"""

from unittest.mock import MagicMock

import pytest
import requests

from crmdedupe.client import (
    HubSpotClient,
    NotFoundError,
    RateLimitedError,
    StoreError,
)
from crmdedupe.schema import ORGANIZATION, PERSON
from crmdedupe.search import all_of, eq


def make_response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    else:
        resp.raise_for_status.return_value = None
    return resp


def html_response():
    """A 200 reply whose body is a gateway page rather than JSON."""
    resp = requests.Response()
    resp.status_code = 200
    resp._content = b"<html>gateway</html>"
    return resp


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def client(session):
    return HubSpotClient("token-123", base_url="https://api.example.test/", session=session)


class TestHubSpotClient:
    """Test request shapes and error mapping."""

    def test_requires_token(self):
        with pytest.raises(ValueError):
            HubSpotClient("")

    def test_auth_header(self, client, session):
        assert session.headers["Authorization"] == "Bearer token-123"

    def test_get_record(self, client, session):
        session.request.return_value = make_response(payload={"id": "7", "properties": {"firstname": "Jane"}})

        record = client.get_record(PERSON, "7", ["firstname", "lastname"])

        assert record.id == "7"
        assert record.get("firstname") == "Jane"
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.example.test/crm/v3/objects/contacts/7")
        assert kwargs["params"] == {"properties": "firstname,lastname"}

    def test_search_body(self, client, session):
        session.request.return_value = make_response(payload={"results": [
            {"id": "1", "properties": {"name": "Acme"}},
            {"id": "2", "properties": {"name": "Acme Co"}},
        ]})

        records = client.search(ORGANIZATION, all_of(eq("domain", "acme.com")), ["name"], 10)

        assert [r.id for r in records] == ["1", "2"]
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://api.example.test/crm/v3/objects/companies/search")
        assert kwargs["json"]["filterGroups"][0]["filters"][0]["propertyName"] == "domain"
        assert kwargs["json"]["limit"] == 10

    def test_search_without_results_key(self, client, session):
        session.request.return_value = make_response(payload={})
        assert client.search(PERSON, all_of(eq("email", "x")), ["email"], 10) == []

    def test_merge_body(self, client, session):
        session.request.return_value = make_response(payload=None)

        client.merge_records(ORGANIZATION, "1", "2")

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://api.example.test/crm/v3/objects/companies/merge")
        assert kwargs["json"] == {"primaryObjectId": "1", "objectIdToMerge": "2"}

    def test_update_body(self, client, session):
        session.request.return_value = make_response(payload={"id": "1", "properties": {}})

        client.update_record(PERSON, "1", {"phone": "+13053914414"})

        args, kwargs = session.request.call_args
        assert args == ("PATCH", "https://api.example.test/crm/v3/objects/contacts/1")
        assert kwargs["json"] == {"properties": {"phone": "+13053914414"}}

    def test_rate_limit_is_distinct(self, client, session):
        session.request.return_value = make_response(status=429)

        with pytest.raises(RateLimitedError) as exc_info:
            client.merge_records(PERSON, "1", "2")

        assert exc_info.value.status == 429

    def test_not_found(self, client, session):
        session.request.return_value = make_response(status=404)

        with pytest.raises(NotFoundError):
            client.get_record(PERSON, "1", ["firstname"])

    def test_other_http_error(self, client, session):
        session.request.return_value = make_response(status=500)

        with pytest.raises(StoreError) as exc_info:
            client.search(PERSON, all_of(eq("email", "x")), ["email"], 10)

        assert not isinstance(exc_info.value, RateLimitedError)
        assert exc_info.value.status == 500

    def test_timeout(self, client, session):
        session.request.side_effect = requests.exceptions.Timeout()

        with pytest.raises(StoreError, match="timed out"):
            client.get_record(PERSON, "1", ["firstname"])

    def test_unknown_kind(self, client):
        with pytest.raises(ValueError):
            client.get_record("animal", "1", [])

    def test_non_json_body(self, client, session):
        session.request.return_value = html_response()

        with pytest.raises(StoreError, match="Malformed HubSpot response"):
            client.get_record(PERSON, "1", ["firstname"])

    def test_non_json_merge_reply(self, client, session):
        session.request.return_value = html_response()

        with pytest.raises(StoreError):
            client.merge_records(ORGANIZATION, "1", "2")
