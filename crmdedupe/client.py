"""
HubSpot CRM v3 client.

Exposes the four store operations the dedupe engine relies on
(get, search, update, merge) and maps HTTP failures onto a small
exception family so callers can tell throttling apart from other errors.
"""

from typing import Any, Dict, List, Optional, Sequence

import requests

from .logger import get_logger
from .schema import ORGANIZATION, PERSON, Record

logger = get_logger()

DEFAULT_BASE_URL = "https://api.hubapi.com"
RATE_LIMIT_STATUS = 429

OBJECT_TYPES = {
    PERSON: "contacts",
    ORGANIZATION: "companies",
}


class StoreError(Exception):
    """A store call failed. `status` holds the HTTP status when known."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimitedError(StoreError):
    """The store throttled the caller; the call may be retried later."""


class NotFoundError(StoreError):
    """The requested record does not exist."""


def _object_type(kind: str) -> str:
    try:
        return OBJECT_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {kind}")


def _to_record(kind: str, data: Dict[str, Any]) -> Record:
    return Record(id=str(data.get("id")), kind=kind, properties=dict(data.get("properties") or {}))


class HubSpotClient:
    """Thin requests-based client for the CRM objects API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ):
        if not access_token:
            raise ValueError("Missing HubSpot access token. Set HUBSPOT_TOKEN or pass --token.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        })

    def _request(self, method: str, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        logger.record_api_call()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == RATE_LIMIT_STATUS:
                logger.record_rate_limit()
                logger.warning("HubSpot rate limit hit", method=method, path=path)
                raise RateLimitedError(f"HubSpot rate limited (429): {method} {path}", status=status)
            if status == 404:
                raise NotFoundError(f"HubSpot object not found (404): {path}", status=status)
            logger.error("HubSpot request failed", method=method, path=path, status=status)
            raise StoreError(f"HubSpot request failed ({status}): {method} {path}", status=status)
        except requests.exceptions.Timeout:
            logger.warning("HubSpot request timed out", method=method, path=path)
            raise StoreError(f"HubSpot request timed out: {method} {path}")
        except requests.exceptions.RequestException as e:
            logger.error("HubSpot request error", method=method, path=path, error=str(e))
            raise StoreError(f"HubSpot request error: {e}")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.error("HubSpot response is not JSON", method=method, path=path)
            raise StoreError(f"Malformed HubSpot response: {method} {path}") from e

    def get_record(self, kind: str, record_id: str, properties: Sequence[str]) -> Record:
        object_type = _object_type(kind)
        data = self._request(
            "GET",
            f"/crm/v3/objects/{object_type}/{record_id}",
            params={"properties": ",".join(properties)},
        )
        if not data or "properties" not in data:
            raise StoreError(f"Malformed {object_type} response for {record_id}")
        return _to_record(kind, data)

    def search(self, kind: str, request, properties: Sequence[str], limit: int) -> List[Record]:
        object_type = _object_type(kind)
        data = self._request(
            "POST",
            f"/crm/v3/objects/{object_type}/search",
            json=request.to_body(properties, limit),
        ) or {}
        results = data.get("results")
        if not isinstance(results, list):
            return []
        return [_to_record(kind, r) for r in results]

    def update_record(self, kind: str, record_id: str, properties: Dict[str, str]) -> None:
        object_type = _object_type(kind)
        self._request(
            "PATCH",
            f"/crm/v3/objects/{object_type}/{record_id}",
            json={"properties": properties},
        )

    def merge_records(self, kind: str, primary_id: str, secondary_id: str) -> None:
        object_type = _object_type(kind)
        self._request(
            "POST",
            f"/crm/v3/objects/{object_type}/merge",
            json={"primaryObjectId": str(primary_id), "objectIdToMerge": str(secondary_id)},
        )
