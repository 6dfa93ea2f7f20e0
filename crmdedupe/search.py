"""
Candidate search against the CRM store.

Builds structured search requests (filter groups or free text) and runs
them through a paced adapter that drops the subject's own record.
"""

import time
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from .logger import get_logger
from .schema import Record

logger = get_logger()

EQ = "EQ"
CONTAINS_TOKEN = "CONTAINS_TOKEN"
OPERATORS = (EQ, CONTAINS_TOKEN)

PAGE_SIZE = 10
SEARCH_SPACING = 0.25  # seconds charged after every store call


class Filter(NamedTuple):
    property: str
    operator: str
    value: str


class SearchRequest(NamedTuple):
    """
    Either OR-ed filter groups (each an AND-ed list of filters) or a
    free-text query. Free-text results are relevance ranked and may
    not contain every matching record.
    """

    filter_groups: Sequence[Sequence[Filter]] = ()
    query: Optional[str] = None

    def to_body(self, properties: Sequence[str], limit: int) -> Dict:
        body: Dict = {"properties": list(properties), "limit": limit}
        if self.query is not None:
            body["query"] = self.query
        if self.filter_groups:
            body["filterGroups"] = [
                {"filters": [
                    {"propertyName": f.property, "operator": f.operator, "value": f.value}
                    for f in group
                ]}
                for group in self.filter_groups
            ]
        return body


def eq(prop: str, value: str) -> Filter:
    return Filter(prop, EQ, value)


def contains_token(prop: str, value: str) -> Filter:
    return Filter(prop, CONTAINS_TOKEN, value)


def all_of(*filters: Filter) -> SearchRequest:
    return SearchRequest(filter_groups=[list(filters)])


def any_of(*groups: Sequence[Filter]) -> SearchRequest:
    return SearchRequest(filter_groups=[list(g) for g in groups])


def text_query(query: str) -> SearchRequest:
    return SearchRequest(query=query)


class CandidateSearch:
    """
    Paced search adapter bound to one resolution run.

    Every store call is followed by a fixed pause, whether it succeeded or
    raised. Store errors propagate unchanged.
    """

    def __init__(
        self,
        store,
        kind: str,
        subject_id: str,
        properties: Sequence[str],
        limit: int = PAGE_SIZE,
        spacing: float = SEARCH_SPACING,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.kind = kind
        self.subject_id = str(subject_id)
        self.properties = list(properties)
        self.limit = limit
        self.spacing = spacing
        self.sleep = sleep
        self.calls = 0

    def search(self, request: SearchRequest) -> List[Record]:
        """Run one search and return candidates other than the subject."""
        self.calls += 1
        logger.record_search()
        try:
            results = self.store.search(self.kind, request, self.properties, self.limit)
        finally:
            self.sleep(self.spacing)
        candidates = [r for r in results if str(r.id) != self.subject_id]
        logger.debug(
            "Search returned candidates",
            kind=self.kind,
            request=request.to_body(self.properties, self.limit),
            returned=len(results),
            candidates=len(candidates),
        )
        return candidates

    def fetch(self, record_id: str, properties: Sequence[str]) -> Record:
        """Fetch one record by id, paced like a search."""
        self.calls += 1
        try:
            return self.store.get_record(self.kind, str(record_id), list(properties))
        finally:
            self.sleep(self.spacing)
