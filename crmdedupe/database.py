"""
Local SQLite record store.

Uses SQLite with SQLAlchemy to hold CRM records and implements the same
get/search/update/merge operations as the HubSpot client, so the engine
can run against a local copy of the data.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, Column, String, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker

from .client import NotFoundError, StoreError
from .schema import ENTITY_KINDS, Record
from .search import CONTAINS_TOKEN, EQ, Filter, SearchRequest

Base = declarative_base()

_TOKEN = re.compile(r"[a-z0-9]+")


class CrmRecord(Base):
    """CRM object model."""

    __tablename__ = "crm_records"

    id = Column(String, primary_key=True)
    kind = Column(String, nullable=False, index=True)  # person, organization
    properties = Column(Text, nullable=False, default="{}")  # JSON object
    merged_into = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def load_properties(self) -> Dict[str, Any]:
        return json.loads(self.properties or "{}")

    def store_properties(self, props: Dict[str, Any]) -> None:
        self.properties = json.dumps(props, ensure_ascii=False, sort_keys=True)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine)
    return Session()


def _tokens(s: str) -> List[str]:
    return _TOKEN.findall(s.lower())


def _contains_token(haystack: str, needle: str) -> bool:
    """True when needle's tokens appear as a contiguous run in haystack's."""
    h, n = _tokens(haystack), _tokens(needle)
    if not n:
        return False
    return any(h[i:i + len(n)] == n for i in range(len(h) - len(n) + 1))


def _filter_matches(props: Dict[str, Any], f: Filter) -> bool:
    value = (props.get(f.property) or "").strip()
    if f.operator == EQ:
        return value.lower() == f.value.strip().lower()
    if f.operator == CONTAINS_TOKEN:
        return _contains_token(value, f.value)
    raise StoreError(f"Unsupported filter operator: {f.operator}", status=400)


def _request_matches(props: Dict[str, Any], request: SearchRequest, properties: Sequence[str]) -> bool:
    if request.filter_groups and not any(
        all(_filter_matches(props, f) for f in group) for group in request.filter_groups
    ):
        return False
    if request.query is not None:
        terms = request.query.lower().split()
        values = [(props.get(p) or "").lower() for p in properties]
        if not any(term in value for term in terms for value in values):
            return False
    return True


class LocalStore:
    """CRM store backed by a SQLite file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)

    def _active(self, session, kind: str, record_id: str) -> CrmRecord:
        row = session.get(CrmRecord, str(record_id))
        if row is None or row.kind != kind or row.merged_into is not None:
            raise NotFoundError(f"{kind} {record_id} not found", status=404)
        return row

    def add_record(self, kind: str, record_id: str, properties: Dict[str, Any],
                   created_at: Optional[datetime] = None) -> None:
        if kind not in ENTITY_KINDS:
            raise ValueError(f"Unknown entity kind: {kind}")
        session = get_session(self.db_path)
        try:
            row = session.get(CrmRecord, str(record_id)) or CrmRecord(id=str(record_id), kind=kind)
            row.kind = kind
            row.merged_into = None
            row.store_properties({k: v for k, v in properties.items() if v is not None})
            if created_at is not None:
                row.created_at = created_at
            session.add(row)
            session.commit()
        finally:
            session.close()

    def get_record(self, kind: str, record_id: str, properties: Sequence[str]) -> Record:
        session = get_session(self.db_path)
        try:
            props = self._active(session, kind, record_id).load_properties()
            return Record(str(record_id), kind, {p: props.get(p) for p in properties})
        finally:
            session.close()

    def search(self, kind: str, request: SearchRequest, properties: Sequence[str], limit: int) -> List[Record]:
        session = get_session(self.db_path)
        try:
            rows = (
                session.query(CrmRecord)
                .filter(CrmRecord.kind == kind, CrmRecord.merged_into.is_(None))
                .order_by(CrmRecord.created_at, CrmRecord.id)
                .all()
            )
            results = []
            for row in rows:
                props = row.load_properties()
                if _request_matches(props, request, properties):
                    results.append(Record(row.id, kind, {p: props.get(p) for p in properties}))
                    if len(results) >= limit:
                        break
            return results
        finally:
            session.close()

    def update_record(self, kind: str, record_id: str, properties: Dict[str, str]) -> None:
        session = get_session(self.db_path)
        try:
            row = self._active(session, kind, record_id)
            props = row.load_properties()
            props.update(properties)
            row.store_properties(props)
            session.commit()
        finally:
            session.close()

    def merge_records(self, kind: str, primary_id: str, secondary_id: str) -> None:
        """Fold secondary into primary; primary keeps its own non-empty values."""
        if str(primary_id) == str(secondary_id):
            raise StoreError("Cannot merge a record into itself", status=400)
        session = get_session(self.db_path)
        try:
            primary = self._active(session, kind, primary_id)
            secondary = self._active(session, kind, secondary_id)

            primary_props = primary.load_properties()
            secondary_props = secondary.load_properties()
            merged = dict(secondary_props)
            merged.update({k: v for k, v in primary_props.items() if v not in (None, "")})
            absorbed = []
            for props in (primary_props, secondary_props):
                absorbed.extend(i for i in (props.get("hs_merged_object_ids") or "").split(";") if i)
            absorbed.append(str(secondary_id))
            merged["hs_merged_object_ids"] = ";".join(absorbed)
            primary.store_properties(merged)

            secondary.merged_into = str(primary_id)
            session.commit()
        finally:
            session.close()

    def merged_into(self, record_id: str) -> Optional[str]:
        """Id of the record this one was merged into, if any."""
        session = get_session(self.db_path)
        try:
            row = session.get(CrmRecord, str(record_id))
            return row.merged_into if row is not None else None
        finally:
            session.close()
