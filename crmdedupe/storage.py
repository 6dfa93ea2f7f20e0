import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .schema import ENTITY_KINDS


def load_records_file(path: Path) -> List[Dict[str, Any]]:
    """
    Read a JSON export of CRM records.

    Expected shape: {"records": [{"id", "kind", "properties", "created_at"?}]}.
    A bare list of records is accepted too.
    """
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        return []
    data = json.loads(content)
    records = data.get("records", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"'records' must be a list in {path}")
    return records


def validate_record_entry(entry: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    if not isinstance(entry, dict):
        return ["Record entry must be an object"]
    if not str(entry.get("id") or "").strip():
        errors.append("Missing required field: id")
    if entry.get("kind") not in ENTITY_KINDS:
        errors.append(f"Field 'kind' must be one of {', '.join(ENTITY_KINDS)}")
    if not isinstance(entry.get("properties", {}), dict):
        errors.append("Field 'properties' must be an object")
    return errors


def parse_created_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    # SQLite stores naive datetimes; keep everything in UTC
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def seed_store(store, records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Add records to a LocalStore. Returns counts and per-entry errors."""
    loaded = 0
    errors: Dict[str, List[str]] = {}
    for i, entry in enumerate(records):
        problems = validate_record_entry(entry)
        if problems:
            errors[str(entry.get("id", f"#{i}")) if isinstance(entry, dict) else f"#{i}"] = problems
            continue
        props = {k: (None if v is None else str(v)) for k, v in entry.get("properties", {}).items()}
        created_at = parse_created_at(entry.get("created_at") or props.get("createdate"))
        store.add_record(entry["kind"], str(entry["id"]), props, created_at=created_at)
        loaded += 1
    return {"loaded": loaded, "errors": errors}
