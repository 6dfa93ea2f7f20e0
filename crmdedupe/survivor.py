"""
Survivor Selection.

Responsibilities:
- Pick the record that survives a merge and the records merged into it.
- Contacts: exactly one match; the most recently engaged record survives.
- Companies: the oldest record across the whole matched group survives.

Non-Responsibilities:
- No store calls.
- No merge execution.

Invariant:
A previously merged company is only merged again when the match came
from the domain tier.
"""

import math
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence

from .logger import get_logger
from .schema import STATUS_AMBIGUOUS, STATUS_NO_MATCH, Record
from .strategies import MatchResult

logger = get_logger()

READY = "ready"
CONTACT_RECENCY_FIELD = "hs_analytics_last_timestamp"
COMPANY_CREATED_FIELD = "createdate"
COMPANY_MERGED_FLAG = "hs_is_merged"
REMERGE_STRATEGIES = frozenset({"domain"})


class MergeDecision(NamedTuple):
    survivor_id: str
    merge_ids: List[str]
    strategy: str
    skipped_ids: Sequence[str] = ()


class Selection(NamedTuple):
    status: str
    reason: str
    decision: Optional[MergeDecision] = None


def parse_timestamp(value: Optional[str]) -> Optional[float]:
    """
    Parse a CRM timestamp into epoch milliseconds.

    Accepts epoch milliseconds or ISO 8601 (with or without 'Z'). Naive
    datetimes are read as UTC. Returns None for missing or unparseable
    values.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return float(text)
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp", value=text)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000


def recency(record: Record) -> float:
    ts = parse_timestamp(record.get(CONTACT_RECENCY_FIELD))
    return ts if ts is not None else 0.0


def select_contact_survivor(enrolled: Record, match: MatchResult) -> Selection:
    """
    Pick the surviving contact from the enrolled record and a single match.

    Ties keep the enrolled contact as survivor.
    """
    if match.count == 0:
        return Selection(STATUS_NO_MATCH, "no_matching_contact")
    if match.count > 1:
        return Selection(STATUS_AMBIGUOUS, "too_many_matches")

    ranked = sorted([enrolled, match.candidates[0]], key=recency, reverse=True)
    primary, secondary = ranked
    if str(primary.id) == str(secondary.id):
        return Selection(STATUS_AMBIGUOUS, "same_ids")

    return Selection(READY, "", MergeDecision(str(primary.id), [str(secondary.id)], match.strategy))


def is_previously_merged(record: Record) -> bool:
    return (record.get(COMPANY_MERGED_FLAG) or "false").strip().lower() == "true"


def _age_key(record: Record):
    created = parse_timestamp(record.get(COMPANY_CREATED_FIELD))
    rid = str(record.id)
    return (
        created if created is not None else math.inf,
        int(rid) if rid.isdigit() else math.inf,
        rid,
    )


def select_company_survivor(enrolled: Record, candidates: List[Record], strategy: str) -> MergeDecision:
    """
    Oldest company by createdate survives; the rest are merge targets.

    Records without a createdate are never preferred over dated ones.
    Equal creation times fall back to the lower numeric id.
    """
    group: List[Record] = []
    seen = set()
    for record in [enrolled, *candidates]:
        if record.id in seen:
            continue
        seen.add(record.id)
        group.append(record)

    survivor = min(group, key=_age_key)
    merge_ids: List[str] = []
    skipped_ids: List[str] = []
    for record in group:
        if record.id == survivor.id:
            continue
        if is_previously_merged(record) and strategy not in REMERGE_STRATEGIES:
            logger.info("Skipping previously merged company", company_id=record.id, strategy=strategy)
            skipped_ids.append(str(record.id))
            continue
        merge_ids.append(str(record.id))

    return MergeDecision(str(survivor.id), merge_ids, strategy, skipped_ids)
