"""
Resolution runs for contacts and companies.

A run normalizes the enrolled record, walks the match strategies, picks a
survivor and merges. Every run ends in a result dict with a status; store
errors are reported through that dict rather than raised.
"""

import time
from typing import Any, Callable, Dict, List

from .client import NotFoundError, StoreError
from .logger import get_logger
from .merge import MergeExecutor
from .normalize import normalize_company, normalize_contact
from .retry import RetryError
from .schema import (
    COMPANY_PROPERTIES,
    CONTACT_PROPERTIES,
    MERGE_MERGED,
    ORGANIZATION,
    PERSON,
    STATUS_ERROR,
    STATUS_MERGED,
    STATUS_NO_MATCH,
    STATUS_SKIPPED,
    Record,
    validate_company_input,
    validate_contact_input,
)
from .search import CandidateSearch
from .strategies import COMPANY_STRATEGIES, CONTACT_STRATEGIES, NO_MATCH, run_pipeline
from .survivor import READY, select_company_survivor, select_contact_survivor

logger = get_logger()

COMPANY_INPUT_FIELDS = ("name", "domain", "website", "createdate")


def _finish(result: Dict[str, Any]) -> Dict[str, Any]:
    logger.record_run(result["status"])
    logger.info("Run finished", **result)
    return result


def _contact_result(status: str, reason: str, match_strategy: str = NO_MATCH,
                    matches_found: int = 0, **extra) -> Dict[str, Any]:
    return _finish({
        "status": status,
        "match_strategy": match_strategy,
        "matches_found": matches_found,
        "reason": reason,
        **extra,
    })


def dedupe_contact(store, contact_id: str, sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
    """
    Find a duplicate of one contact and merge the pair.

    Merges only when exactly one candidate survives the first matching
    strategy. The contact with the most recent analytics timestamp is kept.
    """
    contact_id = str(contact_id)
    logger.info("Processing contact", contact_id=contact_id)

    try:
        enrolled = store.get_record(PERSON, contact_id, CONTACT_PROPERTIES)

        errors = validate_contact_input(enrolled.properties)
        if errors:
            logger.warning("Missing name, skipping dedupe", contact_id=contact_id, errors=errors)
            return _contact_result(STATUS_SKIPPED, "missing_name")

        subject = normalize_contact(enrolled)
        search = CandidateSearch(store, PERSON, contact_id, CONTACT_PROPERTIES, sleep=sleep)
        match = run_pipeline(subject, CONTACT_STRATEGIES, search)

        selection = select_contact_survivor(enrolled, match)
        if selection.status != READY:
            logger.info("No merge performed", reason=selection.reason, matches=match.count)
            return _contact_result(selection.status, selection.reason, match.strategy, match.count)

        decision = selection.decision
        primary_id, merged_id = decision.survivor_id, decision.merge_ids[0]
        logger.info("Merging contacts", primary_id=primary_id, merged_id=merged_id)
        summary = MergeExecutor(store, PERSON, sleep=sleep).execute(decision)
        outcome = summary.outcomes[0]
        if outcome.status != MERGE_MERGED:
            return _contact_result(STATUS_ERROR, outcome.reason or "merge_failed", match.strategy, 1,
                                   primary_id=primary_id, merged_id=merged_id)

        return _contact_result(STATUS_MERGED, "merge_successful", match.strategy, 1,
                               primary_id=primary_id, merged_id=merged_id)

    except (StoreError, RetryError) as e:
        logger.error("Error during dedupe/merge", contact_id=contact_id, error=str(e))
        return _contact_result(STATUS_ERROR, str(e) or "Unknown error")


def _company_result(status: str, reason: str, **fields) -> Dict[str, Any]:
    result = {
        "status": status,
        "match_strategy": NO_MATCH,
        "matches_found": 0,
        "merged_count": 0,
        "total_records_considered": 0,
        "merged_ids": [],
        "failed_ids": [],
        "skipped_ids": [],
        "survivor_id": "",
        "survivor_name": "",
        "survivor_createdate": "",
        "reason": reason,
    }
    result.update(fields)
    return _finish(result)


def _is_provided(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _enrolled_company(store, fields: Dict[str, Any]) -> Record:
    """Build the enrolled company from input fields, fetching what is absent."""
    company_id = str(fields["hs_object_id"]).strip()
    # blank inputs count as absent and are filled from the store
    properties = {f: fields[f] for f in COMPANY_PROPERTIES if _is_provided(fields.get(f))}
    if any(f not in properties for f in COMPANY_INPUT_FIELDS):
        fetched = store.get_record(ORGANIZATION, company_id, COMPANY_PROPERTIES)
        properties = {**fetched.properties, **properties}
    return Record(company_id, ORGANIZATION, properties)


def _summary_status(merged: int, failed: int) -> str:
    if merged:
        return STATUS_MERGED
    if failed:
        return STATUS_ERROR
    return STATUS_SKIPPED


def dedupe_company(store, fields: Dict[str, Any], sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
    """
    Find duplicates of one company and merge them all into the oldest.

    Args:
        store: CRM store client
        fields: Input bundle with `hs_object_id` and optionally name,
            domain, website and createdate
        sleep: Function used for pacing and backoff waits

    Returns:
        Result dict with status, match strategy, merged/failed/skipped ids
        and the survivor's identity
    """
    errors = validate_company_input(fields)
    if errors:
        logger.warning("Invalid company input", errors=errors)
        return _company_result(STATUS_SKIPPED, "invalid_company_id")

    company_id = str(fields["hs_object_id"]).strip()
    logger.info("Processing company", company_id=company_id)

    try:
        enrolled = _enrolled_company(store, fields)
        subject = normalize_company(enrolled)
        search = CandidateSearch(store, ORGANIZATION, company_id, COMPANY_PROPERTIES, sleep=sleep)
        match = run_pipeline(subject, COMPANY_STRATEGIES, search)

        if match.count == 0:
            return _company_result(
                STATUS_NO_MATCH, "no_matching_company",
                total_records_considered=1,
                survivor_id=company_id,
                survivor_name=subject.name,
                survivor_createdate=subject.createdate,
            )

        enriched: List[Record] = []
        for candidate in match.candidates:
            try:
                enriched.append(search.fetch(candidate.id, COMPANY_PROPERTIES))
            except NotFoundError:
                logger.warning("Matched company no longer exists", company_id=candidate.id)

        decision = select_company_survivor(enrolled, enriched, match.strategy)
        group = {r.id: r for r in [enrolled, *enriched]}
        survivor = group[decision.survivor_id]
        logger.info(
            "Survivor selected",
            survivor_id=survivor.id,
            merge_ids=decision.merge_ids,
            skipped_ids=list(decision.skipped_ids),
        )

        summary = MergeExecutor(store, ORGANIZATION, sleep=sleep).execute(decision)
        status = _summary_status(summary.merged_count, len(summary.failed_ids))
        return _company_result(
            status,
            f"{summary.merged_count} merged, {len(summary.failed_ids)} failed, "
            f"{len(summary.skipped_ids)} skipped",
            match_strategy=match.strategy,
            matches_found=match.count,
            merged_count=summary.merged_count,
            total_records_considered=len(group),
            merged_ids=summary.merged_ids,
            failed_ids=summary.failed_ids,
            skipped_ids=summary.skipped_ids,
            survivor_id=survivor.id,
            survivor_name=survivor.get("name") or "",
            survivor_createdate=survivor.get("createdate") or "",
        )

    except (StoreError, RetryError) as e:
        logger.error("Fatal error during company dedupe", company_id=company_id, error=str(e))
        return _company_result(
            STATUS_ERROR, f"Fatal error: {e}",
            survivor_id=company_id,
            survivor_name=fields.get("name") or "",
        )
