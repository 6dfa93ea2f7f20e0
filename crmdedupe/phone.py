"""
Phone field normalization for a single contact.

Rewrites the contact's phone fields into E.164 (+1XXXXXXXXXX). Values that
cannot be normalized are left untouched. The update is retried when the
store throttles; exhausting the retries fails the whole run.
"""

import time
from typing import Any, Callable, Dict

from .client import StoreError
from .logger import get_logger
from .normalize import normalize_phone_number
from .retry import RetryError, exponential_backoff
from .schema import PERSON, PHONE_FIELDS, STATUS_ERROR

logger = get_logger()

STATUS_UPDATED = "updated"
STATUS_UNCHANGED = "unchanged"

UPDATE_MAX_RETRIES = 3
UPDATE_BASE_DELAY = 1.0


def normalized_phone_updates(properties: Dict[str, Any]) -> Dict[str, str]:
    """Return {field: normalized} for phone fields whose value would change."""
    updates: Dict[str, str] = {}
    for field in PHONE_FIELDS:
        raw = properties.get(field)
        if not raw:
            logger.debug("No value for phone field", field=field)
            continue
        normalized = normalize_phone_number(raw)
        if not normalized:
            logger.info("Unable to normalize phone field", field=field, value=raw)
            continue
        if normalized != raw:
            updates[field] = normalized
            logger.info("Normalized phone field", field=field, old=raw, new=normalized)
    return updates


def normalize_contact_phones(
    store,
    contact_id: str,
    max_retries: int = UPDATE_MAX_RETRIES,
    base_delay: float = UPDATE_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    contact_id = str(contact_id)
    logger.info("Starting phone normalization", contact_id=contact_id)

    def _on_retry(attempt, error, delay):
        logger.warning("Rate limited updating contact, retrying", attempt=attempt, delay_seconds=delay)

    @exponential_backoff(max_retries=max_retries, base_delay=base_delay, on_retry=_on_retry, sleep=sleep)
    def _update(updates: Dict[str, str]) -> None:
        store.update_record(PERSON, contact_id, updates)

    try:
        contact = store.get_record(PERSON, contact_id, PHONE_FIELDS)
        updates = normalized_phone_updates(contact.properties)
        if not updates:
            logger.info("No phone updates needed", contact_id=contact_id)
            result = {"status": STATUS_UNCHANGED, "updated_fields": {}}
        else:
            _update(updates)
            logger.info("Updated contact with normalized phones", contact_id=contact_id, fields=list(updates))
            result = {"status": STATUS_UPDATED, "updated_fields": updates}
    except (StoreError, RetryError) as e:
        logger.error("Phone normalization failed", contact_id=contact_id, error=str(e))
        result = {"status": STATUS_ERROR, "updated_fields": {}, "reason": str(e)}

    logger.record_run(result["status"])
    return result
