"""
Merge execution against the CRM store.

Targets are merged into the survivor one at a time. Throttled merges are
retried with exponential backoff; any other failure marks that target as
failed and the executor moves on to the next one.
"""

import time
from typing import Callable, List, NamedTuple, Optional

from .client import RateLimitedError, StoreError
from .logger import get_logger
from .retry import RetryError, call_with_backoff
from .schema import MERGE_FAILED, MERGE_MERGED, MERGE_SKIPPED
from .survivor import MergeDecision

logger = get_logger()

MERGE_MAX_RETRIES = 3
MERGE_BASE_DELAY = 0.5  # seconds, doubled on each retry
MERGE_SPACING = 0.25  # seconds charged after every merge attempt


class MergeOutcome(NamedTuple):
    record_id: str
    status: str
    reason: Optional[str] = None


class MergeSummary(NamedTuple):
    survivor_id: str
    outcomes: List[MergeOutcome]

    def _ids(self, status: str) -> List[str]:
        return [o.record_id for o in self.outcomes if o.status == status]

    @property
    def merged_ids(self) -> List[str]:
        return self._ids(MERGE_MERGED)

    @property
    def failed_ids(self) -> List[str]:
        return self._ids(MERGE_FAILED)

    @property
    def skipped_ids(self) -> List[str]:
        return self._ids(MERGE_SKIPPED)

    @property
    def merged_count(self) -> int:
        return len(self.merged_ids)


class MergeExecutor:
    def __init__(
        self,
        store,
        kind: str,
        max_retries: int = MERGE_MAX_RETRIES,
        base_delay: float = MERGE_BASE_DELAY,
        spacing: float = MERGE_SPACING,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.kind = kind
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.spacing = spacing
        self.sleep = sleep

    def _on_retry(self, attempt: int, error: Exception, delay: float):
        logger.warning(
            "Merge rate limited, backing off",
            attempt=attempt,
            delay_seconds=delay,
            error=str(error),
        )

    def merge_one(self, primary_id: str, secondary_id: str) -> MergeOutcome:
        """Merge secondary into primary; never raises for store errors."""
        logger.record_merge_attempt()
        try:
            call_with_backoff(
                lambda: self.store.merge_records(self.kind, primary_id, secondary_id),
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                exceptions=(RateLimitedError,),
                on_retry=self._on_retry,
                sleep=self.sleep,
            )
        except (RetryError, StoreError) as e:
            logger.record_merge_failure()
            logger.error("Merge failed", primary_id=primary_id, secondary_id=secondary_id, error=str(e))
            return MergeOutcome(secondary_id, MERGE_FAILED, str(e))
        finally:
            self.sleep(self.spacing)

        logger.record_merge_success()
        logger.info("Merged record", primary_id=primary_id, secondary_id=secondary_id)
        return MergeOutcome(secondary_id, MERGE_MERGED)

    def execute(self, decision: MergeDecision) -> MergeSummary:
        outcomes: List[MergeOutcome] = []
        for record_id in decision.skipped_ids:
            logger.record_merge_skip()
            outcomes.append(MergeOutcome(record_id, MERGE_SKIPPED, "previously_merged"))
        for record_id in decision.merge_ids:
            outcomes.append(self.merge_one(decision.survivor_id, record_id))
        return MergeSummary(decision.survivor_id, outcomes)
