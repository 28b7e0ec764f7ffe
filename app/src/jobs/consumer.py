"""
Queue consumer for render jobs.

Takes one batch of raw queue messages, decodes each and hands it to the
orchestrator. A bad message or a crashing job never stops the rest of
the batch, and the batch as a whole always reports success: job-level
failure lives in the status store, not in queue redelivery, since a
redelivered message would re-run an expensive render for a job that is
already recorded as failed.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Optional, Union

from configs.config import get_config
from src.errors import ValidationError
from src.jobs.models import decode_message
from src.jobs.orchestrator import JobOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)
cfg = get_config()

RawMessage = Union[str, bytes, Dict[str, Any]]

REJECTED = "rejected"
CRASHED = "crashed"


class QueueConsumer:
    """Runs the orchestrator once per message with per-message isolation."""

    def __init__(
        self,
        orchestrator: JobOrchestrator,
        max_concurrency: int = cfg.WORKER_MAX_CONCURRENCY,
    ) -> None:
        self.orchestrator = orchestrator
        self.max_concurrency = max(1, max_concurrency)

    def process_batch(self, messages: Iterable[RawMessage]) -> Counter:
        """
        Process every message in the batch and return a tally of outcomes
        keyed by final job status (plus ``rejected`` / ``crashed``).
        """
        messages = list(messages)
        logger.info("Received batch of %d messages", len(messages))

        if self.max_concurrency == 1 or len(messages) <= 1:
            outcomes = [self._process_one(index, msg) for index, msg in enumerate(messages)]
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_concurrency,
                thread_name_prefix="render-job",
            ) as pool:
                outcomes = list(
                    pool.map(self._process_one, range(len(messages)), messages)
                )

        tally = Counter(outcomes)
        logger.info("Batch finished: %s", dict(tally))
        return tally

    def _process_one(self, index: int, raw: RawMessage) -> str:
        """Decode and run one message; never raises."""
        try:
            job = decode_message(raw)
        except ValidationError as exc:
            logger.warning("Message %d rejected: %s", index, exc)
            return REJECTED
        except Exception:
            logger.error("Message %d could not be decoded", index, exc_info=True)
            return REJECTED

        try:
            status = self.orchestrator.process(job)
        except Exception:
            logger.error(
                "Message %d (job %s) crashed the orchestrator",
                index, job.job_id, exc_info=True,
            )
            return CRASHED
        return status.value


# ── Lambda-style entry point ─────────────────────────────────────────────

_consumer: Optional[QueueConsumer] = None


def get_consumer() -> QueueConsumer:
    """Return the process-wide consumer, building it on first access."""
    global _consumer
    if _consumer is None:
        _consumer = QueueConsumer(build_orchestrator())
    return _consumer


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Consume ``event["Records"][*]["body"]`` as one batch."""
    records = event.get("Records") or []
    logger.debug("Handler invoked with %d records", len(records))
    get_consumer().process_batch(record.get("body", "") for record in records)
    return {"statusCode": 200, "body": "Processing complete"}
