"""
Status store for render jobs.

Each method is a thin wrapper around a single MongoDB operation, keeping
the database access pattern consistent and testable. Unlike the read
helpers of a typical repository, failures are not swallowed: the
orchestrator needs to know when a status write did not land, so every
driver error surfaces as ``PersistenceError``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from configs.config import get_config
from src.database.connection import get_db
from src.errors import PersistenceError, StatusTransitionRefused, ValidationError
from src.jobs.models import JobStatus
from src.render.models import Caption, CaptionStyle

logger = logging.getLogger(__name__)

cfg = get_config()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatusStore:
    """Durable job records keyed by ``job_id``."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self._collection = collection

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            self._collection = get_db()[cfg.JOBS_COLLECTION]
        return self._collection

    # ── Create ───────────────────────────────────────────────────────────

    def create_job(
        self,
        job_id: str,
        input_key: str,
        captions: Sequence[Caption],
        style: CaptionStyle,
    ) -> Dict:
        """Insert a new job document in ``queued`` state."""
        now = _utcnow()
        job_document = {
            "job_id": job_id,
            "status": JobStatus.QUEUED.value,
            "input_key": input_key,
            "captions": [c.model_dump() for c in captions],
            "style": CaptionStyle(style).value,
            "output_url": None,
            "error": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.collection.insert_one(job_document)
        except DuplicateKeyError as exc:
            raise ValidationError(f"Job {job_id} already exists") from exc
        except PyMongoError as exc:
            logger.error("Error creating job %s: %s", job_id, exc, exc_info=True)
            raise PersistenceError(f"Could not create job {job_id}: {exc}") from exc
        job_document.pop("_id", None)
        logger.debug("Job %s created in MongoDB", job_id)
        return job_document

    # ── Read ─────────────────────────────────────────────────────────────

    def get_job(self, job_id: str) -> Optional[Dict]:
        """Retrieve a single job by its ID, or ``None`` if absent."""
        try:
            job = self.collection.find_one({"job_id": job_id}, {"_id": 0})
        except PyMongoError as exc:
            logger.error(
                "Error getting job %s from MongoDB: %s", job_id, exc, exc_info=True
            )
            raise PersistenceError(f"Could not read job {job_id}: {exc}") from exc
        if job is None:
            logger.warning("Job %s not found in MongoDB", job_id)
        return job

    def find_stale_processing(self, older_than_seconds: int) -> List[Dict]:
        """
        Return jobs still ``processing`` whose last update is older than
        ``older_than_seconds``.

        These are jobs whose final status write was lost. Nothing here
        repairs them; the list is for an operator to act on.
        """
        cutoff = _utcnow() - timedelta(seconds=older_than_seconds)
        query = {
            "status": JobStatus.PROCESSING.value,
            "updated_at": {"$lt": cutoff},
        }
        try:
            jobs = list(
                self.collection.find(query, {"_id": 0}).sort("updated_at", 1)
            )
        except PyMongoError as exc:
            logger.error("Error listing stale jobs: %s", exc, exc_info=True)
            raise PersistenceError(f"Could not list stale jobs: {exc}") from exc
        logger.debug("Found %d jobs processing since before %s", len(jobs), cutoff)
        return jobs

    # ── Update ───────────────────────────────────────────────────────────

    def set_status(
        self,
        job_id: str,
        status: JobStatus,
        output_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Atomically move the job to ``status`` and advance ``updated_at``.

        The write only applies while the record holds one of
        ``status.allowed_from``, so a terminal record never changes again.
        ``output_url`` and ``error`` are written only when non-empty and are
        never cleared. ``updated_at`` goes through ``$max`` so it cannot move
        backwards even if two workers' clocks disagree. A missing record is
        created.

        Raises:
            StatusTransitionRefused: the record is in a state this write
                may not leave.
            PersistenceError: the store could not be reached.
        """
        status = JobStatus(status)
        fields = {"status": status.value}
        if output_url:
            fields["output_url"] = output_url
        if error:
            fields["error"] = error

        guarded = {
            "job_id": job_id,
            "status": {"$in": [s.value for s in status.allowed_from]},
        }
        update = {"$set": fields, "$max": {"updated_at": _utcnow()}}
        try:
            if self.collection.update_one(guarded, update).matched_count:
                logger.info("Job %s status updated to %s", job_id, status.value)
                return

            existing = self._current_status(job_id)
            if existing is None:
                update["$setOnInsert"] = {"created_at": _utcnow()}
                try:
                    self.collection.update_one(guarded, update, upsert=True)
                except DuplicateKeyError:
                    # created concurrently in a state this write may not leave
                    existing = self._current_status(job_id)
                else:
                    logger.warning(
                        "Job %s had no record; created it with status %s",
                        job_id, status.value,
                    )
                    return
        except PyMongoError as exc:
            logger.error(
                "Error updating job status for %s: %s", job_id, exc, exc_info=True
            )
            raise PersistenceError(
                f"Could not set job {job_id} to {status.value}: {exc}"
            ) from exc

        logger.warning(
            "Job %s is %s; refusing to set it to %s", job_id, existing, status.value
        )
        raise StatusTransitionRefused(job_id, existing, status.value)

    def _current_status(self, job_id: str) -> Optional[str]:
        record = self.collection.find_one({"job_id": job_id}, {"_id": 0, "status": 1})
        return record.get("status") if record else None
