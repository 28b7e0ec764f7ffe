"""
Render job orchestrator.

Drives one job through the render pipeline and guarantees it ends in
exactly one terminal status:

    queued → processing → presign input → render → download
           → upload → presign output → completed

Any step that fails sends the job straight to ``failed`` with a
human-readable reason. Nothing is retried here; redelivery, if any, is
the queue's business.
"""

import logging
from typing import Any, Callable

from commons import output_key_for, render_out_path_for
from configs.config import get_config
from logging_config import job_context
from src.database.job_repository import JobStatusStore
from src.errors import (
    CaptionRenderError,
    PersistenceError,
    RenderLogicalFailure,
    StatusTransitionRefused,
)
from src.jobs.models import JobStatus, RenderJobMessage
from src.render.client import RenderClient
from src.storage.object_access import ObjectAccess

logger = logging.getLogger(__name__)
cfg = get_config()

MARK_PROCESSING_FAILED = "could not mark processing"
RENDER_FAILED = "Render failed"


class JobOrchestrator:
    """Per-job state machine over the status store, storage and renderer."""

    def __init__(
        self,
        store: JobStatusStore,
        storage: ObjectAccess,
        renderer: RenderClient,
        input_url_ttl: int = cfg.INPUT_URL_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.storage = storage
        self.renderer = renderer
        self.input_url_ttl = input_url_ttl

    # ── Main entry ───────────────────────────────────────────────────────

    def process(self, job: RenderJobMessage) -> JobStatus:
        """
        Run ``job`` through the pipeline once.

        Returns the status the job was left in. Never raises for job-level
        failures; those are recorded in the status store instead.
        """
        with job_context(job.job_id):
            logger.info(
                "Job %s started: %d captions, style=%s",
                job.job_id, len(job.captions), job.style.value,
            )

            try:
                self.store.set_status(job.job_id, JobStatus.PROCESSING)
            except StatusTransitionRefused as exc:
                logger.info(
                    "Job %s is already %s; skipping redelivered message",
                    job.job_id, exc.current,
                )
                return _status_or_failed(exc.current)
            except PersistenceError as exc:
                logger.error("Job %s could not be marked processing: %s", job.job_id, exc)
                return self._record_failure(job.job_id, MARK_PROCESSING_FAILED)

            try:
                output_url = self._run_pipeline(job)
            except CaptionRenderError as exc:
                return self._record_failure(job.job_id, str(exc) or type(exc).__name__)
            except Exception as exc:
                logger.error("Job %s hit an unexpected error", job.job_id, exc_info=True)
                return self._record_failure(job.job_id, f"Unexpected error: {exc}")

            try:
                self.store.set_status(
                    job.job_id, JobStatus.COMPLETED, output_url=output_url
                )
            except StatusTransitionRefused as exc:
                logger.warning(
                    "Job %s finished but was already %s; result discarded",
                    job.job_id, exc.current,
                )
                return _status_or_failed(exc.current)
            except PersistenceError as exc:
                # The video is uploaded but the record still says processing.
                # Left for an operator; see JobStatusStore.find_stale_processing.
                logger.error(
                    "Job %s finished but its completed status was not saved; "
                    "record left in processing: %s",
                    job.job_id, exc,
                )
                return JobStatus.PROCESSING

            logger.info("Job %s completed successfully", job.job_id)
            return JobStatus.COMPLETED

    # ── Pipeline ─────────────────────────────────────────────────────────

    def _run_pipeline(self, job: RenderJobMessage) -> str:
        """Execute the processing steps and return the output access URL."""
        input_url = self._step(
            "presign_input", self.storage.presign, job.s3_key, self.input_url_ttl
        )

        result = self._step(
            "render",
            self.renderer.render,
            input_url,
            job.captions,
            job.style,
            render_out_path_for(job.job_id),
        )
        if not result.success:
            logger.error("Step render failed: renderer reported %r", result.error)
            raise RenderLogicalFailure(result.error or RENDER_FAILED)

        video = self._step("download", self.storage.download, result.download_url)

        output_key = output_key_for(job.job_id)
        self._step(
            "upload", self.storage.upload, video, output_key, cfg.OUTPUT_CONTENT_TYPE
        )

        return self._step("presign_output", self.storage.presign, output_key)

    @staticmethod
    def _step(name: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run one pipeline step, logging its outcome."""
        logger.debug("Step %s started", name)
        try:
            value = func(*args)
        except Exception as exc:
            logger.error("Step %s failed: %s", name, exc)
            raise
        logger.info("Step %s succeeded", name)
        return value

    def _record_failure(self, job_id: str, reason: str) -> JobStatus:
        """Write the terminal failure. Best-effort: errors are only logged."""
        logger.error("Job %s failed: %s", job_id, reason)
        try:
            self.store.set_status(job_id, JobStatus.FAILED, error=reason)
        except StatusTransitionRefused as exc:
            logger.warning("Job %s failure not recorded: %s", job_id, exc)
            return _status_or_failed(exc.current)
        except PersistenceError as exc:
            logger.error(
                "Job %s failure could not be recorded: %s", job_id, exc, exc_info=True
            )
        return JobStatus.FAILED


def _status_or_failed(value) -> JobStatus:
    try:
        return JobStatus(value)
    except ValueError:
        return JobStatus.FAILED


def build_orchestrator() -> JobOrchestrator:
    """Wire the orchestrator from configuration."""
    return JobOrchestrator(
        store=JobStatusStore(),
        storage=ObjectAccess(),
        renderer=RenderClient(),
    )
