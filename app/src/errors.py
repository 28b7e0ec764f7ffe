"""
Error taxonomy for the render pipeline.

Every failure a job can hit maps to one of these types. The orchestrator
catches them at the job boundary and records ``str(exc)`` as the job's
terminal ``error``.
"""


class CaptionRenderError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(CaptionRenderError):
    """Malformed or unsafe input, rejected before any side effect."""


class PersistenceError(CaptionRenderError):
    """The status store is unreachable or rejected a write."""


class StorageError(CaptionRenderError):
    """Presign, download or upload against object storage failed."""


class RenderError(CaptionRenderError):
    """Base class for renderer failures."""


class RenderTransportError(RenderError):
    """The renderer could not be reached or answered with garbage."""


class RenderTimeoutError(RenderError):
    """The renderer did not answer within the render budget."""


class RenderLogicalFailure(RenderError):
    """The renderer answered but reported that the render failed."""


class StatusTransitionRefused(CaptionRenderError):
    """A status write was refused because the record had moved on."""

    def __init__(self, job_id: str, current, requested: str) -> None:
        super().__init__(f"Job {job_id} is {current}; cannot move to {requested}")
        self.job_id = job_id
        self.current = current
        self.requested = requested
