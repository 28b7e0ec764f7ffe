"""
Data models for render jobs.
"""

import json
from enum import Enum
from typing import List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.errors import ValidationError
from src.render.models import Caption, CaptionStyle

JOB_ID_REGEX = r"^[A-Za-z0-9][A-Za-z0-9_\-]{0,127}$"


class JobStatus(str, Enum):
    """Possible states of a render job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def allowed_from(self) -> Tuple["JobStatus", ...]:
        """Statuses a record may hold for a write of this status to apply."""
        return _ALLOWED_FROM[self]


# processing -> processing lets a redelivered message resume a job whose
# worker died mid-render; terminal records never change again.
_ALLOWED_FROM = {
    JobStatus.QUEUED: (JobStatus.QUEUED,),
    JobStatus.PROCESSING: (JobStatus.QUEUED, JobStatus.PROCESSING),
    JobStatus.COMPLETED: (JobStatus.PROCESSING,),
    JobStatus.FAILED: (JobStatus.QUEUED, JobStatus.PROCESSING),
}


def has_path_traversal(value: str) -> bool:
    """True when ``value`` carries parent-directory or home markers."""
    return ".." in value or "~" in value


class RenderJobMessage(BaseModel):
    """A decoded queue message: ``{jobId, videoUrl, captions, style, s3Key}``."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId", pattern=JOB_ID_REGEX)
    video_url: str = Field(default="", alias="videoUrl")
    captions: List[Caption]
    style: CaptionStyle
    s3_key: str = Field(..., alias="s3Key", min_length=1)

    @field_validator("video_url")
    @classmethod
    def _reject_traversal(cls, value: str) -> str:
        if has_path_traversal(value):
            raise ValueError("videoUrl must not contain '..' or '~'")
        return value

    def to_message(self) -> dict:
        """Serialise back to the wire format."""
        return {
            "jobId": self.job_id,
            "videoUrl": self.video_url,
            "captions": [c.model_dump() for c in self.captions],
            "style": self.style.value,
            "s3Key": self.s3_key,
        }


def decode_message(body: Union[str, bytes, dict]) -> RenderJobMessage:
    """
    Parse and validate one queue message body.

    Raises:
        ValidationError: if the body is not JSON or fails validation.
    """
    try:
        data = json.loads(body) if isinstance(body, (str, bytes)) else body
    except (ValueError, RecursionError) as exc:
        # ValueError covers bad JSON and bytes that are not UTF-8
        raise ValidationError(f"Message body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Message body must be a JSON object")
    try:
        return RenderJobMessage.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) or "body"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid job message ({fields})") from exc
