"""
Data models shared by the render client and the render service.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CaptionStyle(str, Enum):
    """Caption overlay presets understood by the renderer."""

    BOTTOM = "bottom"
    TOP_BAR = "top-bar"
    KARAOKE = "karaoke"


class Caption(BaseModel):
    """One timed caption. ``start < end`` is guaranteed upstream."""

    start: float
    end: float
    text: str


class RenderRequest(BaseModel):
    """Body of ``POST /render``. Never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    video_url: str = Field(..., alias="videoUrl")
    captions: List[Caption]
    style: CaptionStyle
    out_path: str = Field(..., alias="outPath")

    def to_payload(self) -> dict:
        return {
            "videoUrl": self.video_url,
            "captions": [c.model_dump() for c in self.captions],
            "style": self.style.value,
            "outPath": self.out_path,
        }


class RenderResult(BaseModel):
    """Outcome of one render call as seen by the client."""

    success: bool
    out_path: Optional[str] = None
    download_url: Optional[str] = None
    error: Optional[str] = None
    logs: str = ""
