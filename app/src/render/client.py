"""
Render Service Client

Submits one render to the render service's ``POST /render`` and blocks
until it answers or the render budget (10 minutes, wall clock) runs out.
"""

import json
import logging
import time
from pathlib import PurePosixPath
from typing import Optional, Sequence

import httpx

from configs.config import get_config
from src.errors import RenderTimeoutError, RenderTransportError
from src.render.models import Caption, CaptionStyle, RenderRequest, RenderResult

logger = logging.getLogger(__name__)

cfg = get_config()


class RenderClient:
    """Client for the caption render service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = cfg.RENDER_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or cfg.RENDER_SERVICE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else cfg.RENDER_API_KEY
        self.timeout = timeout
        self._transport = transport

    def download_url_for(self, out_path: str) -> str:
        """Map the renderer's output path to its ``/download/`` route."""
        return f"{self.base_url}/download/{PurePosixPath(out_path).name}"

    def render(
        self,
        source_url: str,
        captions: Sequence[Caption],
        style: CaptionStyle,
        destination_path: str,
    ) -> RenderResult:
        """
        Render ``captions`` over the video at ``source_url``.

        A render the service reports as failed comes back as
        ``RenderResult(success=False)``; callers must check ``success``.

        Raises:
            RenderTimeoutError: no answer within ``self.timeout`` seconds
            RenderTransportError: service unreachable or answered with garbage
        """
        request = RenderRequest(
            video_url=source_url,
            captions=list(captions),
            style=style,
            out_path=destination_path,
        )
        headers = {"x-api-key": self.api_key} if self.api_key else {}
        timeout = httpx.Timeout(
            self.timeout, connect=cfg.RENDER_CONNECT_TIMEOUT_SECONDS
        )

        logger.info(
            "Submitting render of %d captions (style=%s) to %s",
            len(request.captions), request.style.value, self.base_url,
        )
        # read timeout bounds each gap; the deadline bounds the whole exchange
        deadline = time.monotonic() + self.timeout
        with httpx.Client(timeout=timeout, transport=self._transport) as client:
            try:
                with client.stream(
                    "POST",
                    f"{self.base_url}/render",
                    json=request.to_payload(),
                    headers=headers,
                ) as response:
                    self._check_deadline(deadline)
                    body = bytearray()
                    for chunk in response.iter_bytes():
                        body.extend(chunk)
                        self._check_deadline(deadline)
            except httpx.TimeoutException as exc:
                raise self._timed_out() from exc
            except httpx.TransportError as exc:
                logger.error("Render service unreachable: %s", exc)
                raise RenderTransportError(
                    f"Render service unavailable: {exc}"
                ) from exc

        return self._parse_response(response.status_code, bytes(body))

    def _timed_out(self) -> RenderTimeoutError:
        logger.error("Render request timed out after %ss", self.timeout)
        return RenderTimeoutError(f"Render request timed out after {self.timeout:g}s")

    def _check_deadline(self, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise self._timed_out()

    def _parse_response(self, status_code: int, content: bytes) -> RenderResult:
        try:
            body = json.loads(content)
        except (ValueError, RecursionError) as exc:
            raise RenderTransportError(
                "Invalid response from render service"
            ) from exc
        if not isinstance(body, dict):
            raise RenderTransportError("Invalid response from render service")

        if body.get("success") is True:
            out_path = body.get("outPath")
            if not isinstance(out_path, str) or not out_path:
                raise RenderTransportError(
                    "Render service reported success without an outPath"
                )
            logger.info("Render succeeded: %s", out_path)
            return RenderResult(
                success=True,
                out_path=out_path,
                download_url=self.download_url_for(out_path),
                logs=str(body.get("logs") or ""),
            )

        error = body.get("error")
        logger.warning(
            "Render service reported failure (HTTP %d): %s",
            status_code, error,
        )
        return RenderResult(
            success=False,
            error=str(error) if error else None,
            logs=str(body.get("logs") or ""),
        )
