"""
Out-of-process render engine runner.

The engine itself is an opaque command (a Remotion render by default)
that takes a props file and an output path. This module writes the props
file, runs the command, captures combined stdout/stderr as ``logs`` and
treats a non-zero exit as failure.
"""

import json
import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from configs.config import get_config
from src.errors import ValidationError
from src.render.models import Caption, CaptionStyle

logger = logging.getLogger(__name__)
cfg = get_config()


class EngineResult:
    """Exit outcome of one engine run."""

    def __init__(self, success: bool, logs: str = "", error: Optional[str] = None):
        self.success = success
        self.logs = logs
        self.error = error

    def __repr__(self) -> str:
        return f"EngineResult(success={self.success!r}, error={self.error!r})"


def _as_text(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class RenderEngine:
    """Runs the configured render command for one scene."""

    def __init__(
        self,
        command: str = cfg.RENDER_COMMAND,
        workdir: str = cfg.RENDER_WORKDIR,
        output_dir: str = cfg.RENDER_OUTPUT_DIR,
        timeout: float = cfg.RENDER_PROCESS_TIMEOUT_SECONDS,
        backend_url: str = cfg.BACKEND_URL,
    ) -> None:
        self.command = command
        self.workdir = Path(workdir)
        self.output_dir = Path(output_dir)
        self.timeout = timeout
        self.backend_url = backend_url.rstrip("/")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ── Path helpers ─────────────────────────────────────────────────────

    def resolve_output_path(self, out_path: str) -> Path:
        """
        Resolve ``out_path`` against the work directory.

        Raises:
            ValidationError: if the result would land outside the output dir.
        """
        full_path = (self.workdir / out_path).resolve()
        if full_path.parent != self.output_dir.resolve():
            raise ValidationError(f"Invalid outPath: {out_path}")
        return full_path

    def locate_output(self, filename: str) -> Optional[Path]:
        """Return the rendered file called ``filename``, if it exists."""
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            return None
        path = self.output_dir / filename
        return path if path.is_file() else None

    def resolve_video_url(self, video_url: str) -> str:
        """Pass absolute URLs through; serve relative paths from the backend."""
        if video_url.startswith(("http://", "https://")):
            return video_url
        relative = video_url.replace("\\", "/").lstrip("/")
        return f"{self.backend_url}/{relative}"

    # ── Render ───────────────────────────────────────────────────────────

    def render(
        self,
        video_url: str,
        captions: Sequence[Caption],
        style: CaptionStyle,
        output_path: Path,
    ) -> EngineResult:
        """Render the scene into ``output_path``."""
        props = {
            "videoUrl": self.resolve_video_url(video_url),
            "captions": [c.model_dump() for c in captions],
            "style": CaptionStyle(style).value,
        }
        with tempfile.NamedTemporaryFile(
            "w",
            suffix=".json",
            prefix="props-",
            dir=self.workdir,
            delete=False,
            encoding="utf-8",
        ) as props_file:
            json.dump(props, props_file)
        try:
            return self._run(output_path, props_file.name)
        finally:
            try:
                os.unlink(props_file.name)
            except OSError as exc:
                logger.warning("Could not remove props file %s: %s", props_file.name, exc)

    def _run(self, output_path: Path, props_path: str) -> EngineResult:
        args = [
            part.format(output=str(output_path), props=props_path)
            for part in shlex.split(self.command)
        ]
        logger.info("Starting render: %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                cwd=self.workdir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("Render process timed out after %ss", self.timeout)
            return EngineResult(
                False,
                logs=_as_text(exc.output),
                error=f"Render process timed out after {self.timeout:g}s",
            )
        except OSError as exc:
            logger.error("Render process could not start: %s", exc, exc_info=True)
            return EngineResult(False, error=str(exc))

        logs = _as_text(completed.stdout)
        if completed.returncode != 0:
            logger.error("Render failed with code: %d", completed.returncode)
            return EngineResult(
                False,
                logs=logs,
                error=f"Render process exited with code {completed.returncode}",
            )
        logger.info("Render completed successfully: %s", output_path)
        return EngineResult(True, logs=logs)
