"""ffmpeg / ffprobe wrapper used by the upload worker."""

import math
from pathlib import Path

import structlog

from weafrica_media.services.exceptions import MediaToolError, TranscodeError
from weafrica_media.services.media.recipes import TranscodeRecipe
from weafrica_media.services.media.runner import CommandRunner

logger = structlog.get_logger(__name__)


class MediaToolkit:
    """Transcodes and probes local media files through a CommandRunner."""

    def __init__(
        self,
        runner: CommandRunner,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        transcode_timeout: float | None = None,
        probe_timeout: float | None = None,
    ):
        """Initialize toolkit.

        Args:
            runner: Command execution capability (SubprocessRunner in production)
            ffmpeg_bin: Path to ffmpeg binary
            ffprobe_bin: Path to ffprobe binary
            transcode_timeout: Seconds before ffmpeg is killed (None disables)
            probe_timeout: Seconds before ffprobe is killed (None disables)
        """
        self.runner = runner
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.transcode_timeout = transcode_timeout
        self.probe_timeout = probe_timeout

    async def transcode(self, recipe: TranscodeRecipe, input_path: Path, output_path: Path) -> Path:
        """Transcode input_path into output_path using recipe.

        Returns:
            output_path

        Raises:
            TranscodeError: Non-zero exit, timeout, missing binary, or no output file
        """
        args = recipe.build_args(self.ffmpeg_bin, input_path, output_path)

        try:
            result = await self.runner.run(args, timeout=self.transcode_timeout)
        except MediaToolError as e:
            raise TranscodeError(f"Transcoding failed: {e}") from e

        if not result.ok:
            message = f"{self.ffmpeg_bin} exited with code {result.returncode}"
            tail = result.stderr_tail()
            if tail:
                message += f": {tail}"
            raise TranscodeError(message)

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TranscodeError(f"{self.ffmpeg_bin} produced no output file")

        return output_path

    async def probe_duration(self, path: Path) -> float | None:
        """Probe media duration in seconds.

        Best-effort: any failure is logged and returns None so the upload can
        still be published without a duration.
        """
        args = [
            self.ffprobe_bin,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=nokey=1:noprint_wrappers=1",
            str(path),
        ]  # fmt: skip

        try:
            result = await self.runner.run(args, timeout=self.probe_timeout)
        except MediaToolError as e:
            logger.warning("uploads.probe.failed", path=str(path), reason=str(e))
            return None

        if not result.ok:
            logger.warning(
                "uploads.probe.failed",
                path=str(path),
                reason=f"exit code {result.returncode}",
            )
            return None

        raw = result.stdout.strip()
        try:
            value = float(raw)
        except ValueError:
            logger.warning(
                "uploads.probe.failed", path=str(path), reason="unparseable", raw=raw[:100]
            )
            return None

        if not math.isfinite(value) or value < 0:
            logger.warning(
                "uploads.probe.failed", path=str(path), reason="invalid", raw=raw[:100]
            )
            return None

        return value
