"""Transcoding recipes: fixed ffmpeg parameters per media type."""

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from weafrica_media.models.upload import UploadType


@dataclass(frozen=True)
class TranscodeRecipe:
    """Base recipe: builds the ffmpeg argument list for one input/output pair."""

    extension: ClassVar[str]
    content_type: ClassVar[str]
    folder: ClassVar[str]

    def output_args(self) -> list[str]:
        raise NotImplementedError

    def build_args(self, ffmpeg_bin: str, input_path: Path, output_path: Path) -> list[str]:
        """Full ffmpeg command line, overwriting output_path."""
        return [ffmpeg_bin, "-y", "-i", str(input_path), *self.output_args(), str(output_path)]


@dataclass(frozen=True)
class AudioRecipe(TranscodeRecipe):
    """Audio to stereo 44.1 kHz MP3."""

    extension: ClassVar[str] = "mp3"
    content_type: ClassVar[str] = "audio/mpeg"
    folder: ClassVar[str] = "processed/songs"

    sample_rate: int = 44100
    channels: int = 2
    audio_bitrate: str = "128k"

    def output_args(self) -> list[str]:
        return [
            "-vn",
            "-ar", str(self.sample_rate),
            "-ac", str(self.channels),
            "-b:a", self.audio_bitrate,
        ]  # fmt: skip


@dataclass(frozen=True)
class VideoRecipe(TranscodeRecipe):
    """Video to H.264/AAC MP4 bounded by 1280x720, fast-start."""

    extension: ClassVar[str] = "mp4"
    content_type: ClassVar[str] = "video/mp4"
    folder: ClassVar[str] = "processed/videos"

    max_width: int = 1280
    max_height: int = 720
    preset: str = "veryfast"
    video_bitrate: str = "1800k"
    max_rate: str = "2000k"
    buffer_size: str = "4000k"
    audio_bitrate: str = "96k"

    def scale_filter(self) -> str:
        # min() against the input size keeps small sources at their own size
        return (
            f"scale=w='min({self.max_width},iw)':h='min({self.max_height},ih)'"
            ":force_original_aspect_ratio=decrease:force_divisible_by=2"
        )

    def output_args(self) -> list[str]:
        return [
            "-vf", self.scale_filter(),
            "-c:v", "libx264",
            "-preset", self.preset,
            "-b:v", self.video_bitrate,
            "-maxrate", self.max_rate,
            "-bufsize", self.buffer_size,
            "-c:a", "aac",
            "-b:a", self.audio_bitrate,
            "-movflags", "+faststart",
        ]  # fmt: skip


RECIPES: dict[UploadType, TranscodeRecipe] = {
    UploadType.AUDIO: AudioRecipe(),
    UploadType.VIDEO: VideoRecipe(),
}


def recipe_for(upload_type: UploadType) -> TranscodeRecipe:
    """Select the transcoding recipe for a media type."""
    return RECIPES[upload_type]
