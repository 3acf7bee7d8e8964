"""Transcoding recipe tests: exact ffmpeg parameters per media type."""

from pathlib import Path

from weafrica_media.models.upload import UploadType
from weafrica_media.services.media.recipes import AudioRecipe, VideoRecipe, recipe_for


def test_audio_recipe_args():
    args = AudioRecipe().build_args("ffmpeg", Path("/tmp/in"), Path("/tmp/out.mp3"))

    assert args == [
        "ffmpeg", "-y", "-i", "/tmp/in",
        "-vn", "-ar", "44100", "-ac", "2", "-b:a", "128k",
        "/tmp/out.mp3",
    ]  # fmt: skip


def test_video_recipe_args():
    args = VideoRecipe().build_args("/opt/ffmpeg", Path("/tmp/in"), Path("/tmp/out.mp4"))

    assert args[:4] == ["/opt/ffmpeg", "-y", "-i", "/tmp/in"]
    assert args[-1] == "/tmp/out.mp4"

    options = dict(zip(args[4:-1:2], args[5:-1:2]))
    assert options == {
        "-vf": VideoRecipe().scale_filter(),
        "-c:v": "libx264",
        "-preset": "veryfast",
        "-b:v": "1800k",
        "-maxrate": "2000k",
        "-bufsize": "4000k",
        "-c:a": "aac",
        "-b:a": "96k",
        "-movflags": "+faststart",
    }


def test_video_scale_filter_never_upscales():
    scale = VideoRecipe().scale_filter()

    assert "min(1280,iw)" in scale
    assert "min(720,ih)" in scale
    assert "force_original_aspect_ratio=decrease" in scale
    assert "force_divisible_by=2" in scale


def test_recipe_metadata():
    assert (AudioRecipe.extension, AudioRecipe.content_type, AudioRecipe.folder) == (
        "mp3",
        "audio/mpeg",
        "processed/songs",
    )
    assert (VideoRecipe.extension, VideoRecipe.content_type, VideoRecipe.folder) == (
        "mp4",
        "video/mp4",
        "processed/videos",
    )


def test_recipe_for():
    assert isinstance(recipe_for(UploadType.AUDIO), AudioRecipe)
    assert isinstance(recipe_for(UploadType.VIDEO), VideoRecipe)
