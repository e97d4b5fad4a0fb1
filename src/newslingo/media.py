"""Media helpers: kind detection and cover extraction with ffmpeg."""

import logging
import mimetypes
import re
import subprocess
import tempfile
from pathlib import Path

from .models import MediaKind

logger = logging.getLogger(__name__)

# Grab the thumbnail a little way in to avoid black leading frames
THUMBNAIL_OFFSET = 2.0
FFMPEG_TIMEOUT = 10


def guess_content_type(path: str | Path) -> str:
    """MIME type guessed from the file extension."""
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or "application/octet-stream"


def detect_media_kind(path: str | Path) -> MediaKind:
    """Audio for ``audio/*`` files, video for everything else."""
    if guess_content_type(path).startswith("audio"):
        return MediaKind.AUDIO
    return MediaKind.VIDEO


def is_media_file(path: str | Path) -> bool:
    """Whether the extension maps to an audio or video MIME type."""
    return guess_content_type(path).startswith(("audio/", "video/"))


def sanitize_filename(name: str) -> str:
    """Replace characters unsafe for storage object names with underscores."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name)


def _run_ffmpeg(cmd: list[str]) -> bool:
    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=FFMPEG_TIMEOUT)
    except subprocess.CalledProcessError as e:
        logger.warning("ffmpeg failed: %s", e.stderr.strip()[-300:] if e.stderr else e)
        return False
    except subprocess.TimeoutExpired:
        logger.warning("ffmpeg timed out after %ss", FFMPEG_TIMEOUT)
        return False
    except FileNotFoundError:
        logger.warning("ffmpeg not found, skipping cover extraction")
        return False
    except OSError as e:
        logger.warning("Could not run ffmpeg: %s", e)
        return False
    return True


def extract_cover(
    media_path: str | Path,
    output_path: str | Path | None = None,
) -> Path | None:
    """Extract a cover image from a media file.

    Video files yield a JPEG frame; audio files yield their embedded
    cover art, if any. Extraction is best effort.

    Args:
        media_path: Path to the audio or video file
        output_path: Optional output path. If None, creates a temp file.

    Returns:
        Path to the JPEG image, or None if nothing could be extracted
        (including files that are neither audio nor video)
    """
    media_path = Path(media_path)
    if not is_media_file(media_path):
        logger.info("%s is not an audio or video file, no cover to extract", media_path.name)
        return None

    if output_path is None:
        try:
            with tempfile.NamedTemporaryFile(suffix=".jpg", delete=False) as temp_file:
                output_path = Path(temp_file.name)
        except OSError as e:
            logger.warning("Could not create a temp file for the cover: %s", e)
            return None
    else:
        output_path = Path(output_path)

    if detect_media_kind(media_path) is MediaKind.VIDEO:
        cmd = [
            "ffmpeg",
            "-ss", str(THUMBNAIL_OFFSET),
            "-i", str(media_path),
            "-frames:v", "1",
            "-q:v", "3",
            "-y", str(output_path),
        ]
    else:
        cmd = [
            "ffmpeg",
            "-i", str(media_path),
            "-an",  # Keep only the attached picture stream
            "-c:v", "mjpeg",
            "-frames:v", "1",
            "-y", str(output_path),
        ]

    if not _run_ffmpeg(cmd) or not output_path.exists() or output_path.stat().st_size == 0:
        output_path.unlink(missing_ok=True)
        return None

    logger.info("Extracted cover for %s to %s", media_path.name, output_path)
    return output_path
