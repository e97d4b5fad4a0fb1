"""SRT/VTT subtitle parsing and SRT generation."""

import logging
import re
from pathlib import Path

from .exceptions import SubtitleFileError
from .models import SubtitleSegment

logger = logging.getLogger(__name__)

TIME_SEPARATOR = " --> "
TAG_PATTERN = re.compile(r"<[^>]*>")
YOUTUBE_PATTERN = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def parse_timestamp(timestamp: str) -> float:
    """Parse an SRT/VTT timestamp to seconds.

    Accepts "HH:MM:SS,mmm", "HH:MM:SS.mmm" and "MM:SS,mmm". Anything
    else parses to 0.0 rather than raising.

    Args:
        timestamp: Timestamp text

    Returns:
        Time in seconds
    """
    parts = timestamp.split(":")
    if len(parts) == 3:
        hours, minutes, rest = parts
    elif len(parts) == 2:
        hours = "0"
        minutes, rest = parts
    else:
        return 0.0

    sec_parts = re.split(r"[,.]", rest)
    try:
        seconds = int(sec_parts[0])
        millis = int(sec_parts[1]) if len(sec_parts) > 1 else 0
        return int(hours) * 3600 + int(minutes) * 60 + seconds + millis / 1000
    except ValueError:
        return 0.0


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm)."""
    total_millis = max(0, round(seconds * 1000))
    hours, total_millis = divmod(total_millis, 3_600_000)
    minutes, total_millis = divmod(total_millis, 60_000)
    secs, millis = divmod(total_millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def _normalize(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def _parse_blocks(content: str, vtt: bool) -> list[SubtitleSegment]:
    segments = []
    next_id = 1

    for block in _normalize(content).split("\n\n"):
        lines = [line for line in block.split("\n") if line.strip() != ""]
        if vtt:
            if not lines or lines[0].startswith("WEBVTT"):
                continue
        elif len(lines) < 2:
            continue

        # Line 0 is the time line when the numeric index (or cue id) is missing
        if "-->" in lines[0]:
            time_line_index = 0
        elif len(lines) > 1 and "-->" in lines[1]:
            time_line_index = 1
        else:
            logger.debug("Skipping block without a time line: %r", block[:80])
            continue

        halves = lines[time_line_index].split(TIME_SEPARATOR)
        if len(halves) < 2 or not halves[0].strip() or not halves[1].strip():
            logger.debug("Skipping block with malformed time line: %r", lines[time_line_index])
            continue

        start_str = halves[0].strip()
        end_str = halves[1].strip()
        if vtt:
            # Drop cue settings such as "align:start position:10%"
            end_str = end_str.split()[0]

        text = TAG_PATTERN.sub("", "\n".join(lines[time_line_index + 1:]))

        segments.append(
            SubtitleSegment(
                id=next_id,
                start_time=parse_timestamp(start_str),
                end_time=parse_timestamp(end_str),
                text=text,
            )
        )
        next_id += 1

    return segments


def parse_srt(content: str) -> list[SubtitleSegment]:
    """Parse SRT content into subtitle segments.

    Args:
        content: Raw SRT file content

    Returns:
        Segments in file order with ids 1..N
    """
    return _parse_blocks(content, vtt=False)


def parse_vtt(content: str) -> list[SubtitleSegment]:
    """Parse WebVTT content into subtitle segments.

    Args:
        content: Raw VTT file content

    Returns:
        Segments in file order with ids 1..N
    """
    return _parse_blocks(content, vtt=True)


def parse_subtitles(content: str, filename: str) -> list[SubtitleSegment]:
    """Parse subtitle text, choosing the format from the file name.

    ``.vtt`` names are parsed as WebVTT, everything else as SRT.
    """
    if filename.lower().endswith(".vtt"):
        segments = parse_vtt(content)
    else:
        segments = parse_srt(content)
    logger.info("Parsed %d segments from %s", len(segments), filename)
    return segments


def read_subtitles(path: str | Path) -> list[SubtitleSegment]:
    """Read and parse an SRT or VTT file.

    Args:
        path: Path to the subtitle file

    Returns:
        List of segments (possibly empty)

    Raises:
        SubtitleFileError: If the file cannot be read or decoded
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise SubtitleFileError(f"Could not read subtitle file {path}: {e}") from e
    return parse_subtitles(content, path.name)


def subtitles_to_srt(segments: list[SubtitleSegment]) -> str:
    """Convert segments to SRT format string.

    Args:
        segments: List of segments

    Returns:
        SRT formatted string, blocks numbered from 1
    """
    blocks = []
    for number, seg in enumerate(segments, start=1):
        start_ts = format_timestamp(seg.start_time)
        end_ts = format_timestamp(seg.end_time)
        blocks.append(f"{number}\n{start_ts} --> {end_ts}\n{seg.text}\n")
    return "\n".join(blocks)


def write_srt(segments: list[SubtitleSegment], path: str | Path) -> None:
    """Write segments to an SRT file.

    Args:
        segments: List of segments
        path: Output file path
    """
    Path(path).write_text(subtitles_to_srt(segments), encoding="utf-8")


def extract_youtube_id(url: str) -> str | None:
    """Return the 11-character video id of a YouTube URL, or None."""
    match = YOUTUBE_PATTERN.match(url)
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None
