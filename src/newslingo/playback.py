"""Time-synchronized playback helpers: active cue lookup and karaoke highlighting."""

import math
import time
from typing import Callable, Sequence

from .models import SubtitleSegment, WordHighlight, WordState

SKIP_SECONDS = 5.0
AUTOSCROLL_COOLDOWN = 2.0


def find_active(segments: Sequence[SubtitleSegment], current_time: float) -> int | None:
    """Return the index of the cue playing at ``current_time``.

    A cue is active on the half-open interval [start, end), so a time
    exactly on a boundary belongs to the later cue. The first match wins
    if cues overlap. Returns None in gaps and outside the track.
    """
    for i, seg in enumerate(segments):
        if seg.start_time <= current_time < seg.end_time:
            return i
    return None


def word_states(
    primary_text: str,
    start_time: float,
    end_time: float,
    current_time: float,
) -> list[WordHighlight]:
    """Estimate per-word karaoke state for the active cue.

    Progress through the cue is mapped to a character offset assuming a
    uniform speaking rate, then each space-separated word is classified
    against that offset.

    Args:
        primary_text: First line of the cue text
        start_time: Cue start in seconds
        end_time: Cue end in seconds
        current_time: Playback position in seconds

    Returns:
        One WordHighlight per word, in order
    """
    duration = end_time - start_time
    elapsed = max(0.0, current_time - start_time)
    progress = 1.0 if duration <= 0 else min(1.0, elapsed / duration)

    target_char = math.floor(len(primary_text) * progress)

    highlights = []
    char_count = 0
    for word in primary_text.split(" "):
        start_char = char_count
        end_char = char_count + len(word)
        char_count += len(word) + 1  # separating space

        if end_char < target_char:
            state = WordState.PAST
        elif start_char <= target_char <= end_char:
            state = WordState.CURRENT
        else:
            state = WordState.FUTURE
        highlights.append(WordHighlight(word=word, state=state))

    return highlights


def highlight_segment(segment: SubtitleSegment, current_time: float) -> list[WordHighlight]:
    """Karaoke states for the primary line of ``segment``."""
    return word_states(segment.primary_text, segment.start_time, segment.end_time, current_time)


def clamp_seek(current_time: float, delta: float, duration: float) -> float:
    """Skip by ``delta`` seconds, staying within [0, duration]."""
    return min(max(0.0, current_time + delta), duration)


def format_clock(seconds: float | None) -> str:
    """Format a playback position as M:SS."""
    if seconds is None or math.isnan(seconds):
        return "0:00"
    mins = math.floor(seconds / 60)
    secs = math.floor(seconds % 60)
    return f"{mins}:{secs:02d}"


class ScrollGuard:
    """Suppresses auto-scroll for a cool-down after a manual scroll."""

    def __init__(
        self,
        cooldown: float = AUTOSCROLL_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown = cooldown
        self._clock = clock
        self._last_touch: float | None = None

    def touch(self) -> None:
        """Record a manual scroll by the user."""
        self._last_touch = self._clock()

    def should_autoscroll(self) -> bool:
        """True once ``cooldown`` seconds have passed since the last touch."""
        if self._last_touch is None:
            return True
        return self._clock() - self._last_touch >= self.cooldown
