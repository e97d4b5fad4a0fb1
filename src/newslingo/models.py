"""Data models for newslingo."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SubtitleSegment(BaseModel):
    """A single subtitle cue with timing and text.

    ``text`` may span several lines: the first is the source-language
    line, any further lines hold the appended translation.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    start_time: float = Field(alias="startTime")  # seconds
    end_time: float = Field(alias="endTime")  # seconds
    text: str

    @property
    def primary_text(self) -> str:
        """First line of the cue text."""
        return self.text.split("\n", 1)[0]

    @property
    def secondary_lines(self) -> list[str]:
        """Lines after the first (usually the translation)."""
        return self.text.split("\n")[1:]

    def with_translation(self, translation: str) -> "SubtitleSegment":
        """Return a copy with ``translation`` appended on a new line."""
        return self.model_copy(update={"text": f"{self.text}\n{translation}"})

    def to_record(self) -> dict:
        """Serialize with the camelCase keys used by stored sessions."""
        return self.model_dump(by_alias=True)


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class Session(BaseModel):
    """A stored learning session as returned by the backend."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    title: str
    category: str = "NBC News"
    media_type: MediaKind
    created_at: int  # milliseconds since the epoch
    subtitles: list[SubtitleSegment] = Field(default_factory=list)
    cover_url: str | None = None
    media_url: str | None = None


class UploadTask(BaseModel):
    """Progress of one upload/translate/persist run."""

    id: str
    title: str
    progress: int = 0  # 0-100
    status: str = ""
    error: str | None = None

    def apply(self, update: dict) -> None:
        """Merge a partial update into this task."""
        for key, value in update.items():
            setattr(self, key, value)


class WordState(str, Enum):
    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


class WordHighlight(BaseModel):
    """One word of the active cue and its karaoke state."""

    word: str
    state: WordState
