"""Upload pipeline: parse -> translate -> cover -> persist, with progress updates."""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .exceptions import NoSubtitlesError
from .media import detect_media_kind, extract_cover
from .storage import SessionRepository
from .subtitles import read_subtitles
from .translate import DEFAULT_BATCH_SIZE, BatchTranslator, translate_all

logger = logging.getLogger(__name__)

TaskUpdate = Callable[[dict], None]


@dataclass
class ProcessingOptions:
    """Inputs for one session upload."""

    title: str
    media_file: Path
    subtitle_file: Path
    cover_file: Optional[Path] = None
    category: Optional[str] = None
    auto_translate: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency_limit: int = 1


def _translate_percent(completed: int, total: int) -> int:
    # Translation occupies 10%..40% of the overall run
    return 10 + math.floor(completed / total * 30)


def _upload_percent(percent: float) -> int:
    # Upload occupies 50%..95%
    return 50 + math.floor(percent * 0.45)


def process_session(
    options: ProcessingOptions,
    repository: SessionRepository,
    translator: Optional[BatchTranslator] = None,
    on_update: Optional[TaskUpdate] = None,
) -> str:
    """Run the full upload pipeline for one session.

    Each stage reports a partial task update (``progress``/``status``).
    A translation failure falls back to the untranslated subtitles and
    cover extraction is best effort; every other failure is reported
    with an ``error`` update and re-raised.

    Returns:
        The stored session id
    """

    def update(**fields) -> None:
        if on_update:
            on_update(fields)

    try:
        update(status="Parsing subtitles...", progress=5)
        subtitles = read_subtitles(options.subtitle_file)
        if not subtitles:
            raise NoSubtitlesError(f"No subtitles found in {options.subtitle_file.name}")

        if options.auto_translate and translator is not None:
            update(status="AI Translating...", progress=10)

            def on_progress(completed: int, total: int) -> None:
                update(
                    progress=_translate_percent(completed, total),
                    status=f"AI Translating ({completed}/{total})...",
                )

            try:
                subtitles = translate_all(
                    subtitles,
                    translator,
                    batch_size=options.batch_size,
                    on_progress=on_progress,
                    concurrency_limit=options.concurrency_limit,
                )
            except Exception as e:
                logger.error("Translation failed, keeping original subtitles: %s", e)

        cover = options.cover_file
        extracted = None
        if cover is None:
            update(status="Extracting metadata...", progress=45)
            try:
                cover = extracted = extract_cover(options.media_file)
            except OSError as e:
                logger.warning("Cover extraction failed, continuing without cover: %s", e)

        update(status="Starting upload...", progress=50)
        try:
            session_id = repository.save_session(
                options.title,
                options.media_file,
                detect_media_kind(options.media_file),
                subtitles,
                category=options.category,
                cover_file=cover,
                on_status=lambda status: update(status=status),
                on_upload_progress=lambda percent: update(progress=_upload_percent(percent)),
            )
        finally:
            if extracted is not None:
                extracted.unlink(missing_ok=True)

        update(status="Complete", progress=100)
        return session_id

    except Exception as e:
        update(error=str(e) or "Processing failed")
        raise
