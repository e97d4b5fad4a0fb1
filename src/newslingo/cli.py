"""CLI entry point for newslingo."""

import functools
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from openai import OpenAI

from .config import Config
from .exceptions import NewsLingoError
from .explain import explain_text
from .log_setup import setup_logging
from .media import detect_media_kind
from .models import UploadTask, WordState
from .pipeline import ProcessingOptions, process_session
from .playback import find_active, format_clock, highlight_segment
from .storage import SessionRepository, SupabaseStorage
from .subtitles import parse_timestamp, read_subtitles, subtitles_to_srt, write_srt
from .translate import build_translator, translate_all


def _handle_errors(func):
    """Report newslingo errors in red and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NewsLingoError as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)

    return wrapper


def _repository(config: Config) -> SessionRepository:
    if not config.has_supabase():
        raise click.ClickException(
            "SUPABASE_URL and SUPABASE_KEY environment variables required for session storage."
        )
    storage = SupabaseStorage(
        config.supabase_url,
        config.supabase_key,
        bucket=config.supabase_bucket,
        table=config.supabase_table,
    )
    return SessionRepository(storage)


def _parse_time_arg(value: str) -> float:
    """Seconds as a number, or a timestamp like 01:02,500."""
    try:
        return float(value)
    except ValueError:
        return parse_timestamp(value)


def _render_word(word: str, state: WordState) -> str:
    if state is WordState.CURRENT:
        return click.style(word, bold=True, reverse=True)
    if state is WordState.FUTURE:
        return click.style(word, dim=True)
    return word


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Learn English from news broadcasts with synced bilingual subtitles."""
    config = Config.from_env()
    setup_logging(logging.DEBUG if verbose else config.log_level)
    ctx.obj = config


@main.command()
@click.argument("subtitle_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output SRT file path (default: input_name.{target}.srt)",
)
@click.option("--to", "target_lang", default=None, help="Target language code (default: TARGET_LANGUAGE or zh)")
@click.option(
    "--llm",
    type=click.Choice(["gemini", "ollama"]),
    default="gemini",
    help="LLM provider for translation",
)
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Subtitles per request")
@click.pass_obj
@_handle_errors
def translate(
    config: Config,
    subtitle_file: Path,
    output: Path | None,
    target_lang: str | None,
    llm: str,
    batch_size: int | None,
) -> None:
    """Append a translation line to every cue of SUBTITLE_FILE."""
    target_lang = target_lang or config.target_language
    if output is None:
        output = subtitle_file.with_name(f"{subtitle_file.stem}.{target_lang}.srt")

    subtitles = read_subtitles(subtitle_file)
    if not subtitles:
        raise click.ClickException(f"No subtitles found in {subtitle_file}")
    click.echo(f"Loaded {len(subtitles)} segments from {subtitle_file}")

    translator = build_translator(config, llm, target_lang)

    def on_progress(completed: int, total: int) -> None:
        click.echo(f"  Translated {completed}/{total}")

    click.echo(f"Translating ({llm}) to {target_lang}...")
    translated = translate_all(
        subtitles,
        translator,
        batch_size=batch_size or config.batch_size,
        on_progress=on_progress,
        concurrency_limit=config.concurrency_limit,
    )

    write_srt(translated, output)
    click.echo(f"  Saved to {output}")
    click.secho("Done!", fg="green", bold=True)


@main.command()
@click.argument("media_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("subtitle_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", required=True, help="Session title")
@click.option("--category", default=None, help="Session category (default: NBC News)")
@click.option(
    "--cover",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Cover image (default: extracted from the media)",
)
@click.option("--translate/--no-translate", "auto_translate", default=True, help="Auto-translate subtitles")
@click.option("--to", "target_lang", default=None, help="Target language code")
@click.option("--llm", type=click.Choice(["gemini", "ollama"]), default="gemini")
@click.pass_obj
@_handle_errors
def upload(
    config: Config,
    media_file: Path,
    subtitle_file: Path,
    title: str,
    category: str | None,
    cover: Path | None,
    auto_translate: bool,
    target_lang: str | None,
    llm: str,
) -> None:
    """Parse, translate and store MEDIA_FILE with SUBTITLE_FILE as a session."""
    repository = _repository(config)
    translator = build_translator(config, llm, target_lang) if auto_translate else None

    task = UploadTask(id=media_file.name, title=title)

    def on_update(update: dict) -> None:
        previous_status = task.status
        task.apply(update)
        if "status" in update and task.status != previous_status:
            click.echo(f"[{task.progress:3d}%] {task.status}")

    click.echo(f"Media: {media_file} ({detect_media_kind(media_file).value})")
    session_id = process_session(
        ProcessingOptions(
            title=title,
            media_file=media_file,
            subtitle_file=subtitle_file,
            cover_file=cover,
            category=category,
            auto_translate=auto_translate,
            batch_size=config.batch_size,
            concurrency_limit=config.concurrency_limit,
        ),
        repository,
        translator=translator,
        on_update=on_update,
    )
    click.secho(f"Saved session {session_id}", fg="green", bold=True)


@main.command(name="list")
@click.pass_obj
@_handle_errors
def list_sessions(config: Config) -> None:
    """List stored sessions, newest first."""
    sessions = _repository(config).list_sessions()
    if not sessions:
        click.echo("No sessions yet.")
        return
    for session in sessions:
        created = datetime.fromtimestamp(session.created_at / 1000).strftime("%Y-%m-%d %H:%M")
        click.echo(
            f"{session.id}  {created}  [{session.category}] {session.title} "
            f"({session.media_type.value}, {len(session.subtitles)} cues)"
        )


@main.command()
@click.argument("session_id")
@click.option("--srt", "as_srt", is_flag=True, help="Print the subtitles as SRT")
@click.pass_obj
@_handle_errors
def show(config: Config, session_id: str, as_srt: bool) -> None:
    """Show one stored session."""
    session = _repository(config).get_session(session_id)
    if session is None:
        raise click.ClickException(f"Session {session_id} not found")

    if as_srt:
        click.echo(subtitles_to_srt(session.subtitles))
        return

    click.echo(f"Title:     {session.title}")
    click.echo(f"Category:  {session.category}")
    click.echo(f"Media:     {session.media_type.value} {session.media_url}")
    if session.cover_url:
        click.echo(f"Cover:     {session.cover_url}")
    click.echo(f"Subtitles: {len(session.subtitles)} cues")


@main.command()
@click.argument("session_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@_handle_errors
def delete(config: Config, session_id: str, yes: bool) -> None:
    """Delete a stored session and its media."""
    if not yes:
        click.confirm(f"Delete session {session_id}?", abort=True)
    _repository(config).delete_session(session_id)
    click.echo(f"Deleted session {session_id}")


@main.command()
@click.argument("subtitle_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("time")
@_handle_errors
def at(subtitle_file: Path, time: str) -> None:
    """Show the cue playing at TIME with karaoke highlighting.

    TIME is seconds (e.g. 83.5) or a timestamp (e.g. 01:23,500).
    """
    subtitles = read_subtitles(subtitle_file)
    current_time = _parse_time_arg(time)
    index = find_active(subtitles, current_time)

    click.echo(f"[{format_clock(current_time)}]")
    if index is None:
        click.echo("(no subtitle)")
        return

    segment = subtitles[index]
    words = highlight_segment(segment, current_time)
    click.echo(" ".join(_render_word(h.word, h.state) for h in words))
    for line in segment.secondary_lines:
        click.echo(line)


@main.command()
@click.argument("text")
@click.option("--context", default="news broadcast", help="Where the sentence comes from")
@click.pass_obj
def explain(config: Config, text: str, context: str) -> None:
    """Explain TEXT for an English learner."""
    if not config.has_gemini():
        raise click.ClickException("GEMINI_API_KEY environment variable required for explanations.")
    client = OpenAI(api_key=config.gemini_api_key, base_url=config.gemini_base_url)
    click.echo(explain_text(text, client, config.gemini_model, context=context))


if __name__ == "__main__":
    main()
