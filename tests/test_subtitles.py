import pytest

from newslingo.exceptions import SubtitleFileError
from newslingo.subtitles import (
    extract_youtube_id,
    format_timestamp,
    parse_srt,
    parse_subtitles,
    parse_timestamp,
    parse_vtt,
    read_subtitles,
    subtitles_to_srt,
    write_srt,
)

SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:03,500\n"
    "Hello <b>world</b>\n"
    "\n"
    "2\n"
    "00:00:04,000 --> 00:00:06,000\n"
    "Second line\n"
    "第二行\n"
)

VTT = (
    "WEBVTT\n"
    "\n"
    "NOTE produced by the newsroom\n"
    "\n"
    "00:01.000 --> 00:02.500 align:start position:10%\n"
    "Hi\n"
    "\n"
    "cue-2\n"
    "00:00:03.000 --> 00:00:04.000\n"
    "<i>There</i>\n"
)


def test_parse_timestamp_three_fields():
    assert parse_timestamp("01:02:03,004") == pytest.approx(3723.004)
    assert parse_timestamp("01:02:03.004") == pytest.approx(3723.004)


def test_parse_timestamp_two_fields():
    assert parse_timestamp("02:03,004") == pytest.approx(123.004)


def test_parse_timestamp_without_millis():
    assert parse_timestamp("00:01:02") == pytest.approx(62.0)


@pytest.mark.parametrize("value", ["not-a-time", "", "1:2:3:4", "aa:bb:cc,ddd"])
def test_parse_timestamp_falls_back_to_zero(value):
    assert parse_timestamp(value) == 0


def test_format_timestamp():
    assert format_timestamp(3723.004) == "01:02:03,004"
    assert format_timestamp(1.5, separator=".") == "00:00:01.500"
    assert format_timestamp(-3) == "00:00:00,000"


def test_parse_srt_blocks_in_order():
    segments = parse_srt(SRT)

    assert [s.id for s in segments] == [1, 2]
    assert segments[0].start_time == pytest.approx(1.0)
    assert segments[0].end_time == pytest.approx(3.5)
    assert segments[1].text == "Second line\n第二行"


def test_parse_srt_strips_tags():
    assert parse_srt(SRT)[0].text == "Hello world"


def test_parse_srt_skips_malformed_block_without_gap_in_ids():
    content = (
        "1\n00:00:01,000 --> 00:00:02,000\nFirst\n\n"
        "garbage\nnot a time\nstill text\n\n"
        "3\n00:00:03,000 --> 00:00:04,000\nThird\n"
    )

    segments = parse_srt(content)

    assert [(s.id, s.text) for s in segments] == [(1, "First"), (2, "Third")]


def test_parse_srt_ignores_source_index_and_accepts_missing_index():
    content = (
        "17\n00:00:01,000 --> 00:00:02,000\nIndexed\n\n"
        "00:00:02,000 --> 00:00:03,000\nNo index\n"
    )

    segments = parse_srt(content)

    assert [s.id for s in segments] == [1, 2]
    assert segments[1].text == "No index"
    assert segments[1].start_time == pytest.approx(2.0)


def test_parse_srt_normalizes_line_endings():
    segments = parse_srt(SRT.replace("\n", "\r\n"))

    assert len(segments) == 2
    assert segments[1].text == "Second line\n第二行"


def test_parse_srt_rejects_time_line_without_spaced_separator():
    assert parse_srt("1\n00:00:01,000-->00:00:02,000\nText\n") == []


def test_parse_empty_input():
    assert parse_srt("") == []
    assert parse_vtt("") == []
    assert parse_vtt("WEBVTT\n") == []


def test_parse_vtt_drops_header_and_cue_settings():
    segments = parse_vtt(VTT)

    assert [s.id for s in segments] == [1, 2]
    assert segments[0].start_time == pytest.approx(1.0)
    assert segments[0].end_time == pytest.approx(2.5)
    assert segments[0].text == "Hi"
    assert segments[1].text == "There"


def test_parse_subtitles_selects_format_by_extension():
    content = "00:00:01.000 --> 00:00:02.000\n"

    # VTT accepts a cue with no text, SRT needs at least two lines
    assert len(parse_subtitles(content, "clip.VTT")) == 1
    assert parse_subtitles(content, "clip.srt") == []
    assert parse_subtitles(content, "clip.txt") == []


def test_read_subtitles_handles_bom(tmp_path):
    path = tmp_path / "bom.srt"
    path.write_text("\ufeff" + SRT, encoding="utf-8")

    segments = read_subtitles(path)

    assert len(segments) == 2


def test_read_subtitles_missing_file(tmp_path):
    with pytest.raises(SubtitleFileError):
        read_subtitles(tmp_path / "missing.srt")


def test_write_srt_renumbers_and_keeps_bilingual_text(tmp_path):
    segments = parse_srt(SRT)[1:]
    path = tmp_path / "out.srt"

    write_srt(segments, path)

    assert path.read_text(encoding="utf-8") == (
        "1\n00:00:04,000 --> 00:00:06,000\nSecond line\n第二行\n"
    )
    assert subtitles_to_srt([]) == ""


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ?start=10",
        "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    ],
)
def test_extract_youtube_id(url):
    assert extract_youtube_id(url) == "dQw4w9WgXcQ"


def test_extract_youtube_id_rejects_other_urls():
    assert extract_youtube_id("https://example.com/video") is None
    assert extract_youtube_id("https://youtu.be/short") is None
