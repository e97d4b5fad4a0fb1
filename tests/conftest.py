import pytest

from newslingo.models import SubtitleSegment


def make_segments(count: int) -> list[SubtitleSegment]:
    return [
        SubtitleSegment(id=i, start_time=float(i - 1), end_time=float(i), text=f"line {i}")
        for i in range(1, count + 1)
    ]


@pytest.fixture
def srt_file(tmp_path):
    path = tmp_path / "news.srt"
    path.write_text(
        "1\n"
        "00:00:01,000 --> 00:00:04,000\n"
        "Hello world\n"
        "你好世界\n"
        "\n"
        "2\n"
        "00:00:05,000 --> 00:00:07,000\n"
        "Good evening\n",
        encoding="utf-8",
    )
    return path
