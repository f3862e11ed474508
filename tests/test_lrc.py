import pytest

from lyricmv.lyrics import (
    detect_language,
    detect_special_segment,
    format_timestamp,
    generate_lrc,
    parse_lrc,
    parse_timestamp,
)
from lyricmv.models import SpecialType


@pytest.mark.parametrize("value, expected", [
    ("01:02", 62.0),
    ("01:02.5", 62.5),
    ("01:02.50", 62.5),
    ("01:02.123", 62.123),
    ("00:00.00", 0.0),
    ("not a time", 0.0),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == pytest.approx(expected)


def test_format_timestamp():
    assert format_timestamp(62.5) == "01:02.50"
    assert format_timestamp(0) == "00:00.00"


def test_parse_sample(sample_lrc):
    parsed = parse_lrc(sample_lrc, total_duration=45.0)

    assert parsed.metadata == {"title": "Night Drive", "artist": "Test Artist"}
    assert parsed.language == "english"
    assert parsed.total_lyrics == 10
    assert [lyric.index for lyric in parsed.lyrics] == list(range(1, 11))

    first = parsed.lyrics[0]
    assert first.text == "City lights are calling"
    assert first.start_time == 0.0
    assert first.end_time == pytest.approx(4.5)
    assert first.duration == pytest.approx(4.5)

    last = parsed.lyrics[-1]
    assert last.end_time == 45.0
    assert last.duration == pytest.approx(4.5)


def test_last_line_without_audio_length_lasts_five_seconds():
    parsed = parse_lrc("[00:10.00]only line")

    assert parsed.lyrics[0].end_time == pytest.approx(15.0)


def test_repeated_timestamps_expand_and_sort():
    content = "[00:20.00]second\n[00:05.00][00:30.00]chorus\n"
    parsed = parse_lrc(content, total_duration=40.0)

    assert [(l.start_time, l.text) for l in parsed.lyrics] == [
        (5.0, "chorus"),
        (20.0, "second"),
        (30.0, "chorus"),
    ]
    assert [l.end_time for l in parsed.lyrics] == [20.0, 30.0, 40.0]


def test_lines_without_text_or_timestamp_are_ignored():
    content = "plain text\n[00:01.00]\n[00:02.00]kept\n[xx:yy]nope\n"
    parsed = parse_lrc(content)

    assert [l.text for l in parsed.lyrics] == ["kept"]


def test_special_markers_are_detected():
    content = "[00:00.00][Intro]\n[00:08.00]first line\n[00:12.00]【间奏】\n[00:20.00](Outro)\n"
    parsed = parse_lrc(content, total_duration=30.0)

    assert [l.special_type for l in parsed.lyrics] == [
        SpecialType.PRELUDE,
        None,
        SpecialType.INTERLUDE,
        SpecialType.OUTRO,
    ]


@pytest.mark.parametrize("text, expected", [
    ("[Chorus]", SpecialType.CHORUS),
    ("bridge", SpecialType.BRIDGE),
    ("前奏", SpecialType.PRELUDE),
    ("Intro to the song", None),
])
def test_detect_special_segment(text, expected):
    assert detect_special_segment(text) == expected


@pytest.mark.parametrize("text, expected", [
    ("我们一起走过的日子", "chinese"),
    ("こんにちは世界", "japanese"),
    ("사랑해요", "korean"),
    ("hello world", "english"),
    ("   ", "unknown"),
])
def test_detect_language(text, expected):
    assert detect_language(text) == expected


def test_generate_lrc_keeps_metadata_and_lines(sample_lrc):
    parsed = parse_lrc(sample_lrc, total_duration=45.0)
    text = generate_lrc(parsed)

    assert "[ti:Night Drive]" in text
    assert "[00:04.50]Engines humming low" in text
    assert parse_lrc(text, total_duration=45.0).lyrics == parsed.lyrics
