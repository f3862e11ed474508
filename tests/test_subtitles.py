import pytest

from conftest import make_lyric
from lyricmv.editor.subtitles import (
    STYLES,
    SubtitleStyle,
    build_ass_document,
    escape_ass_text,
    format_ass_time,
    get_style,
    write_ass_subtitles,
)
from lyricmv.models import SpecialType


@pytest.mark.parametrize("seconds, expected", [
    (0.0, "0:00:00.00"),
    (65.5, "0:01:05.50"),
    (3661.25, "1:01:01.25"),
    (-2.0, "0:00:00.00"),
])
def test_format_ass_time(seconds, expected):
    assert format_ass_time(seconds) == expected


def test_escape_ass_text():
    assert escape_ass_text("{bold}\nline\\") == "\\{bold\\}\\Nline\\\\"


def test_document_has_one_dialogue_per_line():
    lyrics = [
        make_lyric(1, 0.0, 4.5, "[Intro]", SpecialType.PRELUDE),
        make_lyric(2, 4.5, 9.0, "City lights are calling"),
    ]

    document = build_ass_document(lyrics, width=1280, height=720)
    dialogues = [line for line in document.splitlines() if line.startswith("Dialogue:")]

    assert "PlayResX: 1280" in document
    assert "PlayResY: 720" in document
    assert len(dialogues) == 2
    assert dialogues[0].startswith("Dialogue: 0,0:00:00.00,0:00:04.50,Special,")
    assert dialogues[1].startswith("Dialogue: 0,0:00:04.50,0:00:09.00,Default,")
    assert dialogues[1].endswith("{\\fad(200,200)}City lights are calling")


def test_style_is_applied():
    style = SubtitleStyle(font_name="Noto Sans", font_size=60)
    document = build_ass_document([make_lyric(1, 0, 1)], style)

    assert "Style: Default,Noto Sans,60," in document
    assert "Style: Special,Noto Sans,48," in document


def test_write_ass_subtitles(tmp_path):
    path = write_ass_subtitles([make_lyric(1, 0, 2)], tmp_path / "sub" / "mv.ass")
    assert path.read_text(encoding="utf-8").startswith("[Script Info]")


def test_get_style():
    assert get_style("large") is STYLES["large"]
    with pytest.raises(ValueError):
        get_style("comic-sans")
