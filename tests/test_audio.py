from pathlib import Path

import pytest

from lyricmv.editor import audio, media
from lyricmv.exceptions import NotFoundError


@pytest.fixture
def files(tmp_path):
    video = tmp_path / "subtitled.mp4"
    video.write_bytes(b"video")
    song = tmp_path / "song.mp3"
    song.write_bytes(b"audio")
    return video, song, tmp_path / "final.mp4"


def patch_durations(monkeypatch, video_duration, audio_duration):
    """Fake the probes; the muxed output measures as long as the audio."""
    calls = []

    def probe(path):
        return audio_duration if Path(path).name == "final.mp4" else video_duration

    def run(args, timeout=None):
        calls.append(list(args))
        Path(args[-1]).write_bytes(b"muxed")

    monkeypatch.setattr(media, "probe_duration", probe)
    monkeypatch.setattr(audio, "get_audio_duration", lambda path: audio_duration)
    monkeypatch.setattr(audio, "run_ffmpeg", run)
    return calls


def test_short_video_is_padded_with_last_frame(files, monkeypatch):
    video, song, output = files
    calls = patch_durations(monkeypatch, video_duration=30.0, audio_duration=40.0)

    result = audio.mux_audio(video, song, output)

    assert result.padded_seconds == pytest.approx(10.0)
    assert result.duration == 40.0
    args = calls[0]
    assert "[0:v]tpad=stop_mode=clone:stop_duration=10.00[v]" in args
    assert args[args.index("-t") + 1] == "40.000"


@pytest.mark.parametrize("video_duration", [40.3, 39.7, 40.0])
def test_close_or_long_video_is_cut_to_the_audio(files, monkeypatch, video_duration):
    video, song, output = files
    calls = patch_durations(monkeypatch, video_duration=video_duration, audio_duration=40.0)

    result = audio.mux_audio(video, song, output)

    assert result.padded_seconds == 0.0
    args = calls[0]
    assert args[args.index("-c:v") + 1] == "copy"
    assert args[args.index("-t") + 1] == "40.000"
    assert not any("tpad" in arg for arg in args)


def test_missing_video(files, monkeypatch):
    video, song, output = files
    patch_durations(monkeypatch, 1.0, 1.0)
    video.unlink()

    with pytest.raises(NotFoundError):
        audio.mux_audio(video, song, output)


def test_missing_audio_file(tmp_path):
    with pytest.raises(NotFoundError):
        audio.get_audio_duration(tmp_path / "nothing.mp3")
