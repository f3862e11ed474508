import pytest

from conftest import FakeVideoGenerator, make_segment
from lyricmv.editor import media
from lyricmv.editor.chaining import generate_segment_video, plan_chain, requested_duration
from lyricmv.exceptions import GenerationError
from lyricmv.models import RenderType, VideoResult


@pytest.mark.parametrize("target, calls", [
    (5.0, 1),
    (12.0, 1),
    (15.0, 1),
    (16.0, 2),
    (22.0, 3),
    (30.0, 3),
])
def test_plan_chain(target, calls):
    assert plan_chain(target) == calls


def test_plan_chain_custom_limits():
    assert plan_chain(9.0, max_clip_duration=4.0, long_segment_threshold=8.0) == 3


def test_requested_duration_prefers_video_duration():
    assert requested_duration(make_segment(1, 5.0, RenderType.VIDEO, video_duration=6.0)) == 6.0
    assert requested_duration(make_segment(1, 2.0, RenderType.ANIMATION)) == 3.0
    assert requested_duration(make_segment(1, 14.0, RenderType.ANIMATION)) == 10.0


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "image_001.png"
    path.write_bytes(b"png")
    return path


@pytest.fixture
def fake_media(monkeypatch):
    concatenated = []

    def extract_last_frame(video, output):
        output.write_bytes(b"frame of " + video.name.encode())
        return output

    def concat_clips(paths, output):
        concatenated.append([p.name for p in paths])
        output.write_bytes(b"joined")
        return output

    monkeypatch.setattr(media, "extract_last_frame", extract_last_frame)
    monkeypatch.setattr(media, "concat_clips", concat_clips)
    monkeypatch.setattr(media, "probe_duration", lambda path: 30.0)
    return concatenated


def test_single_call_for_short_segment(tmp_path, image, fake_media):
    generator = FakeVideoGenerator()
    segment = make_segment(1, 5.0, RenderType.VIDEO)
    output = tmp_path / "video_001.mp4"

    result = generate_segment_video(generator, segment, image, output)

    assert result.success
    assert generator.calls == [1]
    assert generator.durations == [5.0]
    assert generator.references == [image]
    assert fake_media == []


def test_long_segment_is_chained_from_last_frames(tmp_path, image, fake_media):
    generator = FakeVideoGenerator()
    segment = make_segment(1, 22.0, RenderType.VIDEO, video_duration=10.0)
    output = tmp_path / "video_001.mp4"

    result = generate_segment_video(generator, segment, image, output)

    assert result.success
    assert result.clip_count == 3
    assert result.duration == 30.0
    assert result.path == str(output)
    assert generator.durations == [10.0, 10.0, 10.0]
    assert generator.references[0] == image
    assert [p.name for p in generator.references[1:]] == ["last_frame_01.png", "last_frame_02.png"]
    assert fake_media == [["part_01.mp4", "part_02.mp4", "part_03.mp4"]]
    assert output.read_bytes() == b"joined"
    assert not (tmp_path / ".chain_001").exists()


class FailingOnSecondCall(FakeVideoGenerator):
    def generate(self, segment, image_path, output_path, options):
        if len(self.calls) == 1:
            self.calls.append(segment.index)
            return VideoResult(index=segment.index, success=False, error="safety filter")
        return super().generate(segment, image_path, output_path, options)


def test_failed_part_discards_the_whole_chain(tmp_path, image, fake_media):
    generator = FailingOnSecondCall()
    segment = make_segment(1, 22.0, RenderType.VIDEO, video_duration=10.0)
    output = tmp_path / "video_001.mp4"

    with pytest.raises(GenerationError, match="2/3"):
        generate_segment_video(generator, segment, image, output)

    assert len(generator.calls) == 2
    assert fake_media == []
    assert not output.exists()
    assert not (tmp_path / ".chain_001").exists()
