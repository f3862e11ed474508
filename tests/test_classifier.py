import pytest

from conftest import make_lyric, make_segment
from lyricmv.models import Priority, RenderType, SpecialType, Storyboard, StoryboardScene
from lyricmv.pipeline import (
    Budget,
    ClassifyOptions,
    analyze_priority,
    calculate_video_duration,
    classify_segments,
    determine_render_type,
    get_classification_stats,
    merge_adjacent_segments,
    optimize_for_budget,
)


def even_lyrics(count: int, duration: float = 4.5):
    return [make_lyric(i + 1, i * duration, (i + 1) * duration) for i in range(count)]


class TestAnalyzePriority:
    def test_climax_window_is_high(self):
        lyrics = even_lyrics(10)
        priorities = [analyze_priority(lyric, i, 10) for i, lyric in enumerate(lyrics)]

        assert priorities == [
            Priority.MEDIUM, Priority.MEDIUM, Priority.MEDIUM, Priority.MEDIUM, Priority.MEDIUM,
            Priority.HIGH, Priority.HIGH, Priority.HIGH, Priority.HIGH,
            Priority.MEDIUM,
        ]

    def test_special_segments_are_low(self):
        intro = make_lyric(6, 0, 10, "[Intro]", SpecialType.PRELUDE)
        assert analyze_priority(intro, 5, 10) == Priority.LOW

    def test_long_middle_line_is_high(self):
        lyric = make_lyric(5, 0, 6.5)
        assert analyze_priority(lyric, 3, 20) == Priority.HIGH

    def test_long_opening_line_stays_medium(self):
        lyric = make_lyric(1, 0, 9)
        assert analyze_priority(lyric, 0, 20) == Priority.MEDIUM


class TestDetermineRenderType:
    @pytest.mark.parametrize("priority, duration, expected", [
        (Priority.HIGH, 4.0, RenderType.VIDEO),
        (Priority.HIGH, 3.9, RenderType.ANIMATION),
        (Priority.MEDIUM, 6.0, RenderType.VIDEO),
        (Priority.MEDIUM, 5.9, RenderType.ANIMATION),
        (Priority.MEDIUM, 1.5, RenderType.STATIC),
    ])
    def test_tiers(self, priority, duration, expected):
        lyric = make_lyric(1, 0, duration)
        assert determine_render_type(lyric, priority) == expected

    def test_special_segments_never_get_video(self):
        long_intro = make_lyric(1, 0, 12, "[Intro]", SpecialType.PRELUDE)
        short_intro = make_lyric(1, 0, 1, "[Intro]", SpecialType.PRELUDE)

        assert determine_render_type(long_intro, Priority.LOW) == RenderType.ANIMATION
        assert determine_render_type(short_intro, Priority.LOW) == RenderType.STATIC

    def test_all_video_overrides_everything(self):
        intro = make_lyric(1, 0, 1, "[Intro]", SpecialType.PRELUDE)
        options = ClassifyOptions(all_video=True, force_type=RenderType.STATIC)
        assert determine_render_type(intro, Priority.LOW, options) == RenderType.VIDEO

    def test_forced_type(self):
        lyric = make_lyric(1, 0, 10)
        options = ClassifyOptions(force_type=RenderType.STATIC)
        assert determine_render_type(lyric, Priority.HIGH, options) == RenderType.STATIC

    def test_custom_thresholds(self):
        lyric = make_lyric(1, 0, 3)
        options = ClassifyOptions(min_video_threshold=2.5)
        assert determine_render_type(lyric, Priority.HIGH, options) == RenderType.VIDEO


@pytest.mark.parametrize("duration, expected", [(1.0, 3.0), (5.5, 5.5), (14.0, 10.0)])
def test_calculate_video_duration(duration, expected):
    assert calculate_video_duration(duration) == expected


def test_classify_segments_uses_storyboard():
    lyrics = even_lyrics(10)
    storyboard = Storyboard(scenes=[
        StoryboardScene(index=7, prompt="rain on glass", scene_type="object", has_character=False),
        StoryboardScene(index=8, prompt="singer at the wheel", scene_type="character", has_character=True),
    ])

    classified = classify_segments(lyrics, storyboard)

    assert [s.index for s in classified] == list(range(1, 11))
    assert classified[6].prompt == "rain on glass"
    assert classified[7].has_character is True
    assert classified[0].prompt == ""
    assert classified[0].scene_type == "unknown"

    videos = [s for s in classified if s.render_type == RenderType.VIDEO]
    assert [s.index for s in videos] == [6, 7, 8, 9]
    assert all(s.video_duration == pytest.approx(4.5) for s in videos)
    assert all(s.video_duration is None for s in classified if s.render_type != RenderType.VIDEO)


def test_classify_leaves_input_untouched():
    lyrics = even_lyrics(3)
    before = [lyric.model_dump() for lyric in lyrics]
    classify_segments(lyrics, None)
    assert [lyric.model_dump() for lyric in lyrics] == before


class TestOptimizeForBudget:
    def test_keeps_highest_priority_then_longest(self):
        segments = [
            make_segment(1, 7.0, RenderType.VIDEO, Priority.MEDIUM),
            make_segment(2, 5.0, RenderType.VIDEO, Priority.HIGH),
            make_segment(3, 5.0, RenderType.VIDEO, Priority.HIGH),
            make_segment(4, 8.0, RenderType.VIDEO, Priority.HIGH),
            make_segment(5, 3.0, RenderType.ANIMATION),
        ]

        optimized = optimize_for_budget(segments, Budget(max_videos=2))

        assert [s.render_type for s in optimized] == [
            RenderType.ANIMATION,
            RenderType.VIDEO,
            RenderType.ANIMATION,
            RenderType.VIDEO,
            RenderType.ANIMATION,
        ]
        assert optimized[0].video_duration is None
        assert optimized[2].video_duration is None
        assert optimized[3].video_duration == 8.0
        # Input order is kept
        assert [s.index for s in optimized] == [1, 2, 3, 4, 5]
        assert segments[0].render_type == RenderType.VIDEO

    def test_under_budget_is_unchanged(self):
        segments = [make_segment(1, 5.0, RenderType.VIDEO, Priority.HIGH)]
        assert optimize_for_budget(segments, Budget(max_videos=3)) == segments

    def test_zero_budget_downgrades_all(self):
        segments = [make_segment(i, 5.0, RenderType.VIDEO, Priority.HIGH) for i in (1, 2)]
        optimized = optimize_for_budget(segments, Budget(max_videos=0))
        assert all(s.render_type == RenderType.ANIMATION for s in optimized)


class TestMergeAdjacentSegments:
    def test_merges_short_neighbours_and_renumbers(self):
        segments = [
            make_segment(1, 1.5, RenderType.ANIMATION, start=0.0, text="a", prompt="pa"),
            make_segment(2, 1.5, RenderType.ANIMATION, start=1.5, text="b", prompt="pb"),
            make_segment(3, 1.5, RenderType.ANIMATION, start=3.0, text="c"),
            make_segment(4, 5.0, RenderType.VIDEO, Priority.HIGH, start=4.5),
        ]

        merged = merge_adjacent_segments(segments, threshold=2.0)

        assert [s.index for s in merged] == [1, 2, 3]
        assert merged[0].text == "a b"
        assert merged[0].prompt == "pa; pb"
        assert merged[0].start_time == 0.0
        assert merged[0].end_time == 3.0
        assert merged[0].duration == 3.0
        # The merged segment is no longer short, so "c" stays alone
        assert merged[1].text == "c"
        assert merged[2].render_type == RenderType.VIDEO

    def test_different_tiers_and_specials_do_not_merge(self):
        segments = [
            make_segment(1, 1.0, RenderType.ANIMATION, start=0.0),
            make_segment(2, 1.0, RenderType.STATIC, start=1.0),
            make_segment(3, 1.0, RenderType.STATIC, start=2.0, special_type=SpecialType.INTERLUDE),
        ]

        assert len(merge_adjacent_segments(segments)) == 3


def test_classification_stats():
    segments = [
        make_segment(1, 5.0, RenderType.VIDEO, Priority.HIGH),
        make_segment(2, 3.0, RenderType.ANIMATION, Priority.MEDIUM),
        make_segment(3, 1.0, RenderType.STATIC, Priority.LOW),
        make_segment(4, 3.0, RenderType.ANIMATION, Priority.MEDIUM),
    ]

    stats = get_classification_stats(segments)

    assert stats.total == 4
    assert stats.by_render_type == {"video": 1, "animation": 2, "static": 1}
    assert stats.by_priority == {"high": 1, "medium": 2, "low": 1}
    assert stats.estimated_cost.video_count == 1
    assert stats.estimated_cost.image_count == 4
