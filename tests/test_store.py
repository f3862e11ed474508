import json

import pytest

from conftest import make_lyric, make_segment
from lyricmv.exceptions import NotFoundError, ValidationError
from lyricmv.models import ConfirmationSet, ProjectData, ProjectState, ProjectStatus, RenderType
from lyricmv.pipeline import ProjectRegistry


def sample_state() -> ProjectState:
    return ProjectState(
        id="abc123",
        status=ProjectStatus.AWAITING_IMAGE_CONFIRM,
        progress=60,
        data=ProjectData(
            language="english",
            lyrics=[make_lyric(1, 0, 4.5), make_lyric(2, 4.5, 9.0)],
            classified_segments=[
                make_segment(1, 4.5, RenderType.ANIMATION, start=0.0),
                make_segment(2, 4.5, RenderType.VIDEO, start=4.5),
            ],
            image_confirmation=ConfirmationSet.seeded([1, 2]).confirm(1),
        ),
    )


def test_round_trip(store):
    state = sample_state()
    store.save(state)

    loaded = store.load("abc123")

    assert loaded.model_dump() == state.model_dump()
    assert store.exists("abc123")
    assert store.list_ids() == ["abc123"]


def test_snapshot_is_versioned_snake_case_json(store):
    path = store.save(sample_state())
    raw = json.loads(path.read_text(encoding="utf-8"))

    assert raw["schema_version"] == 1
    assert raw["status"] == "awaiting_image_confirm"
    assert raw["data"]["image_confirmation"] == {"confirmed": [1], "pending": [2], "regenerating": []}
    assert "classified_segments" in raw["data"]
    assert "saved_at" in raw
    assert not list(path.parent.glob("*.tmp"))


def test_save_overwrites_previous_snapshot(store):
    state = sample_state()
    store.save(state)
    store.save(state.model_copy(update={"progress": 70}))

    assert store.load("abc123").progress == 70


def test_missing_project(store):
    with pytest.raises(NotFoundError):
        store.load("nope")
    assert store.list_ids() == []


def test_corrupt_snapshot(store):
    path = store.snapshot_path("broken")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValidationError):
        store.load("broken")


def test_unknown_schema_version(store):
    path = store.save(sample_state())
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["schema_version"] = 99
    path.write_text(json.dumps(raw), encoding="utf-8")

    with pytest.raises(ValidationError, match="schema version"):
        store.load("abc123")


def test_invalid_snapshot_content(store):
    path = store.save(sample_state())
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["status"] = "dancing"
    path.write_text(json.dumps(raw), encoding="utf-8")

    with pytest.raises(ValidationError):
        store.load("abc123")


def test_registry_loads_once_and_caches(store):
    store.save(sample_state())
    created = []

    def factory(state):
        created.append(state.id)
        return object()

    registry = ProjectRegistry(store, factory)
    first = registry.get("abc123")

    assert registry.get("abc123") is first
    assert created == ["abc123"]

    registry.forget("abc123")
    assert registry.get("abc123") is not first
    assert created == ["abc123", "abc123"]


def test_registry_unknown_project(store):
    registry = ProjectRegistry(store, lambda state: state)
    with pytest.raises(NotFoundError):
        registry.get("missing")


def test_registry_register_returns_handle(store):
    registry = ProjectRegistry(store, lambda state: state)
    handle = object()

    assert registry.register("x", handle) is handle
    assert registry.get("x") is handle
