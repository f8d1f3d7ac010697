"""Tests for interactive transform editing."""

import asyncio

import pytest

from photo_editor.domain.session import Transform, TransformDelta
from photo_editor.services.interaction import TransformEditor


def _editor() -> tuple[TransformEditor, list[TransformDelta]]:
    reports: list[TransformDelta] = []
    return TransformEditor(on_change=reports.append), reports


def test_drag_reports_delta_on_flush() -> None:
    editor, reports = _editor()

    editor.drag(5, -3)
    editor.flush()

    assert reports == [TransformDelta(dx=5, dy=-3)]


def test_edits_between_frames_are_coalesced() -> None:
    editor, reports = _editor()

    for _ in range(5):
        editor.drag(1, 0)
    editor.rotate(15)
    editor.resize(2)
    editor.resize(1.5)
    editor.flush()
    editor.flush()

    assert reports == [TransformDelta(dx=5, rotation=15, scale_factor=3)]


@pytest.mark.parametrize(
    ("key", "shift", "expected"),
    [
        ("ArrowLeft", False, TransformDelta(dx=-1)),
        ("ArrowRight", True, TransformDelta(dx=10)),
        ("ArrowUp", True, TransformDelta(dy=-10)),
        ("ArrowDown", False, TransformDelta(dy=1)),
        ("+", False, TransformDelta(scale_factor=1.1)),
        ("=", False, TransformDelta(scale_factor=1.1)),
        ("-", False, TransformDelta(scale_factor=0.9)),
        ("_", False, TransformDelta(scale_factor=0.9)),
    ],
)
def test_keyboard_shortcuts(key: str, shift: bool, expected: TransformDelta) -> None:
    editor, reports = _editor()

    assert editor.handle_key(key, shift=shift)
    editor.flush()

    assert reports == [expected]


def test_unknown_key_is_not_handled() -> None:
    editor, reports = _editor()

    assert not editor.handle_key("Enter")
    editor.flush()

    assert reports == []


def test_resize_rejects_non_positive_factor() -> None:
    editor, _ = _editor()

    with pytest.raises(ValueError):
        editor.resize(0)


def test_discard_drops_pending_edits() -> None:
    editor, reports = _editor()
    editor.drag(10, 10)

    editor.discard()
    editor.flush()

    assert reports == []


def test_delta_applies_relative_to_given_transform() -> None:
    delta = TransformDelta(dx=5, dy=-5, scale_factor=1.1, rotation=350)

    applied = delta.apply(Transform(x=100, y=100, scale=2, rotation=20))

    assert (applied.x, applied.y) == (105, 95)
    assert applied.scale == pytest.approx(2.2)
    assert applied.rotation == pytest.approx(10)


def test_at_most_one_report_per_frame_with_running_loop() -> None:
    reports: list[TransformDelta] = []

    async def scenario() -> None:
        editor = TransformEditor(on_change=reports.append, frame_interval_seconds=0.01)
        for _ in range(10):
            editor.drag(1, 1)
        await asyncio.sleep(0.05)
        editor.drag(1, 0)
        await asyncio.sleep(0.05)
        editor.close()

    asyncio.run(scenario())

    assert reports == [TransformDelta(dx=10, dy=10), TransformDelta(dx=1)]
