"""Tests for the trim slider state machine."""

import math

from clipwizard.models import MIN_GAP_MS, TrimRange
from clipwizard.trim import END, START, TrimEditor, clamp_trim, format_hms

TRACK = 1000.0


def _assert_invariant(editor: TrimEditor) -> None:
    assert 0 <= editor.start_ms
    assert editor.start_ms <= editor.end_ms - MIN_GAP_MS
    assert editor.end_ms <= editor.duration_ms


class TestTrimEditor:
    def test_initial_range(self):
        editor = TrimEditor(10000)
        assert editor.range == TrimRange(0, 10000)
        assert editor.active is None

    def test_pointer_down_picks_nearer_handle(self):
        editor = TrimEditor(10000)
        assert editor.pointer_down(100, TRACK) == START
        editor.pointer_up()
        assert editor.pointer_down(900, TRACK) == END

    def test_start_clamped_below_end(self):
        editor = TrimEditor(10000)
        editor.pointer_down(0, TRACK)
        editor.pointer_move(999, TRACK)
        assert editor.start_ms == 9900
        _assert_invariant(editor)

    def test_end_clamped_above_start(self):
        editor = TrimEditor(10000)
        editor.set_start(4000)
        editor.pointer_down(1000, TRACK)
        editor.pointer_move(0, TRACK)
        assert editor.end_ms == 4100
        _assert_invariant(editor)

    def test_pointer_outside_track(self):
        editor = TrimEditor(10000)
        editor.pointer_down(900, TRACK)
        editor.pointer_move(5000, TRACK)
        assert editor.end_ms == 10000
        editor.pointer_up()
        editor.pointer_down(50, TRACK)
        editor.pointer_move(-300, TRACK)
        assert editor.start_ms == 0

    def test_invariant_after_every_move(self):
        editor = TrimEditor(7350)
        for handle_x in (0, TRACK):
            editor.pointer_down(handle_x, TRACK)
            for x in range(-50, 1051, 7):
                editor.pointer_move(x, TRACK)
                _assert_invariant(editor)
            for x in range(1050, -51, -13):
                editor.pointer_move(x, TRACK)
                _assert_invariant(editor)
            editor.pointer_up()

    def test_move_without_active_handle(self):
        editor = TrimEditor(10000)
        editor.pointer_move(500, TRACK)
        assert editor.range == TrimRange(0, 10000)

    def test_pointer_up_deactivates(self):
        editor = TrimEditor(10000)
        editor.pointer_down(100, TRACK)
        editor.pointer_up()
        editor.pointer_move(500, TRACK)
        assert editor.start_ms == 1000

    def test_numeric_setters_clamp(self):
        editor = TrimEditor(10000)
        editor.set_end(50)
        assert editor.end_ms == 100
        editor.set_start(-20)
        assert editor.start_ms == 0
        editor.set_end(99999)
        assert editor.end_ms == 10000
        _assert_invariant(editor)

    def test_media_shorter_than_gap(self):
        editor = TrimEditor(60)
        assert editor.pointer_down(500, TRACK) is None
        editor.set_start(30)
        assert editor.range == TrimRange(0, 60)

    def test_zero_width_track(self):
        editor = TrimEditor(10000)
        editor.pointer_down(0, 0)
        assert editor.start_ms == 0


class TestFormatHMS:
    def test_minutes(self):
        assert format_hms(0) == "0:00"
        assert format_hms(61000) == "1:01"

    def test_hours(self):
        assert format_hms(3723000) == "1:02:03"

    def test_non_finite(self):
        assert format_hms(math.inf) == "--:--"
        assert format_hms(math.nan) == "--:--"


class TestClampTrim:
    def test_valid_range_unchanged(self):
        assert clamp_trim(TrimRange(1000, 5000), 10000) == TrimRange(1000, 5000)

    def test_gap_enforced(self):
        assert clamp_trim(TrimRange(5000, 5050), 10000) == TrimRange(4950, 5050)
        assert clamp_trim(TrimRange(0, 50), 10000) == TrimRange(0, 100)

    def test_bounds(self):
        trim = clamp_trim(TrimRange(-20, 99999), 10000)
        assert trim == TrimRange(0, 10000)

    def test_inverted_range(self):
        trim = clamp_trim(TrimRange(8000, 2000), 10000)
        assert trim.start_ms + MIN_GAP_MS <= trim.end_ms <= 10000
        assert trim == TrimRange(1900, 2000)
