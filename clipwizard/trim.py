"""Two-handle trim slider state machine.

Every mutation clamps immediately, so ``start <= end - MIN_GAP_MS`` holds after
each pointer event, not only when the handle is released.
"""

import math

from clipwizard.models import MIN_GAP_MS, TrimRange

START = "start"
END = "end"


def format_hms(ms: float) -> str:
    """Render milliseconds as M:SS or H:MM:SS."""
    if not math.isfinite(ms):
        return "--:--"
    total_seconds = max(0, math.floor(ms / 1000))
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


class TrimEditor:
    def __init__(self, duration_ms: int, min_gap_ms: int = MIN_GAP_MS):
        self.duration_ms = max(0, int(duration_ms))
        self.min_gap_ms = min_gap_ms
        self.start_ms = 0
        self.end_ms = self.duration_ms
        self.active: str | None = None

    @property
    def range(self) -> TrimRange:
        return TrimRange(self.start_ms, self.end_ms)

    @property
    def adjustable(self) -> bool:
        # Clips shorter than the minimum gap keep the full range.
        return self.duration_ms >= self.min_gap_ms

    def _time_at(self, x: float, track_width: float) -> int:
        ratio = min(1.0, max(0.0, x / track_width)) if track_width > 0 else 0.0
        return round(ratio * self.duration_ms)

    def pointer_down(self, x: float, track_width: float) -> str | None:
        """Activate the handle nearest in time to *x* and move it there."""
        if not self.adjustable:
            return None
        ms = self._time_at(x, track_width)
        self.active = START if abs(ms - self.start_ms) <= abs(ms - self.end_ms) else END
        self._move_active(ms)
        return self.active

    def pointer_move(self, x: float, track_width: float) -> None:
        if self.active is None:
            return
        self._move_active(self._time_at(x, track_width))

    def pointer_up(self) -> None:
        self.active = None

    def _move_active(self, ms: int) -> None:
        if self.active == START:
            self.set_start(ms)
        elif self.active == END:
            self.set_end(ms)

    def set_start(self, ms: int) -> None:
        if not self.adjustable:
            return
        self.start_ms = max(0, min(int(ms), self.end_ms - self.min_gap_ms))

    def set_end(self, ms: int) -> None:
        if not self.adjustable:
            return
        self.end_ms = min(self.duration_ms, max(int(ms), self.start_ms + self.min_gap_ms))


def clamp_trim(trim: TrimRange, duration_ms: int) -> TrimRange:
    """Fit an externally supplied range into ``[0, duration_ms]`` with the minimum gap."""
    editor = TrimEditor(duration_ms)
    editor.set_end(trim.end_ms)
    editor.set_start(trim.start_ms)
    return editor.range
