"""Shared data types used across ClipWizard."""

from dataclasses import dataclass
from pathlib import Path

MIN_GAP_MS = 100


@dataclass(frozen=True)
class MediaInfo:
    """Metadata extracted from a media file via ffprobe."""

    duration_seconds: float
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    bitrate_kbps: int | None = None
    has_video: bool = False

    @property
    def duration_ms(self) -> int:
        return round(self.duration_seconds * 1000)


@dataclass(frozen=True)
class NumericPreset:
    """A named choice for a numeric option ("source", "custom" or a fixed amount)."""

    label: str
    value: str
    amount: float | None = None


@dataclass(frozen=True)
class FormatOption:
    label: str
    value: str
    ext: str


@dataclass(frozen=True)
class ResolutionOption:
    label: str
    value: str
    width: int
    height: int


@dataclass(frozen=True)
class TrimRange:
    """A start/end pair in milliseconds."""

    start_ms: int
    end_ms: int

    @property
    def length_seconds(self) -> float:
        return max(0, self.end_ms - self.start_ms) / 1000


@dataclass(frozen=True)
class TranscodeSpec:
    """Fully resolved instruction set for one conversion run.

    ``source_fps`` is advisory: the size estimator uses it to scale the video
    bitrate, the command builder ignores it.
    """

    input_path: Path
    output_path: Path
    trim: TrimRange
    container: str
    audio_only: bool = False
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    video_bitrate_kbps: int | None = None
    audio_bitrate_kbps: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    source_fps: float | None = None
