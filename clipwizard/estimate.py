"""Approximate output size, for display only."""

from clipwizard import presets
from clipwizard.models import MediaInfo, TranscodeSpec

MIN_RESOLUTION_SCALE = 0.2
MAX_RESOLUTION_SCALE = 1.5


def effective_video_bitrate(spec: TranscodeSpec) -> int:
    """Video bitrate scaled by the fps ratio.

    Fewer frames at the same quality need proportionally fewer bits. The
    result only feeds the estimate; ffmpeg still gets ``spec.video_bitrate_kbps``.
    """
    if spec.audio_only or not spec.video_bitrate_kbps:
        return 0
    if spec.source_fps and spec.fps:
        return round(spec.video_bitrate_kbps * (spec.fps / spec.source_fps))
    return spec.video_bitrate_kbps


def resolution_scale(spec: TranscodeSpec, info: MediaInfo) -> float:
    """Target pixel area over source area, clamped to [0.2, 1.5]."""
    if spec.audio_only or not (spec.width and spec.height):
        return 1.0
    if not (info.width and info.height):
        return 1.0
    scale = (spec.width * spec.height) / (info.width * info.height)
    return min(MAX_RESOLUTION_SCALE, max(MIN_RESOLUTION_SCALE, scale))


def format_multiplier(container: str, audio_only: bool) -> float:
    table = presets.AUDIO_SIZE_MULTIPLIERS if audio_only else presets.VIDEO_SIZE_MULTIPLIERS
    return table.get(container, 1.0)


def estimate(spec: TranscodeSpec, resolution_scale: float, format_multiplier: float) -> float | None:
    """Estimated output size in bytes, or None when it cannot be guessed."""
    clip_seconds = spec.trim.length_seconds
    if not clip_seconds:
        return None
    total_kbps = effective_video_bitrate(spec) * resolution_scale + (spec.audio_bitrate_kbps or 0)
    if not total_kbps:
        return None
    return total_kbps * format_multiplier * 1000 * clip_seconds / 8


def format_size(size_bytes: float | None) -> str:
    if size_bytes is None:
        return "--"
    mb = size_bytes / (1024 * 1024)
    if mb < 1024:
        return f"{mb:.1f} MB"
    return f"{mb / 1024:.2f} GB"


def estimate_size(spec: TranscodeSpec, info: MediaInfo) -> str:
    """Human-readable size estimate for *spec* converted from a file described by *info*."""
    size = estimate(
        spec,
        resolution_scale(spec, info),
        format_multiplier(spec.container, spec.audio_only),
    )
    return format_size(size)
