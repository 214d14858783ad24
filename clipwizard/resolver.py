"""Option resolver: turns UI selections plus probed MediaInfo into a TranscodeSpec.

Every function here is pure. Callers re-run :func:`resolve` whenever any
selection changes; nothing is recomputed behind their back.
"""

import math
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable

from clipwizard import presets
from clipwizard.models import MediaInfo, NumericPreset, ResolutionOption, TranscodeSpec, TrimRange
from clipwizard.presets import CUSTOM, SOURCE
from clipwizard.trim import clamp_trim

_LEADING_INT = re.compile(r"\s*[+-]?\d+")
_LEADING_FLOAT = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_EXTENSION = re.compile(r"\.[^/\\.]+$")


@dataclass(frozen=True)
class Selections:
    """Every user choice that feeds a conversion."""

    input_path: Path
    resolution_preset: str = SOURCE
    custom_width: str = ""
    custom_height: str = ""
    fps_preset: str = SOURCE
    custom_fps: str = ""
    video_bitrate_preset: str = SOURCE
    custom_video_bitrate: str = ""
    audio_bitrate_preset: str = "192"
    custom_audio_bitrate: str = ""
    trim: TrimRange | None = None
    container: str = "mp4"
    video_codec: str | None = None
    audio_codec: str | None = None
    codec_selection_enabled: bool = False
    force_audio_only: bool = False
    output_dir: str = ""
    output_filename: str = "output"


def parse_int(text: str | None) -> int | None:
    """Leading-integer parse ("720p" -> 720); None unless finite and positive."""
    m = _LEADING_INT.match(text or "")
    if not m:
        return None
    value = int(m.group())
    return value if value > 0 else None


def parse_float(text: str | None) -> float | None:
    """Leading-float parse ("29.97fps" -> 29.97); None unless finite and positive."""
    m = _LEADING_FLOAT.match(text or "")
    if not m:
        return None
    value = float(m.group())
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def even_dimension(value: float) -> int:
    """Round half up, then bump odd results to the next even number."""
    rounded = math.floor(value + 0.5)
    return rounded if rounded % 2 == 0 else rounded + 1


def build_resolution_options(source_width: int, source_height: int) -> list[ResolutionOption]:
    """Scaled presets for a source size, dropping repeated dimensions."""
    options: list[ResolutionOption] = []
    seen: set[tuple[int, int]] = set()
    for label, value, factor in presets.RESOLUTION_SCALES:
        if value == SOURCE:
            width, height = source_width, source_height
        else:
            width, height = even_dimension(source_width * factor), even_dimension(source_height * factor)
        if (width, height) in seen:
            continue
        seen.add((width, height))
        options.append(ResolutionOption(f"{label} ({width}x{height})", value, width, height))
    return options


def fps_options(source_fps: float | None) -> list[NumericPreset]:
    options = list(presets.FPS_PRESETS)
    if source_fps:
        options.insert(0, NumericPreset(f"Source ({round(source_fps)} fps)", SOURCE, source_fps))
    return options


def video_bitrate_options(source_bitrate: int | None) -> list[NumericPreset]:
    if not source_bitrate:
        return list(presets.VIDEO_BITRATE_PRESETS)
    return [NumericPreset(f"Source ({source_bitrate} kbps)", SOURCE, source_bitrate)] + [
        p for p in presets.VIDEO_BITRATE_PRESETS if p.value != SOURCE
    ]


def is_audio_only(selections: Selections, info: MediaInfo) -> bool:
    return not info.has_video or selections.force_audio_only


def coerce_container(container: str, audio_only: bool) -> str:
    """Keep *container* if it belongs to the active set, else the set's first entry."""
    options = presets.format_options(audio_only)
    if any(f.value == container for f in options):
        return container
    return options[0].value


def coerce_codec(current: str | None, options: list[str]) -> str | None:
    if current in options:
        return current
    return options[0] if options else None


def switch_audio_only(selections: Selections, info: MediaInfo, force_audio_only: bool) -> Selections:
    """Flip the audio-only override, moving the container into the matching set."""
    updated = replace(selections, force_audio_only=force_audio_only)
    container = coerce_container(updated.container, is_audio_only(updated, info))
    return replace(updated, container=container)


def resolve_resolution(selections: Selections, info: MediaInfo) -> tuple[int | None, int | None]:
    preset = selections.resolution_preset
    if preset == CUSTOM:
        width, height = parse_int(selections.custom_width), parse_int(selections.custom_height)
    elif not (info.width and info.height):
        return None, None
    elif preset == SOURCE:
        width, height = info.width, info.height
    else:
        factor = next((f for _, v, f in presets.RESOLUTION_SCALES if v == preset), None)
        if factor is None:
            return None, None
        width, height = even_dimension(info.width * factor), even_dimension(info.height * factor)
    if width is None or height is None:
        return None, None
    return width, height


def _resolve_numeric(
    preset: str,
    custom_text: str,
    source_value: float | None,
    table: list[NumericPreset],
    parse: Callable[[str], float | int | None],
) -> float | int | None:
    if preset == CUSTOM:
        return parse(custom_text)
    if preset == SOURCE:
        return source_value or None
    return preset_value(table, preset)


def preset_value(table: list[NumericPreset], preset: str) -> float | None:
    amount = presets.preset_amount(table, preset)
    return amount if amount and amount > 0 else None


def resolve_fps(selections: Selections, info: MediaInfo) -> float | None:
    fps = _resolve_numeric(
        selections.fps_preset, selections.custom_fps, info.fps, presets.FPS_PRESETS, parse_float
    )
    return float(fps) if fps is not None else None


def resolve_video_bitrate(selections: Selections, info: MediaInfo) -> int | None:
    kbps = _resolve_numeric(
        selections.video_bitrate_preset,
        selections.custom_video_bitrate,
        info.bitrate_kbps,
        presets.VIDEO_BITRATE_PRESETS,
        parse_int,
    )
    return int(kbps) if kbps is not None else None


def resolve_audio_bitrate(selections: Selections, info: MediaInfo) -> int | None:
    kbps = _resolve_numeric(
        selections.audio_bitrate_preset,
        selections.custom_audio_bitrate,
        info.bitrate_kbps,
        presets.AUDIO_BITRATE_PRESETS,
        parse_int,
    )
    return int(kbps) if kbps is not None else None


def output_path(output_dir: str, output_filename: str, ext: str) -> Path:
    base = _EXTENSION.sub("", output_filename.strip()) or "output"
    name = f"{base}.{ext}"
    if not output_dir:
        return Path(name)
    return Path(output_dir) / name


def resolve(selections: Selections, info: MediaInfo | None) -> TranscodeSpec:
    """Resolve *selections* against *info* into a concrete TranscodeSpec.

    Unparseable or missing numbers resolve to None, which ffmpeg treats as
    "keep the source-equivalent default".
    """
    if info is None:
        raise ValueError("resolve() needs probed media info")

    audio_only = is_audio_only(selections, info)
    container = coerce_container(selections.container, audio_only)
    fmt = presets.find_format(container, audio_only)

    trim = clamp_trim(selections.trim, info.duration_ms) if selections.trim else TrimRange(0, info.duration_ms)
    audio_bitrate = resolve_audio_bitrate(selections, info)

    video_codec = audio_codec = None
    if selections.codec_selection_enabled:
        if audio_only:
            audio_codec = coerce_codec(selections.audio_codec, presets.codec_options(container, True))
        else:
            video_codec = coerce_codec(selections.video_codec, presets.codec_options(container, False))
            if selections.audio_codec in presets.AUDIO_CODECS_BY_FORMAT.get(container, []):
                audio_codec = selections.audio_codec

    path = output_path(selections.output_dir, selections.output_filename, fmt.ext)

    if audio_only:
        return TranscodeSpec(
            input_path=Path(selections.input_path),
            output_path=path,
            trim=trim,
            container=container,
            audio_only=True,
            audio_bitrate_kbps=audio_bitrate,
            audio_codec=audio_codec,
        )

    width, height = resolve_resolution(selections, info)
    return TranscodeSpec(
        input_path=Path(selections.input_path),
        output_path=path,
        trim=trim,
        container=container,
        audio_only=False,
        width=width,
        height=height,
        fps=resolve_fps(selections, info),
        video_bitrate_kbps=resolve_video_bitrate(selections, info),
        audio_bitrate_kbps=audio_bitrate,
        video_codec=video_codec,
        audio_codec=audio_codec,
        source_fps=info.fps,
    )


def default_selections(input_path: Path, info: MediaInfo, output_dir: str = "") -> Selections:
    """Initial choices after probing a freshly picked file."""
    input_path = Path(input_path)
    known_bitrate = info.bitrate_kbps is not None
    return Selections(
        input_path=input_path,
        resolution_preset=SOURCE,
        fps_preset=SOURCE,
        video_bitrate_preset=SOURCE if known_bitrate or not info.has_video else "8000",
        audio_bitrate_preset=SOURCE if known_bitrate else "192",
        custom_audio_bitrate=str(info.bitrate_kbps) if known_bitrate else "",
        trim=TrimRange(0, info.duration_ms),
        container="mp4" if info.has_video else "mp3",
        output_dir=output_dir or (str(input_path.parent) if input_path.parent.parts else ""),
        output_filename=f"{input_path.stem or 'output'}_converted",
    )
