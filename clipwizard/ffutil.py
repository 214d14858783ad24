"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any

from clipwizard import presets
from clipwizard.models import MediaInfo, TranscodeSpec

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"time=\s*(-?\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


class FFmpegNotFoundError(RuntimeError):
    pass


class ProbeError(RuntimeError):
    """Raised when ffprobe cannot start, fails, or prints unusable output."""

    def __init__(self, message: str, command: list[str] | None = None, output: str | None = None):
        self.message = message
        self.command = command
        self.output = output
        super().__init__(message)


def ffmpeg_bin() -> str:
    return os.environ.get("CLIPWIZARD_FFMPEG", "ffmpeg")


def ffprobe_bin() -> str:
    return os.environ.get("CLIPWIZARD_FFPROBE", "ffprobe")


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg_bin(), ffprobe_bin()):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> MediaInfo:
    """Extract media metadata via ffprobe."""
    cmd = [
        ffprobe_bin(),
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    logger.debug(f"Probing {input_path}: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8", errors="replace")
    except OSError as e:
        raise ProbeError(f"Failed to run ffprobe: {e}", command=cmd) from e

    if result.returncode != 0:
        raise ProbeError(f"ffprobe error: {result.stderr.strip()}", command=cmd, output=result.stderr)

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Failed to parse ffprobe JSON: {e}", command=cmd, output=result.stdout) from e

    info = parse_media_info(data)
    logger.info(
        f"Probed {input_path.name}: {info.duration_seconds:.2f}s, video={info.has_video}, "
        f"{info.width}x{info.height} @ {info.fps} fps, {info.bitrate_kbps} kbps"
    )
    return info


def parse_frame_rate(rate: str | None) -> float | None:
    """Parse an ffprobe rate such as "30000/1001" or "25"; None if unusable."""
    if not rate:
        return None
    try:
        if "/" in rate:
            num, den = rate.split("/", 1)
            if float(den) == 0:
                return None
            fps = float(num) / float(den)
        else:
            fps = float(rate)
    except ValueError:
        return None
    return fps if fps > 0 else None


def _positive_int(value: Any) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def parse_media_info(data: dict[str, Any]) -> MediaInfo:
    """Map ffprobe's ``-show_format -show_streams`` JSON to a MediaInfo."""
    if not isinstance(data, dict):
        raise ProbeError("Unexpected ffprobe output")

    fmt = data.get("format")
    if not isinstance(fmt, dict):
        raise ProbeError("Missing format section")
    try:
        duration = float(fmt["duration"])
    except (KeyError, TypeError, ValueError):
        raise ProbeError("Missing duration") from None

    streams = data.get("streams")
    if not isinstance(streams, list):
        raise ProbeError("Missing streams")

    video_stream = next(
        (s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"), None
    )

    width = height = fps = None
    if video_stream is not None:
        width = _positive_int(video_stream.get("width"))
        height = _positive_int(video_stream.get("height"))
        fps = parse_frame_rate(video_stream.get("avg_frame_rate")) or parse_frame_rate(
            video_stream.get("r_frame_rate")
        )

    bit_rate = _positive_int(fmt.get("bit_rate"))
    if bit_rate is None and video_stream is not None:
        bit_rate = _positive_int(video_stream.get("bit_rate"))
    bitrate_kbps = bit_rate // 1000 if bit_rate else None

    return MediaInfo(
        duration_seconds=max(duration, 0.0),
        width=width,
        height=height,
        fps=fps,
        bitrate_kbps=bitrate_kbps or None,
        has_video=video_stream is not None,
    )


def parse_progress_time(line: str) -> float | None:
    """Return the ``time=`` position in seconds from an ffmpeg status line."""
    m = _TIME_RE.search(line)
    if not m:
        return None
    hours, minutes, seconds = int(m.group(1)), int(m.group(2)), float(m.group(3))
    if hours < 0:
        return None
    return hours * 3600 + minutes * 60 + seconds


def _allowed_codec(kind: str, codec: str | None, allowed: list[str], container: str) -> str:
    if codec is None:
        return allowed[0]
    if codec not in allowed:
        raise ValueError(f"{kind} codec {codec} not allowed for format {container}")
    return codec


def build_ffmpeg_args(spec: TranscodeSpec) -> list[str]:
    """Translate a TranscodeSpec into ffmpeg arguments (without the binary).

    Raises ValueError for a spec ffmpeg cannot honor: an empty trim window,
    an unsupported container, or a codec the container does not allow.
    """
    if spec.trim.end_ms <= spec.trim.start_ms:
        raise ValueError("End time must be greater than start time")

    container = spec.container
    start_secs = spec.trim.start_ms / 1000
    duration_secs = (spec.trim.end_ms - spec.trim.start_ms) / 1000

    args = ["-y"]
    if start_secs > 0:
        args += ["-ss", f"{start_secs:.3f}"]
    args += ["-i", str(spec.input_path)]
    args += ["-t", f"{duration_secs:.3f}"]

    if spec.audio_only:
        allowed_audio = presets.AUDIO_CODECS_BY_FORMAT.get(container, [])
        if not allowed_audio:
            raise ValueError(f"No audio codecs available for format: {container}")
        audio_codec = _allowed_codec("Audio", spec.audio_codec, allowed_audio, container)
        args += ["-vn", "-c:a", audio_codec]
        if spec.audio_bitrate_kbps:
            args += ["-b:a", f"{spec.audio_bitrate_kbps}k"]
        args.append(str(spec.output_path))
        return args

    filters: list[str] = []
    if spec.width and spec.height:
        filters.append(f"scale={spec.width}:{spec.height}")
    if spec.fps:
        filters.append(f"fps={spec.fps:g}")
    if filters:
        args += ["-vf", ",".join(filters)]

    allowed_video = presets.VIDEO_CODECS_BY_FORMAT.get(container, [])
    if not allowed_video:
        raise ValueError(f"Unsupported format: {container}")
    video_codec = _allowed_codec("Video", spec.video_codec, allowed_video, container)

    allowed_audio = presets.AUDIO_CODECS_BY_FORMAT.get(container, [])
    if spec.audio_codec in allowed_audio:
        audio_codec = spec.audio_codec
    else:
        audio_codec = allowed_audio[0] if allowed_audio else None

    pix_fmt = "yuv420p"
    extra: list[str] = []
    if video_codec == "prores_ks":
        pix_fmt = "yuv422p10le"
        extra += ["-profile:v", "3"]
    elif video_codec == "mjpeg":
        pix_fmt = "yuvj422p"

    if container in ("mp4", "mov"):
        extra += ["-movflags", "+faststart"]
    elif container == "gif":
        pix_fmt = "rgb8"
        extra += ["-an", "-loop", "0"]

    args += ["-c:v", video_codec]
    if video_codec == "libx264":
        args += ["-preset", "medium"]

    # GIF has no bitrate control; the encoder works off the palette.
    if spec.video_bitrate_kbps and video_codec != "gif":
        args += ["-b:v", f"{spec.video_bitrate_kbps}k"]

    if audio_codec:
        args += ["-c:a", audio_codec]
        if spec.audio_bitrate_kbps:
            args += ["-b:a", f"{spec.audio_bitrate_kbps}k"]

    args += extra
    args += ["-pix_fmt", pix_fmt]
    args.append(str(spec.output_path))
    return args
