"""Static option tables: containers, codecs, numeric presets, size factors."""

from clipwizard.models import FormatOption, NumericPreset

SOURCE = "source"
CUSTOM = "custom"

FPS_PRESETS: list[NumericPreset] = [
    NumericPreset("60 fps", "60", 60),
    NumericPreset("30 fps", "30", 30),
    NumericPreset("24 fps", "24", 24),
    NumericPreset("Custom", CUSTOM),
]

VIDEO_BITRATE_PRESETS: list[NumericPreset] = [
    NumericPreset("Source", SOURCE),
    NumericPreset("8000 kbps", "8000", 8000),
    NumericPreset("6000 kbps", "6000", 6000),
    NumericPreset("4000 kbps", "4000", 4000),
    NumericPreset("2500 kbps", "2500", 2500),
    NumericPreset("Custom", CUSTOM),
]

AUDIO_BITRATE_PRESETS: list[NumericPreset] = [
    NumericPreset("Source", SOURCE),
    NumericPreset("320 kbps", "320", 320),
    NumericPreset("192 kbps", "192", 192),
    NumericPreset("128 kbps", "128", 128),
    NumericPreset("Custom", CUSTOM),
]

# (label, preset value, factor) in display order
RESOLUTION_SCALES: list[tuple[str, str, float]] = [
    ("125%", "scale_125", 1.25),
    ("Source", SOURCE, 1.0),
    ("75%", "scale_75", 0.75),
    ("50%", "scale_50", 0.5),
]

VIDEO_FORMATS: list[FormatOption] = [
    FormatOption("MP4", "mp4", "mp4"),
    FormatOption("MKV", "mkv", "mkv"),
    FormatOption("MOV", "mov", "mov"),
    FormatOption("WebM", "webm", "webm"),
    FormatOption("AVI", "avi", "avi"),
    FormatOption("FLV", "flv", "flv"),
    FormatOption("Animated GIF", "gif", "gif"),
]

AUDIO_FORMATS: list[FormatOption] = [
    FormatOption("MP3", "mp3", "mp3"),
    FormatOption("WAV", "wav", "wav"),
    FormatOption("FLAC", "flac", "flac"),
    FormatOption("AAC (M4A)", "m4a", "m4a"),
    FormatOption("OGG", "ogg", "ogg"),
    FormatOption("Opus", "opus", "opus"),
]

VIDEO_CODECS_BY_FORMAT: dict[str, list[str]] = {
    "mp4": ["libx264", "libx265"],
    "mov": ["libx264", "libx265", "prores_ks", "mjpeg"],
    "mkv": ["libx264", "libx265", "libvpx-vp9", "prores_ks", "mjpeg"],
    "webm": ["libvpx-vp9"],
    "avi": ["libx264", "mjpeg"],
    "flv": ["libx264"],
    "gif": ["gif"],
}

AUDIO_CODECS_BY_FORMAT: dict[str, list[str]] = {
    "mp4": ["aac", "libmp3lame"],
    "mov": ["aac"],
    "mkv": ["aac", "libopus", "libvorbis", "libmp3lame", "flac"],
    "webm": ["libopus", "libvorbis"],
    "avi": ["libmp3lame"],
    "flv": ["aac"],
    "gif": [],
    "mp3": ["libmp3lame"],
    "wav": ["pcm_s16le"],
    "flac": ["flac"],
    "m4a": ["aac"],
    "ogg": ["libvorbis"],
    "opus": ["libopus"],
}

# Rough container/codec overhead relative to the nominal bitrate.
AUDIO_SIZE_MULTIPLIERS: dict[str, float] = {
    "wav": 3.8,  # PCM vs. typical compressed kbps
    "flac": 0.7,
    "opus": 0.7,
    "ogg": 0.85,
    "m4a": 0.9,
}

VIDEO_SIZE_MULTIPLIERS: dict[str, float] = {
    "webm": 0.85,
    "mkv": 0.95,
    "mov": 1.05,
    "avi": 1.15,
    "flv": 1.1,
    "gif": 2.5,  # palette animation
}


def format_options(audio_only: bool) -> list[FormatOption]:
    return AUDIO_FORMATS if audio_only else VIDEO_FORMATS


def find_format(value: str, audio_only: bool) -> FormatOption | None:
    return next((f for f in format_options(audio_only) if f.value == value), None)


def codec_options(container: str, audio_only: bool) -> list[str]:
    """Codecs the user may pick for *container* in the given mode."""
    table = AUDIO_CODECS_BY_FORMAT if audio_only else VIDEO_CODECS_BY_FORMAT
    return list(table.get(container, []))


def preset_amount(presets: list[NumericPreset], value: str) -> float | None:
    preset = next((p for p in presets if p.value == value), None)
    return preset.amount if preset else None
