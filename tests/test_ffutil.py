"""Unit tests for ffutil: probe parsing, progress parsing and command building."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from clipwizard.ffutil import (
    FFmpegNotFoundError,
    ProbeError,
    build_ffmpeg_args,
    check_ffmpeg,
    parse_frame_rate,
    parse_media_info,
    parse_progress_time,
    probe,
)
from clipwizard.models import MediaInfo, TranscodeSpec, TrimRange

PROBE_JSON = {
    "format": {"duration": "120.000000", "bit_rate": "5000000"},
    "streams": [
        {
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
            "avg_frame_rate": "30/1",
            "r_frame_rate": "30/1",
        },
        {
            "codec_type": "audio",
            "codec_name": "aac",
            "sample_rate": "44100",
        },
    ],
}


# ---------------------------------------------------------------------------
# probe (mocked subprocess)
# ---------------------------------------------------------------------------

class TestProbe:
    @patch("clipwizard.ffutil.subprocess.run")
    def test_basic(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=json.dumps(PROBE_JSON), stderr="")
        info = probe(Path("video.mp4"))
        assert info == MediaInfo(
            duration_seconds=120.0,
            width=1920,
            height=1080,
            fps=30.0,
            bitrate_kbps=5000,
            has_video=True,
        )
        cmd = mock_run.call_args[0][0]
        assert "-show_streams" in cmd
        assert cmd[-1] == "video.mp4"

    @patch("clipwizard.ffutil.subprocess.run")
    def test_cannot_start(self, mock_run):
        mock_run.side_effect = FileNotFoundError("ffprobe")
        with pytest.raises(ProbeError, match="Failed to run ffprobe"):
            probe(Path("video.mp4"))

    @patch("clipwizard.ffutil.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="video.mp4: Invalid data found\n")
        with pytest.raises(ProbeError, match="Invalid data found"):
            probe(Path("video.mp4"))

    @patch("clipwizard.ffutil.subprocess.run")
    def test_unparseable_output(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="not json", stderr="")
        with pytest.raises(ProbeError, match="Failed to parse"):
            probe(Path("video.mp4"))

    @patch("clipwizard.ffutil.subprocess.run")
    def test_ffprobe_binary_from_environment(self, mock_run, monkeypatch):
        monkeypatch.setenv("CLIPWIZARD_FFPROBE", "/opt/ffmpeg/bin/ffprobe")
        mock_run.return_value = MagicMock(returncode=0, stdout=json.dumps(PROBE_JSON), stderr="")
        probe(Path("video.mp4"))
        assert mock_run.call_args[0][0][0] == "/opt/ffmpeg/bin/ffprobe"


class TestParseMediaInfo:
    def test_audio_only_file(self):
        data = {
            "format": {"duration": "200.5", "bit_rate": "320000"},
            "streams": [{"codec_type": "audio", "codec_name": "mp3"}],
        }
        info = parse_media_info(data)
        assert info.has_video is False
        assert info.width is None
        assert info.height is None
        assert info.fps is None
        assert info.bitrate_kbps == 320

    def test_fps_falls_back_to_r_frame_rate(self):
        data = {
            "format": {"duration": "10"},
            "streams": [
                {"codec_type": "video", "width": 640, "height": 360,
                 "avg_frame_rate": "0/0", "r_frame_rate": "25/1"},
            ],
        }
        assert parse_media_info(data).fps == 25.0

    def test_bitrate_falls_back_to_video_stream(self):
        data = {
            "format": {"duration": "10"},
            "streams": [{"codec_type": "video", "width": 640, "height": 360, "bit_rate": "4000000"}],
        }
        assert parse_media_info(data).bitrate_kbps == 4000

    def test_unknown_bitrate_is_none_not_zero(self):
        data = {
            "format": {"duration": "10", "bit_rate": "0"},
            "streams": [{"codec_type": "audio"}],
        }
        assert parse_media_info(data).bitrate_kbps is None

    def test_missing_duration(self):
        with pytest.raises(ProbeError, match="Missing duration"):
            parse_media_info({"format": {}, "streams": []})

    def test_unparseable_duration(self):
        with pytest.raises(ProbeError, match="Missing duration"):
            parse_media_info({"format": {"duration": "N/A"}, "streams": []})

    def test_missing_format(self):
        with pytest.raises(ProbeError, match="Missing format"):
            parse_media_info({"streams": []})

    def test_missing_streams(self):
        with pytest.raises(ProbeError, match="Missing streams"):
            parse_media_info({"format": {"duration": "1.0"}})


class TestParseFrameRate:
    def test_fraction(self):
        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, abs=0.01)

    def test_plain_number(self):
        assert parse_frame_rate("25") == 25.0

    def test_zero_denominator(self):
        assert parse_frame_rate("0/0") is None

    def test_garbage(self):
        assert parse_frame_rate("abc") is None
        assert parse_frame_rate("") is None
        assert parse_frame_rate(None) is None


class TestParseProgressTime:
    def test_status_line(self):
        line = "frame=  240 fps= 60 q=28.0 size=    512kB time=00:01:02.50 bitrate= 67.1kbits/s speed=2.0x"
        assert parse_progress_time(line) == pytest.approx(62.5)

    def test_hours(self):
        assert parse_progress_time("size=1kB time=01:00:00.00 bitrate=N/A") == 3600.0

    def test_unavailable(self):
        assert parse_progress_time("size=0kB time=N/A bitrate=N/A") is None

    def test_other_lines(self):
        assert parse_progress_time("Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':") is None


class TestCheckFFmpeg:
    @patch("clipwizard.ffutil.shutil.which", return_value=None)
    def test_missing(self, mock_which):
        with pytest.raises(FFmpegNotFoundError, match="not found on PATH"):
            check_ffmpeg()

    @patch("clipwizard.ffutil.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_present(self, mock_which):
        check_ffmpeg()


# ---------------------------------------------------------------------------
# build_ffmpeg_args
# ---------------------------------------------------------------------------

def _spec(**overrides) -> TranscodeSpec:
    values = dict(
        input_path=Path("in.mp4"),
        output_path=Path("/out/clip.mp4"),
        trim=TrimRange(1500, 61500),
        container="mp4",
        width=960,
        height=540,
        fps=30.0,
        video_bitrate_kbps=4000,
        audio_bitrate_kbps=128,
    )
    values.update(overrides)
    return TranscodeSpec(**values)


class TestBuildFFmpegArgs:
    def test_full_video_spec(self):
        assert build_ffmpeg_args(_spec()) == [
            "-y",
            "-ss", "1.500",
            "-i", "in.mp4",
            "-t", "60.000",
            "-vf", "scale=960:540,fps=30",
            "-c:v", "libx264",
            "-preset", "medium",
            "-b:v", "4000k",
            "-c:a", "aac",
            "-b:a", "128k",
            "-movflags", "+faststart",
            "-pix_fmt", "yuv420p",
            "/out/clip.mp4",
        ]

    def test_start_at_zero_skips_seek(self):
        args = build_ffmpeg_args(_spec(trim=TrimRange(0, 10000)))
        assert "-ss" not in args
        assert args[args.index("-t") + 1] == "10.000"

    def test_absent_values_leave_source_defaults(self):
        args = build_ffmpeg_args(
            _spec(width=None, height=None, fps=None, video_bitrate_kbps=None, audio_bitrate_kbps=None)
        )
        assert "-vf" not in args
        assert "-b:v" not in args
        assert "-b:a" not in args

    def test_audio_only(self):
        spec = TranscodeSpec(
            input_path=Path("in.wav"),
            output_path=Path("out.mp3"),
            trim=TrimRange(0, 10000),
            container="mp3",
            audio_only=True,
            audio_bitrate_kbps=192,
        )
        assert build_ffmpeg_args(spec) == [
            "-y", "-i", "in.wav", "-t", "10.000",
            "-vn", "-c:a", "libmp3lame", "-b:a", "192k",
            "out.mp3",
        ]

    def test_gif(self):
        args = build_ffmpeg_args(_spec(container="gif", output_path=Path("/out/clip.gif")))
        assert args[args.index("-c:v") + 1] == "gif"
        assert "-b:v" not in args
        assert "-c:a" not in args
        assert ["-an", "-loop", "0"] == args[args.index("-an"):args.index("-an") + 3]
        assert args[args.index("-pix_fmt") + 1] == "rgb8"

    def test_prores(self):
        args = build_ffmpeg_args(_spec(container="mov", video_codec="prores_ks"))
        assert args[args.index("-profile:v") + 1] == "3"
        assert args[args.index("-pix_fmt") + 1] == "yuv422p10le"
        assert "-preset" not in args

    def test_webm_defaults(self):
        args = build_ffmpeg_args(_spec(container="webm"))
        assert args[args.index("-c:v") + 1] == "libvpx-vp9"
        assert args[args.index("-c:a") + 1] == "libopus"
        assert "-movflags" not in args

    def test_explicit_codecs(self):
        args = build_ffmpeg_args(_spec(container="mkv", video_codec="libx265", audio_codec="flac"))
        assert args[args.index("-c:v") + 1] == "libx265"
        assert args[args.index("-c:a") + 1] == "flac"

    def test_disallowed_video_codec(self):
        with pytest.raises(ValueError, match="not allowed"):
            build_ffmpeg_args(_spec(video_codec="prores_ks"))

    def test_disallowed_audio_only_codec(self):
        spec = _spec(container="wav", audio_only=True, audio_codec="aac")
        with pytest.raises(ValueError, match="not allowed"):
            build_ffmpeg_args(spec)

    def test_unsupported_container(self):
        with pytest.raises(ValueError, match="Unsupported format"):
            build_ffmpeg_args(_spec(container="xyz"))

    def test_empty_trim_window(self):
        with pytest.raises(ValueError, match="End time must be greater"):
            build_ffmpeg_args(_spec(trim=TrimRange(5000, 5000)))
