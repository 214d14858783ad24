"""Thin CLI entry point: probes a file, resolves options and runs a conversion."""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from clipwizard import settings as prefs
from clipwizard.engine import ConversionSession
from clipwizard.ffutil import FFmpegNotFoundError, ProbeError, check_ffmpeg
from clipwizard.logging_setup import setup_logging
from clipwizard.manifest import load_manifest
from clipwizard.presets import CUSTOM, find_format
from clipwizard.resolver import default_selections, switch_audio_only
from clipwizard.supervisor import ConversionBusyError, ConversionState, Progress
from clipwizard.trim import TrimEditor, format_hms


def _numeric_choice(value: str | None) -> tuple[str | None, str]:
    """Map a CLI value to (preset, custom text): "source", a preset value, or any number."""
    if value is None:
        return None, ""
    if value in ("source", "custom"):
        return value, ""
    return CUSTOM, value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipwizard",
        description="ClipWizard: trim, resize and transcode media files with ffmpeg.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument("--settings", type=Path, help="Preferences file (default: ~/.config/clipwizard/settings.json)")
    sub = parser.add_subparsers(dest="command")

    probe = sub.add_parser("probe", help="Show media information for a file")
    probe.add_argument("media", type=Path, help="Input media file")

    conv = sub.add_parser("convert", help="Convert a media file")
    conv.add_argument("media", nargs="?", type=Path, help="Input media file")
    conv.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    conv.add_argument("--output-dir", "-o", type=str, help="Output folder")
    conv.add_argument("--name", type=str, help="Output file name (extension is replaced)")
    conv.add_argument("--format", "-f", dest="container", type=str, help="Container, e.g. mp4, mkv, mp3")
    conv.add_argument("--start", type=float, help="Trim start in seconds")
    conv.add_argument("--end", type=float, help="Trim end in seconds")
    conv.add_argument(
        "--resolution",
        type=str,
        help="source, scale_125, scale_75, scale_50 or WIDTHxHEIGHT",
    )
    conv.add_argument("--fps", type=str, help="source, 60, 30, 24 or any number")
    conv.add_argument("--video-bitrate", type=str, help="source or kbps")
    conv.add_argument("--audio-bitrate", type=str, help="source or kbps")
    conv.add_argument("--video-codec", type=str, help="Explicit video codec")
    conv.add_argument("--audio-codec", type=str, help="Explicit audio codec")
    conv.add_argument("--audio-only", action="store_true", help="Drop the video stream")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    return parser


def _apply_args(selections, args, info):
    if args.audio_only or find_format(args.container or "", audio_only=True):
        selections = switch_audio_only(selections, info, True)
    if args.container:
        selections = replace(selections, container=args.container)
    if args.name:
        selections = replace(selections, output_filename=args.name)
    if args.output_dir:
        selections = replace(selections, output_dir=args.output_dir)

    if args.resolution:
        if "x" in args.resolution:
            w, _, h = args.resolution.partition("x")
            selections = replace(selections, resolution_preset=CUSTOM, custom_width=w, custom_height=h)
        else:
            selections = replace(selections, resolution_preset=args.resolution)

    preset, text = _numeric_choice(args.fps)
    if preset:
        selections = replace(selections, fps_preset=preset, custom_fps=text)
    preset, text = _numeric_choice(args.video_bitrate)
    if preset:
        selections = replace(selections, video_bitrate_preset=preset, custom_video_bitrate=text)
    preset, text = _numeric_choice(args.audio_bitrate)
    if preset:
        selections = replace(selections, audio_bitrate_preset=preset, custom_audio_bitrate=text)

    if args.video_codec or args.audio_codec:
        selections = replace(
            selections,
            codec_selection_enabled=True,
            video_codec=args.video_codec,
            audio_codec=args.audio_codec,
        )

    if args.start is not None or args.end is not None:
        editor = TrimEditor(info.duration_ms)
        if args.end is not None:
            editor.set_end(round(args.end * 1000))
        if args.start is not None:
            editor.set_start(round(args.start * 1000))
        selections = replace(selections, trim=editor.range)
    return selections


def _convert(args, store: prefs.PreferenceStore) -> int:
    if args.manifest:
        manifest = load_manifest(args.manifest)
        media = manifest.input
    elif args.media:
        manifest = None
        media = args.media
    else:
        print("Error: provide either a MEDIA argument or --manifest.", file=sys.stderr)
        return 1

    session = ConversionSession()
    try:
        return _run_conversion(session, media, manifest, args, store)
    finally:
        session.close()


def _run_conversion(session: ConversionSession, media: Path, manifest, args, store: prefs.PreferenceStore) -> int:
    try:
        info = session.probe(media)
    except ProbeError as e:
        print(f"Failed to analyze file: {e}", file=sys.stderr)
        return 1

    selections = default_selections(media, info, output_dir=store.get(prefs.LAST_OUTPUT_DIR, ""))
    if manifest is not None:
        selections = manifest.to_selections(selections)
    selections = _apply_args(selections, args, info)

    spec = session.resolve(selections)
    print(f"Output: {spec.output_path}")
    print(f"  Clip: {format_hms(spec.trim.start_ms)} - {format_hms(spec.trim.end_ms)}")
    print(f"  Estimated size: {session.estimate_size(spec)}")

    def on_progress(progress: Progress) -> None:
        if progress.fraction is not None:
            print(f"\r  [{progress.fraction:4.0%}] {format_hms(progress.time_seconds * 1000)}", end="", flush=True)

    try:
        handle = session.start_conversion(spec, on_progress=on_progress)
    except (ValueError, ConversionBusyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        result = handle.result()
    except KeyboardInterrupt:
        session.cancel(handle)
        result = handle.result()
    print()

    if result.state is ConversionState.SUCCEEDED:
        store.set(prefs.LAST_OUTPUT_DIR, str(spec.output_path.parent))
        store.save()
        print(f"Done! Output: {result.output_path}")
        return 0
    if result.state is ConversionState.CANCELLED:
        print("Conversion cancelled.")
        return 1
    print(f"Conversion failed: {result.error}", file=sys.stderr)
    if result.diagnostic:
        print(result.diagnostic, file=sys.stderr)
    return 1


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    setup_logging(verbose=args.verbose, log_file=args.log_file)
    store = prefs.PreferenceStore(args.settings)

    try:
        check_ffmpeg()
    except FFmpegNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        from clipwizard.web import create_app
        app = create_app(settings=store)
        print(f"ClipWizard web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    if args.command == "probe":
        session = ConversionSession()
        try:
            info = session.probe(args.media)
        except ProbeError as e:
            print(f"Failed to analyze file: {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            session.close()
        print(f"Duration: {format_hms(info.duration_seconds * 1000)} ({info.duration_seconds:.2f}s)")
        if info.has_video:
            print(f"  Video: {info.width}x{info.height} @ {info.fps or 0:.2f} fps")
        else:
            print("  Audio only")
        if info.bitrate_kbps:
            print(f"  Bitrate: {info.bitrate_kbps} kbps")
        return

    sys.exit(_convert(args, store))


if __name__ == "__main__":
    main()
