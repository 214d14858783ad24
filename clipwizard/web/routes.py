"""Web API routes for ClipWizard."""

import json
import logging
import queue
from dataclasses import asdict, fields, replace
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request

from clipwizard import presets
from clipwizard import settings as prefs
from clipwizard.engine import ConversionSession, NoMediaError
from clipwizard.ffutil import ProbeError
from clipwizard.models import TranscodeSpec, TrimRange
from clipwizard.resolver import (
    Selections,
    build_resolution_options,
    default_selections,
    fps_options,
    is_audio_only,
    video_bitrate_options,
)
from clipwizard.supervisor import ConversionBusyError, ConversionHandle, Progress
from clipwizard.trim import clamp_trim

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

_SELECTION_FIELDS = {f.name for f in fields(Selections)}

# Free-text inputs; JSON clients may send them as numbers.
_TEXT_FIELDS = {
    "resolution_preset",
    "custom_width",
    "custom_height",
    "fps_preset",
    "custom_fps",
    "video_bitrate_preset",
    "custom_video_bitrate",
    "audio_bitrate_preset",
    "custom_audio_bitrate",
}


def _session() -> ConversionSession:
    return current_app.config["SESSION"]


def _store() -> prefs.PreferenceStore:
    return current_app.config["SETTINGS"]


def _spec_json(spec: TranscodeSpec) -> dict:
    data = asdict(spec)
    data["input_path"] = str(spec.input_path)
    data["output_path"] = str(spec.output_path)
    return data


def _selections_json(selections: Selections) -> dict:
    data = asdict(selections)
    data["input_path"] = str(selections.input_path)
    return data


def _selections_from_json(data: dict, session: ConversionSession) -> Selections:
    unknown = set(data) - _SELECTION_FIELDS
    if unknown:
        raise ValueError(f"Unknown selection fields: {', '.join(sorted(unknown))}")
    if session.media_info is None or session.input_path is None:
        raise NoMediaError("No media file has been probed yet")

    defaults = default_selections(session.input_path, session.media_info, _store().get(prefs.LAST_OUTPUT_DIR, ""))
    values = dict(data)
    values.pop("input_path", None)
    for name in _TEXT_FIELDS & set(values):
        if values[name] is not None and not isinstance(values[name], str):
            values[name] = str(values[name])
    if "trim" in values and values["trim"] is not None:
        t = values["trim"]
        trim = TrimRange(int(t["start_ms"]), int(t["end_ms"]))
        values["trim"] = clamp_trim(trim, session.media_info.duration_ms)
    if "codec_selection_enabled" not in values:
        values["codec_selection_enabled"] = bool(_store().get(prefs.ENABLE_CODEC_SELECTION, False))
    return replace(defaults, **values)


def _result_json(handle: ConversionHandle) -> dict:
    resp: dict = {"state": handle.state.value}
    if handle.progress is not None:
        resp["progress"] = {
            "time_seconds": handle.progress.time_seconds,
            "fraction": handle.progress.fraction,
        }
    if handle.done():
        result = handle.result()
        resp["output_path"] = str(result.output_path) if result.output_path else None
        if result.error is not None:
            resp["error"] = str(result.error)
            resp["diagnostic"] = result.diagnostic
    return resp


@bp.route("/api/probe", methods=["POST"])
def probe():
    data = request.get_json(silent=True) or {}
    path = data.get("path")
    if not path:
        return jsonify({"error": "No path provided"}), 400

    session = _session()
    try:
        info = session.probe(path)
    except ProbeError as e:
        logger.warning(f"Probe failed for {path}: {e}")
        return jsonify({"error": f"Failed to analyze file: {e}"}), 422

    defaults = default_selections(Path(path), info, _store().get(prefs.LAST_OUTPUT_DIR, ""))
    resolution = []
    if info.has_video and info.width and info.height:
        resolution = [asdict(o) for o in build_resolution_options(info.width, info.height)]

    return jsonify({
        "media_info": asdict(info),
        "defaults": _selections_json(defaults),
        "resolution_options": resolution,
        "fps_options": [asdict(p) for p in fps_options(info.fps)],
        "video_bitrate_options": [asdict(p) for p in video_bitrate_options(info.bitrate_kbps)],
        "audio_bitrate_options": [asdict(p) for p in presets.AUDIO_BITRATE_PRESETS],
        "format_options": [asdict(f) for f in presets.format_options(not info.has_video)],
    })


@bp.route("/api/resolve", methods=["POST"])
def resolve():
    session = _session()
    try:
        selections = _selections_from_json(request.get_json(silent=True) or {}, session)
        spec = session.resolve(selections)
    except NoMediaError as e:
        return jsonify({"error": str(e)}), 409
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Rejected selections: {e!r}")
        return jsonify({"error": f"Invalid selections: {e}"}), 400

    audio_only = is_audio_only(selections, session.media_info)
    return jsonify({
        "spec": _spec_json(spec),
        "estimated_size": session.estimate_size(spec),
        "format_options": [asdict(f) for f in presets.format_options(audio_only)],
        "codec_options": presets.codec_options(spec.container, audio_only),
    })


@bp.route("/api/convert", methods=["POST"])
def convert():
    session = _session()
    try:
        selections = _selections_from_json(request.get_json(silent=True) or {}, session)
        spec = session.resolve(selections)
    except NoMediaError as e:
        return jsonify({"error": str(e)}), 409
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Rejected selections: {e!r}")
        return jsonify({"error": f"Invalid selections: {e}"}), 400

    progress_queue: queue.Queue = queue.Queue()

    def on_progress(progress: Progress) -> None:
        if progress.time_seconds is not None:
            progress_queue.put({"time_seconds": progress.time_seconds, "fraction": progress.fraction})

    try:
        handle = session.start_conversion(spec, on_progress=on_progress)
    except ConversionBusyError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    current_app.config["PROGRESS_QUEUE"] = progress_queue
    handle.add_done_callback(lambda result: progress_queue.put(None))  # sentinel

    store = _store()
    store.set(prefs.LAST_OUTPUT_DIR, str(spec.output_path.parent))
    store.save()

    return jsonify({"status": "started", "spec": _spec_json(spec)})


@bp.route("/api/conversion/progress")
def progress_stream():
    session = _session()
    handle = session.active
    q = current_app.config.get("PROGRESS_QUEUE")
    if handle is None or q is None:
        return jsonify({"error": "No conversion in progress"}), 409
    timeout = current_app.config["PROGRESS_TIMEOUT"]

    def generate():
        while True:
            try:
                msg = q.get(timeout=timeout)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                yield f"data: {json.dumps(_result_json(handle))}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/conversion/cancel", methods=["POST"])
def cancel():
    if not _session().cancel():
        return jsonify({"error": "No conversion in progress"}), 409
    return jsonify({"status": "cancelling"})


@bp.route("/api/conversion/status")
def status():
    handle = _session().active
    if handle is None:
        return jsonify({"state": "idle"})
    return jsonify(_result_json(handle))


@bp.route("/api/conversion/reset", methods=["POST"])
def reset():
    session = _session()
    if session.supervisor.busy():
        return jsonify({"error": "Conversion still running"}), 409
    session.reset()
    current_app.config.pop("PROGRESS_QUEUE", None)
    return jsonify({"state": "idle"})


@bp.route("/api/settings", methods=["GET", "POST"])
def settings():
    store = _store()
    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        allowed = {prefs.LAST_OUTPUT_DIR, prefs.ADVANCED_MODE, prefs.AUTO_REVEAL_AND_EXIT, prefs.ENABLE_CODEC_SELECTION}
        unknown = set(data) - allowed
        if unknown:
            return jsonify({"error": f"Unknown settings: {', '.join(sorted(unknown))}"}), 400
        for key, value in data.items():
            store.set(key, value)
        store.save()
    return jsonify(store.as_dict())
