"""HTTP routes that drive the stream coordinator."""
from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Mapping, Optional

from flask import Blueprint, current_app, jsonify, request

from ..encoder.options import DEFAULT_FRAMERATE, DEFAULT_RESOLUTION, StreamOptions
from ..engine import SessionStatus, StreamCoordinator
from ..exceptions import InsufficientStorageError, StreamEngineError
from ..utils.coerce import to_optional_int, to_optional_str
from ..utils.formatting import is_valid_bitrate, parse_resolution

api_bp = Blueprint("camstream_api", __name__, url_prefix="/api")

MIN_BITRATE_KBPS = 500
MAX_BITRATE_KBPS = 8000
MIN_FRAME_RATE = 1
MAX_FRAME_RATE = 60


class BadRequest(ValueError):
    """Raised for malformed request payloads."""


def _coordinator() -> StreamCoordinator:
    return current_app.extensions["stream_coordinator"]


def _field(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return None


def _parse_stream_request(payload: Mapping[str, Any]) -> tuple[str, StreamOptions]:
    camera_id = to_optional_str(_field(payload, "camera_id", "cameraId"))
    if not camera_id:
        raise BadRequest("Missing required field: camera_id")

    bitrate_raw = _field(payload, "bitrate")
    video_bitrate: Optional[str] = None
    if bitrate_raw is not None:
        bitrate = to_optional_int(bitrate_raw)
        if bitrate is None or not MIN_BITRATE_KBPS <= bitrate <= MAX_BITRATE_KBPS:
            raise BadRequest(
                f"Bitrate must be between {MIN_BITRATE_KBPS} and {MAX_BITRATE_KBPS} kbps"
            )
        video_bitrate = f"{bitrate}k"

    frame_rate_raw = _field(payload, "frame_rate", "frameRate")
    frame_rate: Optional[int] = None
    if frame_rate_raw is not None:
        frame_rate = to_optional_int(frame_rate_raw)
        if frame_rate is None or not MIN_FRAME_RATE <= frame_rate <= MAX_FRAME_RATE:
            raise BadRequest(
                f"Frame rate must be between {MIN_FRAME_RATE} and {MAX_FRAME_RATE} fps"
            )

    resolution = to_optional_str(_field(payload, "resolution"))
    if resolution is not None and parse_resolution(resolution) is None:
        raise BadRequest("Resolution must be in format WIDTHxHEIGHT (e.g., 1280x720)")

    audio_bitrate = to_optional_str(_field(payload, "audio_bitrate", "audioBitrate"))
    if audio_bitrate is not None and not is_valid_bitrate(audio_bitrate):
        raise BadRequest("Audio bitrate must look like 128k")

    options = StreamOptions(
        resolution=resolution or DEFAULT_RESOLUTION,
        framerate=frame_rate or DEFAULT_FRAMERATE,
        video_bitrate=video_bitrate,
        audio_bitrate=audio_bitrate,
    )
    return camera_id, options


@api_bp.errorhandler(BadRequest)
def handle_bad_request(exc: BadRequest):
    return jsonify({"error": "Invalid request", "message": str(exc)}), HTTPStatus.BAD_REQUEST


@api_bp.errorhandler(StreamEngineError)
def handle_engine_error(exc: StreamEngineError):
    payload: dict[str, Any] = {"error": exc.error_label, "message": str(exc)}
    if isinstance(exc, InsufficientStorageError):
        payload["available"] = exc.available
        payload["required"] = exc.required
    status = exc.status_code
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        current_app.logger.error("Request failed: %s", exc)
    else:
        current_app.logger.info("Request rejected (%s): %s", status.value, exc)
    return jsonify(payload), status


@api_bp.route("/health", methods=["GET"])
def health_endpoint():
    coordinator = _coordinator()
    payload = {
        "status": "ok",
        "service": "camstream",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_streams": coordinator.active_count(),
    }
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/cameras", methods=["GET"])
def list_cameras_endpoint():
    devices = _coordinator().refresh_devices()
    return jsonify({"cameras": [device.to_dict() for device in devices]}), HTTPStatus.OK


@api_bp.route("/cameras/<path:camera_id>", methods=["GET"])
def get_camera_endpoint(camera_id: str):
    device = _coordinator().get_device(camera_id)
    return jsonify({"camera": device.to_dict()}), HTTPStatus.OK


@api_bp.route("/streams", methods=["POST"])
def start_stream_endpoint():
    payload = request.get_json(silent=True)
    if not isinstance(payload, Mapping):
        raise BadRequest("Request body must be a JSON object")
    camera_id, options = _parse_stream_request(payload)
    session = _coordinator().start(camera_id, options)
    return jsonify({"stream": session.to_dict()}), HTTPStatus.CREATED


@api_bp.route("/streams", methods=["GET"])
def list_streams_endpoint():
    status = to_optional_str(request.args.get("status"))
    if status is not None and status != "active":
        try:
            status = SessionStatus(status).value
        except ValueError:
            raise BadRequest(f"Unknown stream status: {status}") from None
    sessions = _coordinator().list_sessions(status)
    return jsonify({"streams": [session.to_dict() for session in sessions]}), HTTPStatus.OK


@api_bp.route("/streams/<string:stream_id>", methods=["GET"])
def get_stream_endpoint(stream_id: str):
    return jsonify({"stream": _coordinator().describe(stream_id)}), HTTPStatus.OK


@api_bp.route("/streams/<string:stream_id>", methods=["DELETE"])
def stop_stream_endpoint(stream_id: str):
    session = _coordinator().stop(stream_id)
    payload = {
        "success": True,
        "message": "Stream stopped successfully",
        "stream": session.to_dict(),
    }
    return jsonify(payload), HTTPStatus.OK


__all__ = ["api_bp"]
