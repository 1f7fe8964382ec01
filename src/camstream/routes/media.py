"""Serve HLS playlists and segments written by the encoders."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, abort, current_app, jsonify, send_from_directory

from ..engine import StreamCoordinator

media_bp = Blueprint("camstream_media", __name__, url_prefix="/hls")

PLAYLIST_MIMETYPE = "application/vnd.apple.mpegurl"
SEGMENT_MIMETYPE = "video/mp2t"
SEGMENT_MAX_AGE = 31536000


def _coordinator() -> StreamCoordinator:
    return current_app.extensions["stream_coordinator"]


@media_bp.route("/<string:stream_id>/<string:filename>", methods=["GET", "HEAD"])
def serve_media(stream_id: str, filename: str):
    coordinator = _coordinator()
    layout = coordinator.layout
    if coordinator.store.get(stream_id) is None:
        return jsonify({"error": "Stream not found"}), HTTPStatus.NOT_FOUND

    stream_dir = layout.stream_dir(stream_id).resolve()
    if filename == layout.playlist_name:
        if not (stream_dir / filename).is_file():
            return jsonify({"error": "Playlist not available"}), HTTPStatus.NOT_FOUND
        response = send_from_directory(
            str(stream_dir),
            filename,
            mimetype=PLAYLIST_MIMETYPE,
            conditional=False,
        )
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response

    if not filename.endswith(".ts"):
        abort(HTTPStatus.BAD_REQUEST, description="Invalid segment file")
    if not (stream_dir / filename).is_file():
        return jsonify({"error": "Segment not found"}), HTTPStatus.NOT_FOUND
    response = send_from_directory(
        str(stream_dir),
        filename,
        mimetype=SEGMENT_MIMETYPE,
        conditional=True,
        max_age=SEGMENT_MAX_AGE,
    )
    response.headers["Cache-Control"] = f"public, max-age={SEGMENT_MAX_AGE}"
    return response


__all__ = ["media_bp"]
