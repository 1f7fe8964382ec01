"""Run the camstream service with the Flask development server."""
from __future__ import annotations

from .app import create_app
from .app.extensions import install_shutdown_handlers
from .utils.coerce import coerce_int


def main() -> None:
    app = create_app()
    install_shutdown_handlers(app.extensions["stream_coordinator"])
    host = app.config.get("CAMSTREAM_HOST", "0.0.0.0")
    port = coerce_int(app.config.get("PORT"), 3001)
    # Encoders are supervised in-process; the reloader would fork a second supervisor.
    app.run(host=host, port=port, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
