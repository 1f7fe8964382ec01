"""Flask blueprints exposing the stream coordinator over HTTP."""
from __future__ import annotations

from .api import api_bp
from .media import media_bp

__all__ = ["api_bp", "media_bp"]
