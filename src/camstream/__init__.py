"""Camera-to-HLS stream orchestration service."""
from __future__ import annotations

from .exceptions import StreamEngineError

__version__ = "0.1.0"

__all__ = ["StreamEngineError", "__version__"]
