"""FFmpeg encoder process supervision."""
from __future__ import annotations

from .events import EventChannel, EventKind, ProcessEvent, Subscription
from .invocation import build_invocation
from .options import (
    AudioEncodingOptions,
    EncoderProcessOptions,
    HlsMuxingOptions,
    Invocation,
    StreamOptions,
    TranscodeOptions,
    VideoEncodingOptions,
)
from .process import EncoderProcess, ProcessState
from .progress import EncoderProgress, parse_progress
from .stop_strategy import StopResult, StopStrategy
from .supervisor import EncoderSupervisor

__all__ = [
    "AudioEncodingOptions",
    "EncoderProcess",
    "EncoderProcessOptions",
    "EncoderProgress",
    "EncoderSupervisor",
    "EventChannel",
    "EventKind",
    "HlsMuxingOptions",
    "Invocation",
    "ProcessEvent",
    "ProcessState",
    "StopResult",
    "StopStrategy",
    "StreamOptions",
    "Subscription",
    "TranscodeOptions",
    "VideoEncodingOptions",
    "build_invocation",
    "parse_progress",
]
