"""Configuration objects for the HLS encoder process."""
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

DEFAULT_RESOLUTION = "1280x720"
DEFAULT_FRAMERATE = 30


@dataclass(slots=True)
class StreamOptions:
    """Quality parameters requested for a session."""

    resolution: str = DEFAULT_RESOLUTION
    framerate: int = DEFAULT_FRAMERATE
    video_bitrate: Optional[str] = None
    audio_bitrate: Optional[str] = None
    include_audio: bool = True
    audio_device_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.resolution = self.resolution or DEFAULT_RESOLUTION
        self.framerate = int(self.framerate or DEFAULT_FRAMERATE)


@dataclass(slots=True)
class HlsMuxingOptions:
    """Settings that control the HLS muxer.

    Defaults favour low latency: 4s segments, a 5 entry sliding playlist and
    deletion of segments that fall out of the window.
    """

    segment_duration: int = 4
    list_size: int = 5
    flags: Sequence[str] = field(default_factory=lambda: ("delete_segments",))
    segment_pattern: str = "segment_%03d.ts"
    playlist_name: str = "stream.m3u8"


@dataclass(slots=True)
class VideoEncodingOptions:
    codec: str = "libx264"
    preset: str = "ultrafast"
    tune: Optional[str] = "zerolatency"
    crf: Optional[int] = 23
    bufsize: str = "2M"
    linux_input_format: str = "mjpeg"
    macos_pixel_format: str = "uyvy422"


@dataclass(slots=True)
class AudioEncodingOptions:
    codec: str = "aac"
    bitrate: str = "128k"
    sample_rate: int = 44100
    channels: int = 2


@dataclass(slots=True)
class TranscodeOptions:
    """Everything needed to render the encoder command line for one session."""

    device_id: str
    output_dir: Path
    stream: StreamOptions = field(default_factory=StreamOptions)
    video: VideoEncodingOptions = field(default_factory=VideoEncodingOptions)
    audio: AudioEncodingOptions = field(default_factory=AudioEncodingOptions)
    hls: HlsMuxingOptions = field(default_factory=HlsMuxingOptions)

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)

    @property
    def playlist_path(self) -> Path:
        return self.output_dir / self.hls.playlist_name


@dataclass(frozen=True)
class Invocation:
    """Executable plus argument vector for the external encoder."""

    executable: str
    args: Tuple[str, ...] = ()

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.args]

    def display(self) -> str:
        return shlex.join(self.command)


@dataclass(slots=True)
class EncoderProcessOptions:
    """Supervision policy for one encoder process.

    ``assume_started_on_timeout`` treats a live process that printed no start
    marker within ``start_grace`` seconds as running; switch it off to fail
    the start instead.
    """

    transcode: TranscodeOptions
    start_grace: float = 10.0
    stop_grace: float = 5.0
    kill_grace: float = 2.0
    assume_started_on_timeout: bool = True
    start_markers: Tuple[str, ...] = ("Opening",)
    diagnostic_lines: int = 200


__all__ = [
    "AudioEncodingOptions",
    "DEFAULT_FRAMERATE",
    "DEFAULT_RESOLUTION",
    "EncoderProcessOptions",
    "HlsMuxingOptions",
    "Invocation",
    "StreamOptions",
    "TranscodeOptions",
    "VideoEncodingOptions",
]
