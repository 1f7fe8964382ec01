"""Build the FFmpeg command line that turns a capture device into HLS output."""
from __future__ import annotations

from typing import List, Optional

from ..devices.enumeration import (
    PLATFORM_LINUX,
    PLATFORM_MACOS,
    PLATFORM_WINDOWS,
    current_platform,
    device_input,
    input_format,
)
from .options import Invocation, TranscodeOptions


def build_invocation(
    options: TranscodeOptions,
    *,
    ffmpeg_binary: str = "ffmpeg",
    platform: Optional[str] = None,
) -> Invocation:
    """Return the encoder invocation for ``options``.

    Pure: the same options, binary and platform always yield the same argv.
    """

    target = platform or current_platform()
    args: List[str] = []
    args.extend(_input_args(options, target))
    args.extend(_audio_input_args(options, target))
    args.extend(_video_args(options))
    args.extend(_audio_args(options))
    args.extend(_hls_args(options))
    return Invocation(executable=ffmpeg_binary, args=tuple(args))


def _input_args(options: TranscodeOptions, platform: str) -> List[str]:
    stream = options.stream
    video = options.video
    args: List[str] = ["-f", input_format(platform)]
    if platform == PLATFORM_WINDOWS:
        args.extend(["-framerate", str(stream.framerate), "-video_size", stream.resolution])
    elif platform == PLATFORM_MACOS:
        args.extend(["-framerate", str(stream.framerate), "-pixel_format", video.macos_pixel_format])
    else:
        args.extend(
            [
                "-input_format",
                video.linux_input_format,
                "-framerate",
                str(stream.framerate),
                "-video_size",
                stream.resolution,
            ]
        )
    args.extend(["-i", device_input(platform, options.device_id)])
    return args


def _audio_input_args(options: TranscodeOptions, platform: str) -> List[str]:
    stream = options.stream
    if not stream.include_audio or not stream.audio_device_id:
        return []
    if platform == PLATFORM_WINDOWS:
        return ["-f", "dshow", "-i", f"audio={stream.audio_device_id}"]
    if platform == PLATFORM_MACOS:
        return ["-f", "avfoundation", "-i", f":{stream.audio_device_id}"]
    if platform == PLATFORM_LINUX:
        return ["-f", "alsa", "-i", stream.audio_device_id]
    return []


def _video_args(options: TranscodeOptions) -> List[str]:
    stream = options.stream
    video = options.video
    args: List[str] = ["-c:v", video.codec, "-preset", video.preset]
    if video.tune:
        args.extend(["-tune", video.tune])
    if video.crf is not None:
        args.extend(["-crf", str(video.crf)])
    args.extend(["-vf", f"scale={stream.resolution.replace('x', ':')}"])
    if stream.video_bitrate:
        args.extend(
            [
                "-b:v",
                stream.video_bitrate,
                "-maxrate",
                stream.video_bitrate,
                "-bufsize",
                video.bufsize,
            ]
        )
    # Keyframes on segment boundaries so every segment starts decodable.
    gop = str(stream.framerate * options.hls.segment_duration)
    args.extend(["-g", gop, "-keyint_min", gop])
    return args


def _audio_args(options: TranscodeOptions) -> List[str]:
    stream = options.stream
    audio = options.audio
    if not stream.include_audio:
        return ["-an"]
    return [
        "-c:a",
        audio.codec,
        "-b:a",
        stream.audio_bitrate or audio.bitrate,
        "-ar",
        str(audio.sample_rate),
        "-ac",
        str(audio.channels),
    ]


def _hls_args(options: TranscodeOptions) -> List[str]:
    hls = options.hls
    args: List[str] = [
        "-f",
        "hls",
        "-hls_time",
        str(hls.segment_duration),
        "-hls_list_size",
        str(hls.list_size),
    ]
    if hls.flags:
        args.extend(["-hls_flags", "+".join(hls.flags)])
    args.extend(["-hls_segment_filename", str(options.output_dir / hls.segment_pattern)])
    args.append(str(options.playlist_path))
    return args


__all__ = ["build_invocation"]
