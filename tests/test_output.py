from __future__ import annotations

from camstream.engine import OutputLayout


def test_paths_and_urls(tmp_path):
    layout = OutputLayout(tmp_path, url_prefix="hls/")

    assert layout.stream_dir("abc") == tmp_path / "abc"
    assert layout.playlist_path("abc") == tmp_path / "abc" / "stream.m3u8"
    assert layout.hls_url("abc") == "/hls/abc/stream.m3u8"


def test_directory_lifecycle(tmp_path):
    layout = OutputLayout(tmp_path / "hls")

    assert layout.session_dirs() == []
    layout.ensure_stream_dir("abc")
    (layout.stream_dir("abc") / "segment_000.ts").write_bytes(b"x" * 10)
    assert layout.session_dirs() == ["abc"]
    assert layout.stream_size("abc") == 10
    assert not layout.playlist_exists("abc")

    assert layout.remove_stream_dir("abc") is True
    assert layout.remove_stream_dir("abc") is False
    assert layout.stream_size("abc") == 0


def test_disk_usage_for_missing_base(tmp_path):
    layout = OutputLayout(tmp_path / "not" / "created")

    space = layout.disk_usage(1)

    assert space.total > 0
    assert space.required == 1
