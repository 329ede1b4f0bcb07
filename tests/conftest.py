"""Pytest configuration and shared fixtures"""

import os
import stat
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict

import pytest


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset environment variables before each test"""
    # Clear any APP_ prefixed environment variables
    for key in list(os.environ.keys()):
        if key.startswith("APP_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Directory used for request temp files."""
    path = tmp_path / "media"
    path.mkdir()
    return path


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[[str, str], str]:
    """Write an executable Python script and return its path.

    Used to stand in for yt-dlp or node in tests that spawn real processes.
    """

    def _make(name: str, body: str) -> str:
        script = tmp_path / name
        script.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def raw_metadata() -> Dict[str, Any]:
    """A trimmed ``yt-dlp --dump-json`` document."""
    return {
        "id": "abc123",
        "title": "Test Video",
        "duration": 212,
        "thumbnail": "https://example.com/thumb.jpg",
        "formats": [
            {"format_id": "sb0", "ext": "mhtml", "vcodec": "none", "acodec": "none"},
            {
                "format_id": "140",
                "ext": "m4a",
                "vcodec": "none",
                "acodec": "mp4a.40.2",
                "abr": 128.0,
                "filesize": 3_400_000,
            },
            {
                "format_id": "137",
                "ext": "mp4",
                "vcodec": "avc1.640028",
                "acodec": "none",
                "resolution": "1920x1080",
                "filesize_approx": 80_000_000,
            },
            {
                "format_id": "18",
                "ext": "mp4",
                "vcodec": "avc1.42001E",
                "acodec": "mp4a.40.2",
                "resolution": "640x360",
                "filesize": 10_000_000,
            },
            {
                "format_id": "22",
                "ext": "mp4",
                "vcodec": "avc1.64001F",
                "acodec": "mp4a.40.2",
                "resolution": "1280x720",
            },
        ],
    }
