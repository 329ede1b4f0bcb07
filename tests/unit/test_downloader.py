"""Tests for download orchestration.

yt-dlp is replaced by small scripts that honour the ``-o`` template, so
these tests exercise real subprocesses and real temp files.
"""

import asyncio
from pathlib import Path
from typing import Callable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from mediagrab.core.process import ProcessResult
from mediagrab.models.video import TempFile
from mediagrab.providers.commands import CommandBuilder
from mediagrab.providers.direct import DirectFetcher
from mediagrab.providers.domains import DomainClassifier
from mediagrab.providers.downloader import DownloadOrchestrator, resolve_output_path
from mediagrab.providers.exceptions import (
    EmptyOrMissingFileError,
    ExtractorNotFoundError,
    MediaFetchError,
    NonZeroExitError,
    OperationTimeoutError,
)

MakeScript = Callable[[str, str], str]

URL = "https://vimeo.com/123456"

# Shared prologue: resolve the output path yt-dlp would use
PROLOGUE = """
import os, sys, time
args = sys.argv[1:]
template = args[args.index("-o") + 1]
ext = args[args.index("--audio-format") + 1] if "--audio-format" in args else "mp4"
path = template.replace("%(ext)s", ext)
"""

SUCCESS = PROLOGUE + """
with open(path + ".part", "wb") as f:
    f.write(b"x" * 4096)
print("[download] 100% of 4.00KiB", flush=True)
os.replace(path + ".part", path)
print(path)
"""

HANG = PROLOGUE + """
with open(path + ".part", "wb") as f:
    f.write(b"partial")
print("[download]  12.5% of 4.00KiB", flush=True)
time.sleep(30)
"""

FAIL = PROLOGUE + """
with open(path + ".part", "wb") as f:
    f.write(b"partial")
print("ERROR: [vimeo] 123456: Video unavailable")
sys.exit(1)
"""

EMPTY = PROLOGUE + """
open(path, "wb").close()
print(path)
"""

NOTHING = PROLOGUE + """
print("[download] nothing to do")
"""


def _orchestrator(
    extractor_path: str,
    temp_dir: Path,
    fetcher: Optional[DirectFetcher] = None,
    timeout: float = 10.0,
) -> DownloadOrchestrator:
    classifier = DomainClassifier(["youtube.com"], [".mp4", ".webm", ".mkv"])
    commands = CommandBuilder(extractor_path, classifier)
    fetcher = fetcher or DirectFetcher(str(temp_dir), "test-agent")
    return DownloadOrchestrator(
        commands, classifier, fetcher, str(temp_dir), timeout=timeout, error_tail_lines=5
    )


def _files(directory: Path) -> List[Path]:
    return sorted(directory.iterdir())


class TestResolveOutputPath:
    """Tests for resolve_output_path."""

    def test_printed_path(self, tmp_path: Path) -> None:
        stem = tmp_path / "video_abc"
        result = ProcessResult(exit_status=0, output=["[download] done", f"{stem}.webm"])
        assert resolve_output_path(stem, result, "mp4") == tmp_path / "video_abc.webm"

    def test_last_printed_path_wins(self, tmp_path: Path) -> None:
        stem = tmp_path / "audio_abc"
        result = ProcessResult(exit_status=0, output=[f"{stem}.webm", f"{stem}.mp3"])
        assert resolve_output_path(stem, result, "mp3") == tmp_path / "audio_abc.mp3"

    def test_part_files_and_foreign_paths_ignored(self, tmp_path: Path) -> None:
        stem = tmp_path / "video_abc"
        result = ProcessResult(
            exit_status=0, output=[f"{stem}.mp4.part", "/etc/passwd", f"{tmp_path}/other.mp4"]
        )
        assert resolve_output_path(stem, result, "mp4") == tmp_path / "video_abc.mp4"


class TestExtractorDownloads:
    """Tests for yt-dlp backed downloads."""

    @pytest.mark.asyncio
    async def test_video_success(self, make_script: MakeScript, temp_dir: Path) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", SUCCESS), temp_dir)

        temp_file = await orchestrator.download_video(URL)

        assert temp_file.ext == "mp4"
        assert temp_file.size == 4096
        assert temp_file.path.parent == temp_dir
        assert temp_file.path.name.startswith("video_")
        assert _files(temp_dir) == [temp_file.path]

        temp_file.discard()
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_audio_success(self, make_script: MakeScript, temp_dir: Path) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", SUCCESS), temp_dir)

        temp_file = await orchestrator.download_audio(URL, "m4a")

        assert temp_file.ext == "m4a"
        assert temp_file.path.name.startswith("audio_")
        assert temp_file.path.suffix == ".m4a"
        assert temp_file.size == 4096

    @pytest.mark.asyncio
    async def test_concurrent_downloads_use_distinct_paths(
        self, make_script: MakeScript, temp_dir: Path
    ) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", SUCCESS), temp_dir)

        files = await asyncio.gather(*(orchestrator.download_video(URL) for _ in range(3)))

        assert len({f.path for f in files}) == 3
        assert len(_files(temp_dir)) == 3

    @pytest.mark.asyncio
    async def test_timeout_removes_partial_file(
        self, make_script: MakeScript, temp_dir: Path
    ) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", HANG), temp_dir, timeout=1.0)

        with pytest.raises(OperationTimeoutError, match="timed out after 1s") as exc_info:
            await orchestrator.download_video(URL)

        assert any("12.5%" in line for line in exc_info.value.output)
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_removes_partial_file(
        self, make_script: MakeScript, temp_dir: Path
    ) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", FAIL), temp_dir)

        with pytest.raises(NonZeroExitError) as exc_info:
            await orchestrator.download_audio(URL, "mp3")

        assert exc_info.value.exit_status == 1
        assert "Video unavailable" in str(exc_info.value)
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, make_script: MakeScript, temp_dir: Path) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", EMPTY), temp_dir)

        with pytest.raises(EmptyOrMissingFileError, match="empty"):
            await orchestrator.download_video(URL)
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, make_script: MakeScript, temp_dir: Path) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", NOTHING), temp_dir)

        with pytest.raises(EmptyOrMissingFileError, match="missing"):
            await orchestrator.download_video(URL)
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_cancellation_removes_partial_file(
        self, make_script: MakeScript, temp_dir: Path
    ) -> None:
        orchestrator = _orchestrator(make_script("yt-dlp", HANG), temp_dir, timeout=30)

        task = asyncio.create_task(orchestrator.download_video(URL))
        for _ in range(100):
            if _files(temp_dir):
                break
            await asyncio.sleep(0.05)
        assert _files(temp_dir), "partial file never appeared"

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert _files(temp_dir) == []

    @pytest.mark.asyncio
    async def test_missing_extractor(self, tmp_path: Path, temp_dir: Path) -> None:
        orchestrator = _orchestrator(str(tmp_path / "no-yt-dlp"), temp_dir)

        with pytest.raises(ExtractorNotFoundError):
            await orchestrator.download_video(URL)
        assert _files(temp_dir) == []


class TestDirectRouting:
    """Tests for routing direct media links around yt-dlp."""

    @pytest.mark.asyncio
    async def test_direct_link_uses_fetcher(self, temp_dir: Path, tmp_path: Path) -> None:
        expected = TempFile(path=temp_dir / "video_x.webm", size=10, ext="webm")
        fetcher = MagicMock(spec=DirectFetcher)
        fetcher.fetch = AsyncMock(return_value=expected)
        orchestrator = _orchestrator(str(tmp_path / "unused"), temp_dir, fetcher=fetcher)

        result = await orchestrator.download_video("https://cdn.example.com/clip.webm")

        assert result is expected
        fetcher.fetch.assert_awaited_once_with("https://cdn.example.com/clip.webm", ".webm")

    @pytest.mark.asyncio
    async def test_page_url_does_not_use_fetcher(
        self, make_script: MakeScript, temp_dir: Path
    ) -> None:
        fetcher = MagicMock(spec=DirectFetcher)
        fetcher.fetch = AsyncMock()
        orchestrator = _orchestrator(make_script("yt-dlp", SUCCESS), temp_dir, fetcher=fetcher)

        await orchestrator.download_video(URL)

        fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audio_never_uses_fetcher(self, make_script: MakeScript, temp_dir: Path) -> None:
        fetcher = MagicMock(spec=DirectFetcher)
        fetcher.fetch = AsyncMock()
        orchestrator = _orchestrator(make_script("yt-dlp", SUCCESS), temp_dir, fetcher=fetcher)

        temp_file = await orchestrator.download_audio("https://cdn.example.com/clip.mp4", "mp3")

        assert temp_file.ext == "mp3"
        fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_timeout(self, temp_dir: Path, tmp_path: Path) -> None:
        async def slow_fetch(url: str, ext: str) -> TempFile:
            await asyncio.sleep(5)
            raise AssertionError("not reached")

        fetcher = MagicMock(spec=DirectFetcher)
        fetcher.fetch = slow_fetch
        orchestrator = _orchestrator(str(tmp_path / "unused"), temp_dir, fetcher=fetcher, timeout=0.2)

        with pytest.raises(OperationTimeoutError, match="Direct download timed out"):
            await orchestrator.download_video("https://cdn.example.com/clip.mp4")

    @pytest.mark.asyncio
    async def test_direct_errors_propagate(self, temp_dir: Path, tmp_path: Path) -> None:
        fetcher = MagicMock(spec=DirectFetcher)
        fetcher.fetch = AsyncMock(side_effect=MediaFetchError("connection reset"))
        orchestrator = _orchestrator(str(tmp_path / "unused"), temp_dir, fetcher=fetcher)

        with pytest.raises(MediaFetchError, match="connection reset"):
            await orchestrator.download_video("https://cdn.example.com/clip.mkv")
