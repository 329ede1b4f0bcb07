"""Tests for metadata extraction."""

import json
from typing import Any, Dict
from unittest.mock import AsyncMock, patch

import pytest

from mediagrab.core.process import ProcessResult
from mediagrab.models.video import Format, VideoInfo
from mediagrab.providers.commands import CommandBuilder
from mediagrab.providers.domains import DomainClassifier
from mediagrab.providers.exceptions import (
    ExtractionError,
    ExtractorNotFoundError,
    MalformedOutputError,
    OperationTimeoutError,
)
from mediagrab.providers.metadata import MetadataExtractor, build_video_info, parse_metadata

URL = "https://vimeo.com/123456"


@pytest.fixture
def extractor() -> MetadataExtractor:
    classifier = DomainClassifier(["youtube.com"], [".mp4"])
    return MetadataExtractor(CommandBuilder("yt-dlp", classifier), timeout=30, max_formats=10)


def returns(result: ProcessResult) -> Any:
    return patch("mediagrab.providers.metadata.run_process", AsyncMock(return_value=result))


class TestParseMetadata:
    """Tests for parse_metadata."""

    def test_object(self) -> None:
        assert parse_metadata('{"title": "x"}') == {"title": "x"}

    def test_leading_whitespace(self) -> None:
        assert parse_metadata('\n  {"title": "x"}\n') == {"title": "x"}

    def test_trailing_diagnostics_ignored(self) -> None:
        output = '{"title": "x"}\nERROR: something unrelated happened later'
        assert parse_metadata(output) == {"title": "x"}

    def test_error_text(self) -> None:
        with pytest.raises(MalformedOutputError) as exc_info:
            parse_metadata("Error: unsupported URL")
        assert "Invalid response from extractor" in str(exc_info.value)
        assert exc_info.value.excerpt == "Error: unsupported URL"

    def test_excerpt_is_bounded(self) -> None:
        with pytest.raises(MalformedOutputError) as exc_info:
            parse_metadata("E" * 1000)
        assert len(exc_info.value.excerpt) == 200

    def test_empty(self) -> None:
        with pytest.raises(MalformedOutputError):
            parse_metadata("")

    def test_truncated_json(self) -> None:
        with pytest.raises(MalformedOutputError, match="Failed to parse extractor output"):
            parse_metadata('{"title": "x", "formats": [')

    def test_is_extraction_error(self) -> None:
        with pytest.raises(ExtractionError):
            parse_metadata("[1, 2]")


class TestBuildVideoInfo:
    """Tests for build_video_info defaults."""

    def test_defaults(self) -> None:
        assert build_video_info({}) == VideoInfo(
            title="Unknown Title", duration=0, thumbnail=None, formats=()
        )

    def test_wrong_types_use_defaults(self) -> None:
        info = build_video_info(
            {"title": 42, "duration": "n/a", "thumbnail": ["x"], "formats": "nope"}
        )
        assert info == VideoInfo()

    def test_blank_title(self) -> None:
        assert build_video_info({"title": "   "}).title == "Unknown Title"

    def test_fractional_duration_truncated(self) -> None:
        assert build_video_info({"duration": 212.9}).duration == 212

    def test_negative_duration(self) -> None:
        assert build_video_info({"duration": -5}).duration == 0

    @pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "NaN", '"1e999"', "1" + "0" * 400])
    def test_non_finite_duration(self, raw: str) -> None:
        data = parse_metadata('{"title": "T", "duration": %s, "formats": []}' % raw)
        assert build_video_info(data) == VideoInfo(title="T", duration=0)

    def test_non_finite_format_numbers(self) -> None:
        data = parse_metadata(
            '{"title": "T", "formats": ['
            '{"format_id": "140", "ext": "m4a", "vcodec": "none", "abr": Infinity,'
            ' "filesize": Infinity}]}'
        )
        assert build_video_info(data).formats == (
            Format("140", "m4a", "audio only", None, True),
        )

    def test_max_formats(self, raw_metadata: Dict[str, Any]) -> None:
        assert len(build_video_info(raw_metadata, max_formats=2).formats) == 2


class TestMetadataExtractor:
    """Tests for MetadataExtractor."""

    @pytest.mark.asyncio
    async def test_extract_info(
        self, extractor: MetadataExtractor, raw_metadata: Dict[str, Any]
    ) -> None:
        result = ProcessResult(exit_status=0, output=[json.dumps(raw_metadata)])
        with returns(result) as mock_run:
            info = await extractor.extract_info(URL)

        assert info.title == "Test Video"
        assert info.duration == 212
        assert info.thumbnail == "https://example.com/thumb.jpg"
        assert [f.format_id for f in info.formats] == ["140", "18", "22", "137"]
        assert info.formats[0] == Format("140", "m4a", "128kbps", 3_400_000, True)

        cmd = mock_run.call_args.args[0]
        assert cmd == ["yt-dlp", "--dump-json", "--no-warnings", "--quiet", "--no-playlist", URL]
        assert mock_run.call_args.args[1] == 30

    @pytest.mark.asyncio
    async def test_unsupported_url(self, extractor: MetadataExtractor) -> None:
        result = ProcessResult(exit_status=1, output=["Error: unsupported URL"])
        with returns(result):
            with pytest.raises(MalformedOutputError, match="unsupported URL"):
                await extractor.extract_info(URL)

    @pytest.mark.asyncio
    async def test_nonzero_exit_with_valid_json(
        self, extractor: MetadataExtractor, raw_metadata: Dict[str, Any]
    ) -> None:
        result = ProcessResult(exit_status=1, output=[json.dumps(raw_metadata)])
        with returns(result):
            info = await extractor.extract_info(URL)
        assert info.title == "Test Video"

    @pytest.mark.asyncio
    async def test_timeout(self, extractor: MetadataExtractor) -> None:
        result = ProcessResult(exit_status=-9, output=["[youtube] abc: Downloading"], timed_out=True)
        with returns(result):
            with pytest.raises(OperationTimeoutError, match="timed out after 30s") as exc_info:
                await extractor.extract_info(URL)
        assert exc_info.value.output == ["[youtube] abc: Downloading"]

    @pytest.mark.asyncio
    async def test_missing_extractor(self, extractor: MetadataExtractor) -> None:
        with patch(
            "mediagrab.providers.metadata.run_process",
            AsyncMock(side_effect=FileNotFoundError(2, "No such file")),
        ):
            with pytest.raises(ExtractorNotFoundError, match="not installed"):
                await extractor.extract_info(URL)

    @pytest.mark.asyncio
    async def test_get_formats_matches_extract_info(
        self, extractor: MetadataExtractor, raw_metadata: Dict[str, Any]
    ) -> None:
        result = ProcessResult(exit_status=0, output=[json.dumps(raw_metadata)])
        with returns(result):
            formats = await extractor.get_formats(URL)
            info = await extractor.extract_info(URL)
            again = await extractor.get_formats(URL)

        assert formats == list(info.formats) == again

    @pytest.mark.asyncio
    async def test_output_is_bounded_and_logged(
        self, extractor: MetadataExtractor, raw_metadata: Dict[str, Any]
    ) -> None:
        result = ProcessResult(exit_status=0, output=[json.dumps(raw_metadata)])
        with returns(result) as mock_run:
            await extractor.extract_info(URL)

        kwargs = mock_run.call_args.kwargs
        assert kwargs["capture_lines"] == 100
        with patch("mediagrab.providers.metadata.logger") as mock_logger:
            kwargs["line_sink"]("x" * 5000)
        mock_logger.debug.assert_called_once_with("extractor_output", line="x" * 200)

    @pytest.mark.asyncio
    async def test_capture_lines_configurable(self) -> None:
        classifier = DomainClassifier(["youtube.com"], [".mp4"])
        extractor = MetadataExtractor(CommandBuilder("yt-dlp", classifier), capture_lines=3)
        with returns(ProcessResult(exit_status=0, output=["{}"])) as mock_run:
            await extractor.extract_info(URL)
        assert mock_run.call_args.kwargs["capture_lines"] == 3

    @pytest.mark.asyncio
    async def test_json_pushed_out_of_capture_window(self, extractor: MetadataExtractor) -> None:
        # Only the tail of a chatty run is kept; the JSON line is gone
        result = ProcessResult(exit_status=1, output=["ERROR: retrying"] * 100)
        with returns(result):
            with pytest.raises(MalformedOutputError, match="Invalid response"):
                await extractor.extract_info(URL)

    @pytest.mark.asyncio
    async def test_default_fields(self, extractor: MetadataExtractor) -> None:
        with returns(ProcessResult(exit_status=0, output=["{}"])):
            info = await extractor.extract_info(URL)
        assert info == VideoInfo()
