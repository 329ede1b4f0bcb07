"""yt-dlp command construction.

Commands are plain argument lists built deterministically from the URL,
its domain classification and the operation kind.
"""

from enum import Enum
from typing import List, Optional

from mediagrab.providers.domains import DomainClassifier

# Output template placeholder resolved by yt-dlp to the final extension
EXT_PLACEHOLDER = "%(ext)s"


class Operation(str, Enum):
    """Kinds of extractor invocations."""

    METADATA = "metadata"
    VIDEO = "video"
    AUDIO = "audio"


class CommandBuilder:
    """Builds yt-dlp argument lists."""

    def __init__(
        self,
        extractor_path: str,
        classifier: DomainClassifier,
        script_runtime: Optional[str] = None,
        video_format: str = "best[ext=mp4]/best",
    ):
        """
        Args:
            extractor_path: yt-dlp executable
            classifier: Domain classifier deciding on --js-runtimes
            script_runtime: Value for --js-runtimes ("node" or "node:/path")
            video_format: Format expression used for script-runtime sites
        """
        self.extractor_path = extractor_path
        self.classifier = classifier
        self.script_runtime = script_runtime
        self.video_format = video_format

    def _runtime_args(self, url: str) -> List[str]:
        if self.script_runtime and self.classifier.needs_script_runtime(url):
            return ["--js-runtimes", self.script_runtime]
        return []

    def metadata(self, url: str) -> List[str]:
        """Command dumping the video metadata as one JSON object."""
        cmd = [
            self.extractor_path,
            "--dump-json",
            "--no-warnings",
            "--quiet",
            "--no-playlist",
        ]
        cmd.extend(self._runtime_args(url))
        cmd.append(url)
        return cmd

    def _fetch_base(self, output_stem: str) -> List[str]:
        return [
            self.extractor_path,
            "--no-check-certificates",
            "--no-warnings",
            "--no-playlist",
            "--force-overwrites",
            "--newline",
            "-o",
            f"{output_stem}.{EXT_PLACEHOLDER}",
            "--print",
            "after_move:filepath",
        ]

    def video(self, url: str, output_stem: str) -> List[str]:
        """Command downloading the video to ``<output_stem>.<ext>``."""
        cmd = self._fetch_base(output_stem)
        runtime_args = self._runtime_args(url)
        if runtime_args:
            cmd.extend(runtime_args)
            cmd.extend(["-f", self.video_format])
        cmd.append(url)
        return cmd

    def audio(self, url: str, output_stem: str, audio_format: str) -> List[str]:
        """Command extracting audio at best quality to ``<output_stem>.<audio_format>``."""
        cmd = self._fetch_base(output_stem)
        cmd.extend(["-x", "--audio-format", audio_format, "--audio-quality", "0"])
        cmd.extend(self._runtime_args(url))
        cmd.append(url)
        return cmd
