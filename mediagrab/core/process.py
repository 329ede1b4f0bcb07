"""Subprocess runner for external tools.

Spawns a command with stderr merged into stdout, streams its output
line-by-line while waiting for exit, and enforces a timeout. On timeout or
cancellation the whole process group is killed so helper processes started
by the tool (ffmpeg, the JavaScript runtime) do not outlive the request.
"""

import asyncio
import contextlib
import os
import signal
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Sequence

import structlog

from mediagrab.core.metrics import MetricsCollector

logger = structlog.get_logger(__name__)

LineSink = Callable[[str], None]

# Matches asyncio's StreamReader default; callers raise it for JSON output.
DEFAULT_STREAM_LIMIT = 2**16


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a finished (or killed) subprocess.

    Attributes:
        exit_status: Process return code, None if it never reported one
        output: Captured lines of combined stdout/stderr
        timed_out: Whether the process was killed for exceeding its timeout
        duration: Wall time in seconds
    """

    exit_status: Optional[int]
    output: List[str] = field(default_factory=list)
    timed_out: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_status == 0

    @property
    def text(self) -> str:
        return "\n".join(self.output)

    def tail(self, lines: int) -> List[str]:
        if lines <= 0:
            return []
        return self.output[-lines:]


def _log_line(line: str) -> None:
    logger.debug("process_output", line=line)


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the process group led by proc, falling back to the process itself."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        with contextlib.suppress(ProcessLookupError):
            proc.kill()


async def _pump_output(
    stream: asyncio.StreamReader,
    captured: Deque[str],
    line_sink: LineSink,
) -> None:
    while True:
        try:
            raw = await stream.readline()
        except ValueError:
            # Line exceeded the reader limit; the reader has already discarded it.
            captured.append("[output line truncated]")
            continue
        if not raw:
            break
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        captured.append(line)
        line_sink(line)


async def run_process(
    command: Sequence[str],
    timeout: float,
    *,
    operation: str = "process",
    capture_lines: Optional[int] = None,
    line_sink: Optional[LineSink] = None,
    stream_limit: int = DEFAULT_STREAM_LIMIT,
) -> ProcessResult:
    """Run a command to completion or until it times out.

    Args:
        command: Program and arguments
        timeout: Seconds to wait before killing the process group
        operation: Label used in log events and metrics
        capture_lines: Keep only the last N output lines (None keeps all)
        line_sink: Called with every output line; defaults to a debug log event
        stream_limit: Maximum length in bytes of a single output line

    Returns:
        ProcessResult. A non-zero exit status is reported, not raised.

    Raises:
        OSError: If the process cannot be spawned (e.g. FileNotFoundError)
        asyncio.CancelledError: If the caller is cancelled; the process
            group is killed before this propagates
    """
    sink = line_sink or _log_line
    captured: Deque[str] = deque(maxlen=capture_lines)
    start = time.monotonic()

    proc = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        stdin=asyncio.subprocess.DEVNULL,
        start_new_session=True,
        limit=stream_limit,
    )
    logger.debug("process_started", operation=operation, pid=proc.pid, program=command[0])

    timed_out = False
    cancelled = False
    try:
        if proc.stdout is None:
            raise RuntimeError(f"{command[0]}: stdout pipe was not created")
        try:
            await asyncio.wait_for(
                asyncio.gather(_pump_output(proc.stdout, captured, sink), proc.wait()),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("process_timeout", operation=operation, pid=proc.pid, timeout=timeout)
    except asyncio.CancelledError:
        cancelled = True
        logger.warning("process_cancelled", operation=operation, pid=proc.pid)
        raise
    finally:
        if timed_out or cancelled or proc.returncode is None:
            _kill_group(proc)
            # Shielded so a cancelled caller still reaps the child.
            await asyncio.shield(proc.wait())
        if cancelled:
            outcome = "cancelled"
        elif timed_out:
            outcome = "timeout"
        else:
            outcome = "success" if proc.returncode == 0 else "failed"
        duration = time.monotonic() - start
        MetricsCollector.record_process(operation, outcome, duration)
        logger.info(
            "process_finished",
            operation=operation,
            exit_status=proc.returncode,
            timed_out=timed_out,
            outcome=outcome,
            duration=round(duration, 3),
        )

    return ProcessResult(
        exit_status=proc.returncode,
        output=list(captured),
        timed_out=timed_out,
        duration=duration,
    )
