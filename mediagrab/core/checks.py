"""Shared component check utilities.

This module provides async version checks for the external tools the service
depends on: the yt-dlp extractor and the optional JavaScript runtime.
Used by both the startup validator and the health check endpoints.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

from mediagrab.core.process import run_process
from mediagrab.providers.exceptions import AvailabilityError


@dataclass
class CheckResult:
    """Result of a component availability check.

    Attributes:
        name: Component name (e.g., "extractor", "script_runtime")
        available: Whether the component is available and functional
        version: Version string if available
        error: Error message if check failed
        details: Additional details about the check result
    """

    name: str
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


VersionCheck = Callable[[str], Optional[str]]


async def query_version(
    tool_path: str,
    args: Sequence[str],
    timeout: float,
    validate_version: Optional[VersionCheck] = None,
) -> str:
    """Ask an external tool for its version.

    Args:
        tool_path: Executable name or path.
        args: Version arguments (e.g. ["--version"]).
        timeout: Maximum time to wait in seconds.
        validate_version: Optional callback returning an error message
            when the reported version is unacceptable.

    Returns:
        The first line of the tool output.

    Raises:
        AvailabilityError: On spawn failure, timeout, non-zero exit or a
            rejected version.
    """
    try:
        result = await run_process(
            [tool_path, *args], timeout, operation="version_check", capture_lines=20
        )
    except FileNotFoundError:
        raise AvailabilityError(tool_path, "not found")
    except OSError as e:
        raise AvailabilityError(tool_path, f"cannot be started: {e}")

    if result.timed_out:
        raise AvailabilityError(tool_path, "check timed out")
    if result.exit_status != 0:
        raise AvailabilityError(
            tool_path, f"returned non-zero exit code {result.exit_status}"
        )

    version = next((line.strip() for line in result.output if line.strip()), "unknown")
    if validate_version:
        error = validate_version(version)
        if error:
            raise AvailabilityError(tool_path, error)
    return version


async def _check(
    name: str,
    tool_path: str,
    args: Sequence[str],
    timeout: float,
    validate_version: Optional[VersionCheck] = None,
) -> CheckResult:
    try:
        version = await query_version(tool_path, args, timeout, validate_version)
    except AvailabilityError as e:
        return CheckResult(name=name, available=False, error=str(e))
    return CheckResult(name=name, available=True, version=version)


async def check_extractor(tool_path: str = "yt-dlp", timeout: float = 10.0) -> CheckResult:
    """Check yt-dlp availability and version."""
    return await _check("extractor", tool_path, ["--version"], timeout)


def node_version_check(min_version: int) -> VersionCheck:
    """Build a version validator requiring a minimum Node.js major version."""

    def validate(version: str) -> Optional[str]:
        try:
            major_version = int(version.lstrip("v").split(".")[0])
        except (ValueError, IndexError):
            return f"unable to parse version: {version}"
        if major_version < min_version:
            return f">= {min_version} required, found {version}"
        return None

    return validate


async def check_script_runtime(
    executable: str = "node",
    runtime: str = "node",
    min_version: int = 20,
    timeout: float = 10.0,
) -> CheckResult:
    """Check the JavaScript runtime used by yt-dlp.

    The minimum version is only enforced for Node.js; other runtimes
    (deno, bun) just have to answer the version check.

    Args:
        executable: Runtime executable name or path.
        runtime: Runtime name as passed to --js-runtimes.
        min_version: Minimum required Node.js major version.
        timeout: Maximum time to wait for the check in seconds.
    """
    validator = node_version_check(min_version) if runtime == "node" else None
    return await _check("script_runtime", executable, ["--version"], timeout, validator)
