"""Startup validation for the application.

This module checks external dependencies and the temp directory once at
startup. Any failure is fatal: the application must not begin accepting
requests without a working extractor (and script runtime, when one is
configured).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import structlog

from mediagrab.core.checks import CheckResult, check_extractor, check_script_runtime
from mediagrab.core.config import Config
from mediagrab.providers.exceptions import AvailabilityError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Immutable facts about the host established at startup.

    Attributes:
        extractor_path: yt-dlp executable
        extractor_version: Version reported by yt-dlp
        script_runtime: Value passed to --js-runtimes, None when disabled
        script_runtime_version: Version reported by the runtime
        temp_dir: Writable directory for request temp files
    """

    extractor_path: str
    extractor_version: str
    script_runtime: Optional[str]
    script_runtime_version: Optional[str]
    temp_dir: str


@dataclass
class StartupResult:
    """Result of full startup validation.

    Attributes:
        success: Whether startup can proceed
        checks: Individual component check results
        errors: Error messages for failed checks
        environment: Established runtime environment when successful
    """

    success: bool
    checks: List[CheckResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    environment: Optional[RuntimeEnvironment] = None

    def raise_for_failure(self) -> RuntimeEnvironment:
        """Return the environment or raise AvailabilityError for the first failure."""
        if self.success and self.environment is not None:
            return self.environment
        failed = next((c for c in self.checks if not c.available), None)
        name = failed.name if failed else "startup"
        raise AvailabilityError(name, "; ".join(self.errors) or "startup validation failed")


class StartupValidator:
    """Validates external tools and storage at startup."""

    def __init__(self, config: Config):
        self.config = config

    async def validate_all(self) -> StartupResult:
        """Run all startup validations.

        Returns:
            StartupResult with overall status and component details.
        """
        logger.info("startup_validation_started")

        checks = [await self.check_extractor()]
        runtime_cfg = self.config.script_runtime
        if runtime_cfg.enabled:
            checks.append(await self.check_script_runtime())
        else:
            logger.info("script_runtime_disabled")
        checks.append(self.check_storage())

        errors = [c.error or f"{c.name} unavailable" for c in checks if not c.available]
        success = not errors

        environment = None
        if success:
            by_name = {c.name: c for c in checks}
            runtime_check = by_name.get("script_runtime")
            environment = RuntimeEnvironment(
                extractor_path=self.config.extractor.path,
                extractor_version=by_name["extractor"].version or "unknown",
                script_runtime=runtime_cfg.flag_value if runtime_cfg.enabled else None,
                script_runtime_version=runtime_check.version if runtime_check else None,
                temp_dir=self.config.storage.temp_dir,
            )

        log_method = logger.info if success else logger.error
        log_method(
            "startup_validation_completed",
            success=success,
            errors=errors,
            components={c.name: c.version or c.available for c in checks},
        )
        return StartupResult(success=success, checks=checks, errors=errors, environment=environment)

    async def check_extractor(self) -> CheckResult:
        """Check yt-dlp. Always required."""
        cfg = self.config.extractor
        result = await check_extractor(cfg.path, timeout=cfg.check_timeout)
        if result.available:
            logger.info("extractor_check_passed", version=result.version)
        else:
            logger.error("extractor_check_failed", error=result.error)
        return result

    async def check_script_runtime(self) -> CheckResult:
        """Check the configured JavaScript runtime."""
        cfg = self.config.script_runtime
        result = await check_script_runtime(
            cfg.executable,
            runtime=cfg.name,
            min_version=cfg.min_version,
            timeout=self.config.extractor.check_timeout,
        )
        if result.available:
            logger.info("script_runtime_check_passed", runtime=cfg.name, version=result.version)
        else:
            logger.error("script_runtime_check_failed", runtime=cfg.name, error=result.error)
        return result

    def check_storage(self) -> CheckResult:
        """Ensure the temp directory exists and is writable."""
        temp_dir = Path(self.config.storage.temp_dir)
        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
            test_file = temp_dir / f".mediagrab_write_test_{os.getpid()}"
            test_file.touch()
            test_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error("storage_check_failed", path=str(temp_dir), error=str(e))
            return CheckResult(
                name="storage",
                available=False,
                error=f"Cannot write to temp directory {temp_dir}: {e}",
            )

        logger.info("storage_check_passed", path=str(temp_dir))
        return CheckResult(name="storage", available=True, details={"temp_dir": str(temp_dir)})
