"""Feedback checks: type-check, tests and lint, each passed / failed / skipped.

A check is skipped when its tool is missing or the project has no
configuration for it; skipped checks do not fail the aggregate.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from gora.models.schemas import FeedbackLoopResults, FeedbackResult
from gora.services.shell import run_command

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 2000
PROBE_TIMEOUT = 30

# Shell messages for a missing binary, trusted only with a not-started exit code
SHELL_MISSING_MARKERS = ("command not found", ": not found")
COMMAND_NOT_FOUND_CODES = (126, 127)
# npx --no-install exits 1 with this when the package is not installed
NPX_MISSING_MARKERS = ("could not determine executable to run",)

# Ordered by priority: the first runner whose probe exits 0 is used
TEST_RUNNER_PROBES = (
    ("npx --no-install vitest --version", "npx vitest run"),
    ("npx --no-install jest --version", "npx jest"),
)
FALLBACK_TEST_COMMAND = "npm test"


@dataclass(frozen=True)
class CheckSpec:
    name: str
    command: str
    timeout: float
    failure_kind: str
    not_configured_markers: tuple[str, ...] = ()


TYPESCRIPT_CHECK = CheckSpec(
    name="typescript",
    command="npx --no-install tsc --noEmit",
    timeout=60,
    failure_kind="type_errors",
    not_configured_markers=("cannot find a tsconfig.json", "this is not the tsc command you are looking for"),
)
LINT_CHECK = CheckSpec(
    name="lint",
    command="npx --no-install eslint . --ext .ts,.tsx,.js,.jsx",
    timeout=60,
    failure_kind="lint_errors",
    not_configured_markers=("no eslint configuration", "eslint couldn't find a configuration file"),
)
TESTS_NOT_CONFIGURED = ("no test specified", "no tests found", "no test files found", "missing script: \"test\"")


def classify(output: str, spec: CheckSpec, returncode: int | None) -> str | None:
    """Return the skip reason for a failed check's output, or None for a real failure."""
    lowered = output.lower()
    if any(marker in lowered for marker in spec.not_configured_markers):
        return "not_configured"
    if any(marker in lowered for marker in NPX_MISSING_MARKERS):
        return "tool_missing"
    not_started = returncode is None or returncode in COMMAND_NOT_FOUND_CODES
    if not_started and any(marker in lowered for marker in SHELL_MISSING_MARKERS):
        return "tool_missing"
    return None


class FeedbackAggregator:
    def __init__(
        self,
        working_dir: Path,
        enabled: dict[str, bool] | None = None,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
    ) -> None:
        self.working_dir = working_dir
        self.enabled = enabled or {}
        self.output_limit = output_limit

    def is_enabled(self, name: str) -> bool:
        return self.enabled.get(name, True)

    async def select_test_command(self) -> str:
        """Probe known test runners in priority order, falling back to npm test."""
        for probe, command in TEST_RUNNER_PROBES:
            result = await run_command(probe, self.working_dir, PROBE_TIMEOUT)
            if result.ok:
                logger.info("Using test runner: %s", command)
                return command
        return FALLBACK_TEST_COMMAND

    async def run_check(self, spec: CheckSpec) -> FeedbackResult:
        if not self.is_enabled(spec.name):
            return FeedbackResult(skipped=True, output="disabled")

        result = await run_command(spec.command, self.working_dir, spec.timeout)
        if result.timed_out:
            logger.warning("%s check timed out after %.0fs", spec.name, spec.timeout)
            return FeedbackResult(
                passed=False, output=f"Timed out after {spec.timeout:.0f}s", error_kind="timeout"
            )
        output = result.combined
        if result.ok:
            return FeedbackResult(passed=True, output=output[: self.output_limit])

        reason = classify(output, spec, result.returncode)
        if reason is not None:
            logger.info("%s check skipped (%s)", spec.name, reason)
            return FeedbackResult(skipped=True, output=output[: self.output_limit], error_kind=reason)
        return FeedbackResult(passed=False, output=output[: self.output_limit], error_kind=spec.failure_kind)

    async def run_tests(self) -> FeedbackResult:
        if not self.is_enabled("tests"):
            return FeedbackResult(skipped=True, output="disabled")
        command = await self.select_test_command()
        spec = CheckSpec(
            name="tests",
            command=command,
            timeout=120,
            failure_kind="test_failures",
            not_configured_markers=TESTS_NOT_CONFIGURED,
        )
        return await self.run_check(spec)

    async def run(self) -> FeedbackLoopResults:
        typescript, tests, lint = await asyncio.gather(
            self.run_check(TYPESCRIPT_CHECK),
            self.run_tests(),
            self.run_check(LINT_CHECK),
        )
        results = FeedbackLoopResults(typescript=typescript, tests=tests, lint=lint)
        logger.info("Feedback loops: all_passed=%s", results.all_passed)
        return results


def to_tool_output(results: FeedbackLoopResults) -> str:
    """Render results as the JSON payload handed back to the model."""

    def entry(r: FeedbackResult) -> dict:
        return {
            "passed": r.passed,
            "skipped": r.skipped,
            "output": None if r.passed else r.output,
        }

    payload = {
        "summary": results.summary,
        "allPassed": results.all_passed,
        "typescript": entry(results.typescript),
        "tests": entry(results.tests),
        "lint": entry(results.lint),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
