from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class OutputFormat(str, Enum):
    FULL = "full"
    SUMMARY = "summary"
    STRUCTURED = "structured"


class SubagentTask(BaseModel):
    name: str = "subagent"
    task: str
    working_directory: str = "."
    max_output_tokens: int = 2000
    output_format: OutputFormat = OutputFormat.FULL


class ParallelTaskResult(BaseModel):
    name: str
    success: bool
    result: str


class FanoutResult(BaseModel):
    results: list[ParallelTaskResult] = []
    elapsed_seconds: float = 0.0

    def format(self) -> str:
        """Render results as labeled sections in task input order."""
        if not self.results:
            return "No tasks were given."
        sections = "\n\n---\n\n".join(f"## {r.name}\n{r.result}" for r in self.results)
        status = "\n".join(f"{'✓' if r.success else '✗'} {r.name}" for r in self.results)
        return f"{sections}\n\n---\n\n{status}\nCompleted {len(self.results)} tasks in {self.elapsed_seconds:.1f}s"


class FeedbackResult(BaseModel):
    passed: bool = False
    skipped: bool = False
    output: str = ""
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.passed or self.skipped

    @property
    def label(self) -> str:
        if self.skipped:
            return "SKIP"
        return "PASS" if self.passed else "FAIL"


class FeedbackLoopResults(BaseModel):
    typescript: FeedbackResult
    tests: FeedbackResult
    lint: FeedbackResult

    @property
    def all_passed(self) -> bool:
        return self.typescript.ok and self.tests.ok and self.lint.ok

    @property
    def summary(self) -> str:
        lines = ["Feedback Loop Results:"]
        for title, result in (("TypeScript", self.typescript), ("Tests", self.tests), ("Lint", self.lint)):
            mark = "✓" if result.ok else "✗"
            lines.append(f"{mark} {title}: {result.label}")
        lines.append("")
        lines.append("✓ All checks passed!" if self.all_passed else "✗ Some checks failed - fix and retry")
        return "\n".join(lines)
