"""Diagnostic accumulators carried alongside the data path."""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailureRecord:
    """A non-fatal problem with one input row."""

    source: str
    reason: str
    raw: Any = None
    line: int | None = None

    def __str__(self) -> str:
        where = f"{self.source}:{self.line}" if self.line is not None else self.source
        return f"{where}: {self.reason} ({self.raw!r})"


@dataclass
class ParserContext:
    """
    Failures reported by a single handler invocation.

    A fresh context is handed to every parser call and merged into the
    FlowContext afterwards.
    """

    handler: str = ""
    failures: list[FailureRecord] = field(default_factory=list)

    def note_failure(self, record: FailureRecord) -> None:
        self.failures.append(record)
        logger.warning("Skipped row %s", record)

    def note(
        self, source: str, reason: str, raw: Any = None, line: int | None = None
    ) -> None:
        """Shorthand for ``note_failure(FailureRecord(...))``."""
        self.note_failure(FailureRecord(source, reason, raw, line))

    def __len__(self) -> int:
        return len(self.failures)


@dataclass
class FlowContext:
    """Aggregated diagnostics for one flow run; the only context a caller sees."""

    failures: list[FailureRecord] = field(default_factory=list)
    handlers: list[str] = field(default_factory=list)

    def merge(self, sub_context: ParserContext) -> None:
        self.failures.extend(sub_context.failures)
        self.handlers.append(sub_context.handler)

    @property
    def failure_count(self) -> int:
        return len(self.failures)
