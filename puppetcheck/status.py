"""
Check Status

Severity levels, per-node findings and the worst-of aggregation that turns
a pass over the fleet into a single monitoring result.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, List, Tuple

PLUGIN_LABEL = "PUPPETDB_NODES"


class Severity(IntEnum):
    """Monitoring plugin states. The value doubles as the process exit code."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(frozen=True)
class Finding:
    """A single problem found while evaluating a node."""

    severity: Severity
    text: str


@dataclass
class CheckResult:
    """Outcome of one evaluation pass."""

    severity: Severity
    message: str = ""
    findings: List[Finding] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return int(self.severity)

    def render(self, label: str = PLUGIN_LABEL) -> str:
        """Format as a plugin output line: ``LABEL STATUS - message``."""
        line = f"{label} {self.severity.name}"
        if self.message:
            line = f"{line} - {self.message}"
        return line


def aggregate(findings: Iterable[Finding]) -> Tuple[Severity, str]:
    """
    Fold findings into the overall severity and a combined message.

    The severity is the worst one seen (OK when there are none) and the
    message joins every finding's text with newlines, in input order.
    """
    overall = Severity.OK
    texts: List[str] = []
    for finding in findings:
        if finding.severity > overall:
            overall = finding.severity
        texts.append(finding.text)
    return overall, "\n".join(texts)
