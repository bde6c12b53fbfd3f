"""
Node Evaluator

Turns one PuppetDB node record into findings. Checks run in a fixed order:

1. Availability: an active node without catalog timestamp or report hash
2. Staleness: minutes since the last catalog against the time thresholds
3. Environment: catalog environment against the allowed list
4. Run failures: failed resources in the latest report
5. Report logs: "err" tagged log entries, when the API has a logs endpoint

Ignored and deactivated nodes produce nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

import pytz

from .client import PuppetDBClient, TransportFailure
from .config import Thresholds
from .profiles import ApiProfile
from .queries import Query, build_event_counts_query, build_logs_path
from .status import Finding, Severity

logger = logging.getLogger(__name__)

ERROR_TAG = "err"


@dataclass(frozen=True)
class NodeRecord:
    """One row of the nodes listing."""

    certname: str
    deactivated: Optional[Any] = None
    catalog_timestamp: Optional[str] = None
    catalog_environment: Optional[str] = None
    latest_report_hash: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NodeRecord":
        # v3 nodes call the certname "name"
        certname = data.get("certname") or data.get("name") or ""
        return cls(
            certname=str(certname),
            deactivated=data.get("deactivated"),
            catalog_timestamp=data.get("catalog_timestamp"),
            catalog_environment=data.get("catalog_environment"),
            latest_report_hash=data.get("latest_report_hash"),
        )

    @property
    def is_deactivated(self) -> bool:
        return bool(self.deactivated)


@dataclass(frozen=True)
class EventCountSummary:
    """Resource event counts of a node's latest report."""

    failures: int = 0

    @classmethod
    def from_api(cls, rows: List[Dict[str, Any]]) -> "EventCountSummary":
        """Read the first row. Raises ValueError if it is not a counts record."""
        if not rows:
            return cls()
        row = rows[0]
        if not isinstance(row, dict):
            raise ValueError(f"expected an event-counts record, got {type(row).__name__}")
        try:
            return cls(failures=int(row.get("failures") or 0))
        except (TypeError, ValueError):
            raise ValueError(f"failures is not a number: {row.get('failures')!r}") from None


@dataclass(frozen=True)
class LogEntry:
    """A single log line of a report."""

    message: str
    tags: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            message=str(data.get("message") or ""),
            tags=frozenset(data.get("tags") or ()),
        )

    @property
    def is_error(self) -> bool:
        return ERROR_TAG in self.tags


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a PuppetDB ISO-8601 timestamp into an aware UTC datetime."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return pytz.UTC.localize(parsed)
    return parsed.astimezone(pytz.UTC)


class NodeEvaluator:
    """
    Evaluates nodes against the configured thresholds.

    Event-count lookups that fail raise TransportFailure to the caller,
    since they mean the query itself is broken. Log lookups that fail
    are skipped.
    """

    def __init__(
        self,
        client: PuppetDBClient,
        profile: ApiProfile,
        thresholds: Thresholds,
        now: Optional[datetime] = None,
    ):
        self.client = client
        self.profile = profile
        self.thresholds = thresholds
        self.now = now or datetime.now(pytz.UTC)
        self._ignored = set(thresholds.ignore)

    def not_found(self, certname: str) -> Finding:
        return Finding(Severity.CRITICAL, f"{certname} not found in puppetdb")

    def evaluate(self, node: NodeRecord) -> List[Finding]:
        """Run every check on one node and return its findings in order."""
        if node.certname in self._ignored:
            logger.debug("Skipping ignored node %s", node.certname)
            return []
        if node.is_deactivated:
            logger.debug("Skipping deactivated node %s", node.certname)
            return []

        if not node.catalog_timestamp or not node.latest_report_hash:
            return [Finding(Severity.CRITICAL, f"{node.certname} last run UNAVAILABLE")]

        findings: List[Finding] = []

        stale = self.check_staleness(node)
        if stale:
            findings.append(stale)

        environment = self.check_environment(node)
        if environment:
            findings.append(environment)

        counts = self.fetch_event_counts(node)
        failed = self.check_failures(node, counts)
        if failed:
            findings.append(failed)

        if counts.failures == 0 and self.profile.supports_logs:
            findings.extend(self.check_logs(node))

        return findings

    def check_staleness(self, node: NodeRecord) -> Optional[Finding]:
        updated_at = parse_timestamp(node.catalog_timestamp)
        if updated_at is None:
            return Finding(
                Severity.CRITICAL,
                f"{node.certname} has unreadable catalog timestamp {node.catalog_timestamp}",
            )

        age_seconds = (self.now - updated_at).total_seconds()
        text = f"{node.certname} did not update since {node.catalog_timestamp}"

        # Strictly greater: a node exactly at the limit is still fresh
        if age_seconds > self.thresholds.critical_minutes * 60:
            return Finding(Severity.CRITICAL, text)
        if age_seconds > self.thresholds.warning_minutes * 60:
            return Finding(Severity.WARNING, text)
        return None

    def check_environment(self, node: NodeRecord) -> Optional[Finding]:
        if node.catalog_environment in self.thresholds.environments:
            return None
        return Finding(
            Severity.WARNING,
            f"{node.certname} is in environment {node.catalog_environment or 'unknown'}",
        )

    def fetch_event_counts(self, node: NodeRecord) -> EventCountSummary:
        query = build_event_counts_query(node.certname, self.profile)
        rows = self.client.query(self.profile.event_counts_path, query)
        try:
            return EventCountSummary.from_api(rows)
        except ValueError as e:
            raise TransportFailure(
                f"{self.client.base_url}{self.profile.event_counts_path}",
                f"unusable event-counts response: {e}",
            ) from e

    def check_failures(self, node: NodeRecord, counts: EventCountSummary) -> Optional[Finding]:
        text = f"{node.certname} had {counts.failures} failures in the last run"
        if counts.failures >= self.thresholds.critical_failures:
            return Finding(Severity.CRITICAL, text)
        if counts.failures >= self.thresholds.warning_failures:
            return Finding(Severity.WARNING, text)
        return None

    def check_logs(self, node: NodeRecord) -> List[Finding]:
        path = build_logs_path(node.latest_report_hash, self.profile)
        try:
            rows = self.client.query(path, Query())
        except TransportFailure as e:
            logger.info("Could not fetch logs for %s, skipping: %s", node.certname, e)
            return []

        entries = [LogEntry.from_api(row) for row in rows if isinstance(row, dict)]
        return [
            Finding(Severity.WARNING, f"{node.certname}: {entry.message}")
            for entry in entries
            if entry.is_error
        ]
