"""
Check Engine

Runs one evaluation pass:
1. Fetch the nodes listing (the whole fleet, or the one requested node)
2. Evaluate each node in the order PuppetDB returned them
3. Fold all findings into one result

A failed nodes or event-counts query ends the pass with UNKNOWN and
discards whatever was collected before it.
"""

import logging
from datetime import datetime
from typing import List, Optional

from .client import PuppetDBClient, TransportFailure
from .config import CheckConfig
from .evaluator import NodeEvaluator, NodeRecord
from .profiles import ApiProfile
from .queries import QueryError, build_nodes_query
from .status import CheckResult, Finding, Severity, aggregate

logger = logging.getLogger(__name__)


class PuppetDBNodeCheck:
    """Single-shot node check against one PuppetDB."""

    def __init__(
        self,
        config: CheckConfig,
        profile: ApiProfile,
        client: Optional[PuppetDBClient] = None,
        now: Optional[datetime] = None,
    ):
        self.config = config
        self.profile = profile
        self.client = client or PuppetDBClient.from_config(config.connection)
        self.evaluator = NodeEvaluator(self.client, profile, config.thresholds, now=now)

    def fetch_nodes(self) -> List[NodeRecord]:
        query = build_nodes_query(self.profile, self.config.node)
        rows = self.client.query(self.profile.nodes_path, query)
        return [NodeRecord.from_api(row) for row in rows if isinstance(row, dict)]

    def evaluate_all(self, nodes: List[NodeRecord]) -> List[Finding]:
        """Evaluate nodes in order. TransportFailure from event counts propagates."""
        if self.config.node and not nodes:
            return [self.evaluator.not_found(self.config.node)]

        findings: List[Finding] = []
        for node in nodes:
            findings.extend(self.evaluator.evaluate(node))
        return findings

    def run(self) -> CheckResult:
        try:
            nodes = self.fetch_nodes()
        except TransportFailure as e:
            return CheckResult(Severity.UNKNOWN, f"PuppetDB nodes query failed: {e.status}")
        except QueryError as e:
            return CheckResult(Severity.UNKNOWN, f"invalid nodes query: {e}")

        logger.info("Evaluating %d node(s) from %s", len(nodes), self.client.base_url)

        try:
            findings = self.evaluate_all(nodes)
        except TransportFailure as e:
            return CheckResult(Severity.UNKNOWN, f"PuppetDB event-counts query failed: {e.detail}")

        severity, message = aggregate(findings)
        if not message:
            message = f"{self.config.node} ok" if self.config.node else "all nodes ok"
        return CheckResult(severity, message, findings)
