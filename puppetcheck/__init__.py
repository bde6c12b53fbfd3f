"""
PuppetDB Node Check

Monitoring check that asks PuppetDB for the managed nodes and reports, as a
monitoring plugin status, which of them are stale, failed their last run,
sit in an unexpected environment or have no usable run data.

Modules:
    profiles: Query API versions and their endpoints
    queries: Typed query builders
    client: PuppetDB HTTP client
    evaluator: Per-node checks
    status: Severities, findings and aggregation
    engine: One evaluation pass over the fleet
    config: Connection settings and thresholds
    cli: Command line entry point
"""

from .config import CheckConfig, load_check_config
from .engine import PuppetDBNodeCheck
from .status import CheckResult, Finding, Severity, aggregate

__all__ = [
    "CheckConfig",
    "CheckResult",
    "Finding",
    "PuppetDBNodeCheck",
    "Severity",
    "aggregate",
    "load_check_config",
]
