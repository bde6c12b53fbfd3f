"""
Command line entry point

Parses the plugin options, runs one check pass and exits with the
monitoring plugin status code (0 OK, 1 WARNING, 2 CRITICAL, 3 UNKNOWN).
"""

import argparse
import logging
import sys
from typing import List, Optional

from .client import PuppetDBClient
from .config import CheckConfig, load_check_config, parse_list
from .engine import PuppetDBNodeCheck
from .profiles import UnsupportedApiVersion, resolve_profile
from .status import CheckResult, Severity

logger = logging.getLogger(__name__)

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


class PluginArgumentParser(argparse.ArgumentParser):
    """Usage errors are UNKNOWN to a monitoring system, not CRITICAL."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(int(Severity.UNKNOWN), f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = PluginArgumentParser(
        prog="check_puppetdb_nodes",
        description="Check PuppetDB for stale, failed or misplaced nodes",
    )
    parser.add_argument("--config", help="YAML file with defaults (puppetdb section)")
    parser.add_argument("-H", "--hostname", help="PuppetDB host (default: localhost)")
    parser.add_argument("-p", "--port", type=int, help="PuppetDB port (default: 8080)")
    parser.add_argument("--ssl", action="store_true", default=None, help="Use https")
    parser.add_argument(
        "--insecure",
        action="store_true",
        default=None,
        help="Do not verify the TLS certificate",
    )
    parser.add_argument(
        "-w", "--warning", type=int, help="Minutes since last catalog before WARNING (default: 120)"
    )
    parser.add_argument(
        "-c", "--critical", type=int, help="Minutes since last catalog before CRITICAL (default: 1440)"
    )
    parser.add_argument("--warnfails", type=int, help="Failed resources for WARNING (default: 1)")
    parser.add_argument("--critfails", type=int, help="Failed resources for CRITICAL (default: 1)")
    parser.add_argument("-n", "--node", help="Only check this certname")
    parser.add_argument("--apiversion", help="PuppetDB query API version, 3 or 4 (default: 3)")
    parser.add_argument("-i", "--ignore", help="Comma-separated certnames to skip")
    parser.add_argument(
        "-e", "--environment", help="Comma-separated allowed environments (default: production)"
    )
    parser.add_argument("-t", "--timeout", type=float, help="Seconds per request (default: 10)")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More logging on stderr (repeatable)"
    )
    return parser


def apply_args(config: CheckConfig, args: argparse.Namespace) -> CheckConfig:
    """Overlay explicitly given command line options on the loaded config."""
    conn = config.connection
    if args.hostname is not None:
        conn.hostname = args.hostname
    if args.port is not None:
        conn.port = args.port
    if args.ssl:
        conn.ssl = True
    if args.insecure:
        conn.insecure = True
    if args.timeout is not None:
        conn.timeout = args.timeout

    limits = config.thresholds
    if args.warning is not None:
        limits.warning_minutes = args.warning
    if args.critical is not None:
        limits.critical_minutes = args.critical
    if args.warnfails is not None:
        limits.warning_failures = args.warnfails
    if args.critfails is not None:
        limits.critical_failures = args.critfails
    if args.ignore is not None:
        limits.ignore = parse_list(args.ignore)
    if args.environment is not None:
        limits.environments = parse_list(args.environment)

    if args.apiversion is not None:
        config.api_version = args.apiversion
    if args.node is not None:
        config.node = args.node.strip() or None
    return config


def run(argv: Optional[List[str]] = None) -> CheckResult:
    """Parse options and run the check, returning the result without exiting."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = apply_args(load_check_config(args.config), args)
    except (TypeError, ValueError) as e:
        return CheckResult(Severity.UNKNOWN, f"invalid configuration: {e}")

    try:
        profile = resolve_profile(config.api_version)
    except UnsupportedApiVersion as e:
        logger.error("%s", e)
        return CheckResult(Severity.UNKNOWN, str(e))

    client = PuppetDBClient.from_config(config.connection)
    try:
        return PuppetDBNodeCheck(config, profile, client=client).run()
    except Exception as e:
        logger.exception("Check aborted")
        return CheckResult(Severity.UNKNOWN, f"check aborted: {e}")
    finally:
        client.close()


def main(argv: Optional[List[str]] = None) -> int:
    result = run(argv)
    print(result.render())
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
