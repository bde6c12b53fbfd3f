"""
Check Configuration

Connection settings and thresholds for the PuppetDB node check.
Defaults can be overridden from a YAML file and then from the command line.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


def parse_list(value: Any) -> List[str]:
    """Accept a comma-separated string or a list; drop empty items."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value if v is not None]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item.strip()]


@dataclass
class ConnectionConfig:
    """Where PuppetDB lives and how to talk to it."""

    hostname: str = "localhost"
    port: int = 8080
    ssl: bool = False
    insecure: bool = False  # Skip TLS certificate verification
    timeout: float = 10.0  # Seconds per request

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.hostname}:{self.port}/"


@dataclass
class Thresholds:
    """Limits that turn node data into warnings and criticals."""

    warning_minutes: int = 120
    critical_minutes: int = 1440
    warning_failures: int = 1
    critical_failures: int = 1
    ignore: List[str] = field(default_factory=list)
    environments: List[str] = field(default_factory=lambda: ["production"])


@dataclass
class CheckConfig:
    """Main check configuration."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    thresholds: Thresholds = field(default_factory=Thresholds)
    api_version: str = "3"
    node: Optional[str] = None  # Only check this certname


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _get(data: Dict[str, Any], key: str, default: Any) -> Any:
    """Like dict.get, but a key left empty in YAML (null) also gets the default."""
    value = data.get(key)
    return default if value is None else value


def load_check_config(config_path: Optional[str] = None) -> CheckConfig:
    """
    Load check configuration from a YAML file.

    Reads the ``puppetdb`` section. Falls back to defaults if the file or
    the section is missing or cannot be parsed.
    """
    if not config_path:
        return CheckConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found at %s, using defaults", config_path)
        return CheckConfig()
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load config: %s", e)
        return CheckConfig()

    check_data = _section(data, "puppetdb") if isinstance(data, dict) else {}
    if not check_data:
        logger.info("No puppetdb section in config, using defaults")
        return CheckConfig()

    conn_data = _section(check_data, "connection")
    connection = ConnectionConfig(
        hostname=str(_get(conn_data, "hostname", ConnectionConfig.hostname)),
        port=int(_get(conn_data, "port", ConnectionConfig.port)),
        ssl=bool(_get(conn_data, "ssl", ConnectionConfig.ssl)),
        insecure=bool(_get(conn_data, "insecure", ConnectionConfig.insecure)),
        timeout=float(_get(conn_data, "timeout", ConnectionConfig.timeout)),
    )

    limits = _section(check_data, "thresholds")
    thresholds = Thresholds(
        warning_minutes=int(_get(limits, "warning", Thresholds.warning_minutes)),
        critical_minutes=int(_get(limits, "critical", Thresholds.critical_minutes)),
        warning_failures=int(_get(limits, "warnfails", Thresholds.warning_failures)),
        critical_failures=int(_get(limits, "critfails", Thresholds.critical_failures)),
        ignore=parse_list(limits.get("ignore")),
    )
    if limits.get("environments") is not None:
        thresholds.environments = parse_list(limits.get("environments"))

    node = check_data.get("node")
    return CheckConfig(
        connection=connection,
        thresholds=thresholds,
        api_version=str(_get(check_data, "api_version", "3")),
        node=str(node) if node else None,
    )
