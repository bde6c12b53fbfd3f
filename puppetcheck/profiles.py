"""
API Version Registry

Each supported PuppetDB query API version is described once by an
ApiProfile. Everything that differs between versions (endpoint paths,
parameter key spelling, the node name field, the logs endpoint) is read
from the profile instead of branching on the version number.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class UnsupportedApiVersion(ValueError):
    """Requested API version is not one this check knows how to query."""

    def __init__(self, version):
        self.version = version
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_VERSIONS))
        super().__init__(f"unsupported api version {version!r} (supported: {supported})")


@dataclass(frozen=True)
class ApiProfile:
    """Endpoints and naming conventions of one query API version."""

    version: int
    nodes_path: str
    event_counts_path: str
    key_separator: str  # "-" for v3, "_" for v4
    certname_field: str
    logs_path: Optional[str] = None  # template containing "{hash}"

    @property
    def supports_logs(self) -> bool:
        return self.logs_path is not None

    def key(self, *words: str) -> str:
        """Spell a multi-word parameter or field name in this version's style."""
        return self.key_separator.join(words)

    @property
    def latest_report_field(self) -> str:
        return self.key("latest", "report?")


SUPPORTED_VERSIONS: Dict[int, ApiProfile] = {
    3: ApiProfile(
        version=3,
        nodes_path="v3/nodes",
        event_counts_path="v3/event-counts",
        key_separator="-",
        certname_field="name",
    ),
    4: ApiProfile(
        version=4,
        nodes_path="pdb/query/v4/nodes",
        event_counts_path="pdb/query/v4/event-counts",
        key_separator="_",
        certname_field="certname",
        logs_path="pdb/query/v4/reports/{hash}/logs",
    ),
}


def resolve_profile(version: Union[int, str]) -> ApiProfile:
    """
    Look up the profile for a requested API version.

    Accepts the version as given on the command line ("3", " 4 ", 4).
    Raises UnsupportedApiVersion for anything else.
    """
    try:
        number = int(str(version).strip())
    except ValueError:
        raise UnsupportedApiVersion(version) from None

    profile = SUPPORTED_VERSIONS.get(number)
    if profile is None:
        raise UnsupportedApiVersion(version)

    logger.debug("Using PuppetDB query API v%d", profile.version)
    return profile
