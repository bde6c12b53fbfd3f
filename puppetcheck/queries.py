"""
Query Builder

Builds the PuppetDB query parameters for the nodes listing, the
latest-report event counts and the report logs lookup. Filters are built
from small typed expressions and validated on construction, so a malformed
query fails here instead of at the server.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .profiles import ApiProfile


class QueryError(ValueError):
    """A query expression was built with invalid arguments."""


class UnsupportedOperation(Exception):
    """The active API profile has no endpoint for the requested lookup."""


@dataclass(frozen=True)
class Equals:
    """``["=", field, value]``"""

    field: str
    value: Any

    def __post_init__(self):
        if not isinstance(self.field, str) or not self.field:
            raise QueryError(f"equality filter needs a field name, got {self.field!r}")
        if isinstance(self.value, str) and not self.value:
            raise QueryError(f"equality filter on {self.field} needs a value")

    def to_ast(self) -> list:
        return ["=", self.field, self.value]


@dataclass(frozen=True)
class And:
    """``["and", clause, ...]``"""

    clauses: Tuple["Expression", ...]

    def __post_init__(self):
        if not self.clauses:
            raise QueryError("and filter needs at least one clause")

    def to_ast(self) -> list:
        return ["and"] + [clause.to_ast() for clause in self.clauses]


Expression = Union[Equals, And]


@dataclass(frozen=True)
class Query:
    """A filter plus extra request parameters for one GET call."""

    filter: Optional[Expression] = None
    options: Tuple[Tuple[str, str], ...] = ()

    def to_params(self) -> Dict[str, str]:
        """Render as the ``params`` mapping passed to requests."""
        params: Dict[str, str] = {}
        if self.filter is not None:
            params["query"] = json.dumps(self.filter.to_ast())
        params.update(self.options)
        return params


def build_nodes_query(profile: ApiProfile, target_node: Optional[str] = None) -> Query:
    """
    Query for the nodes listing.

    Without a target node there is no filter and the whole fleet is fetched.
    """
    if target_node is None:
        return Query()
    return Query(filter=Equals(profile.certname_field, target_node))


def build_event_counts_query(certname: str, profile: ApiProfile) -> Query:
    """
    Query for the resource event counts of a node's latest report.

    v3 spells the keys with hyphens (``summarize-by``, ``latest-report?``),
    v4 with underscores. PuppetDB rejects the other spelling.
    """
    return Query(
        filter=And(
            (
                Equals("certname", certname),
                Equals(profile.latest_report_field, True),
            )
        ),
        options=(
            (profile.key("summarize", "by"), "certname"),
            (profile.key("count", "by"), "resource"),
        ),
    )


def build_logs_path(report_hash: str, profile: ApiProfile) -> str:
    """Path of the logs of one report. Check ``profile.supports_logs`` first."""
    if not profile.supports_logs:
        raise UnsupportedOperation(f"query API v{profile.version} has no report logs endpoint")
    if not report_hash:
        raise QueryError("report hash is required for a logs lookup")
    return profile.logs_path.format(hash=report_hash)
