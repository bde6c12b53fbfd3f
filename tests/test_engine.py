"""
Tests for PuppetDBNodeCheck (one full evaluation pass)
"""

import json
from datetime import datetime
from unittest.mock import MagicMock

import pytz

from puppetcheck.client import TransportFailure
from puppetcheck.config import CheckConfig
from puppetcheck.engine import PuppetDBNodeCheck
from puppetcheck.profiles import resolve_profile
from puppetcheck.status import Severity

NOW = datetime(2026, 1, 14, 12, 0, 0, tzinfo=pytz.UTC)
FRESH = "2026-01-14T11:50:00.000Z"
OLD = "2026-01-12T10:00:00.000Z"  # 3000 minutes before NOW


def _row(certname, timestamp=FRESH, environment="production", **extra):
    row = {
        "certname": certname,
        "deactivated": None,
        "catalog_timestamp": timestamp,
        "catalog_environment": environment,
        "latest_report_hash": f"hash-{certname}",
    }
    row.update(extra)
    return row


def _client(nodes, failures=None, counts_error=None, nodes_error=None):
    """Client answering the nodes listing and per-node event counts."""
    failures = failures or {}
    client = MagicMock()
    client.base_url = "http://pdb:8080/"

    def query(path, query):
        params = query.to_params()
        if path.endswith("nodes"):
            if nodes_error:
                raise nodes_error
            return nodes
        if path.endswith("event-counts"):
            certname = json.loads(params["query"])[1][2]
            if counts_error and certname in counts_error:
                raise counts_error[certname]
            count = failures.get(certname, 0)
            return [{"failures": count}] if count else []
        return []

    client.query.side_effect = query
    return client


def _check(client, version=3, **config_kwargs):
    config = CheckConfig(**config_kwargs)
    return PuppetDBNodeCheck(config, resolve_profile(version), client=client, now=NOW)


class TestFleetPass:
    """Test evaluating the whole fleet."""

    def test_all_ok(self):
        result = _check(_client([_row("a"), _row("b")])).run()

        assert result.severity == Severity.OK
        assert result.message == "all nodes ok"
        assert result.findings == []

    def test_findings_in_node_order(self):
        nodes = [
            _row("a", environment="staging"),
            _row("b", timestamp=OLD),
            _row("c", deactivated="2026-01-01T00:00:00.000Z", catalog_timestamp=None),
            _row("d", latest_report_hash=None),
        ]
        result = _check(_client(nodes, failures={"a": 2})).run()

        assert result.severity == Severity.CRITICAL
        assert result.message.split("\n") == [
            "a is in environment staging",
            "a had 2 failures in the last run",
            f"b did not update since {OLD}",
            "d last run UNAVAILABLE",
        ]

    def test_fetch_all_has_no_filter(self):
        client = _client([])
        _check(client).run()

        path, query = client.query.call_args_list[0][0]
        assert path == "v3/nodes"
        assert query.to_params() == {}

    def test_empty_fleet_is_ok(self):
        assert _check(_client([])).run().severity == Severity.OK


class TestSingleNode:
    """Test single-target mode."""

    def test_not_found(self):
        client = _client([])
        result = _check(client, version=4, node="ghost.example.com").run()

        assert result.severity == Severity.CRITICAL
        assert result.message == "ghost.example.com not found in puppetdb"
        assert client.query.call_count == 1

    def test_filter_sent(self):
        client = _client([_row("web01")])
        result = _check(client, version=4, node="web01").run()

        assert result.severity == Severity.OK
        assert result.message == "web01 ok"
        path, query = client.query.call_args_list[0][0]
        assert path == "pdb/query/v4/nodes"
        assert json.loads(query.to_params()["query"]) == ["=", "certname", "web01"]


class TestFatalFailures:
    """Test that broken queries abort the pass with UNKNOWN."""

    def test_nodes_query_failure(self):
        error = TransportFailure("http://pdb:8080/v3/nodes", "Service Unavailable", 503, "down")
        client = _client([], nodes_error=error)
        result = _check(client).run()

        assert result.severity == Severity.UNKNOWN
        assert result.message == "PuppetDB nodes query failed: 503 Service Unavailable"

    def test_event_counts_failure_discards_partial_results(self):
        error = TransportFailure("http://pdb:8080/v3/event-counts", "Bad Request", 400, "bad query")
        nodes = [_row("a", timestamp=OLD), _row("b"), _row("c", timestamp=OLD)]
        client = _client(nodes, counts_error={"b": error})

        result = _check(client).run()

        assert result.severity == Severity.UNKNOWN
        assert result.message == "PuppetDB event-counts query failed: bad query"
        assert result.findings == []
        queried = [
            json.loads(call[0][1].to_params()["query"])[1][2]
            for call in client.query.call_args_list
            if call[0][0].endswith("event-counts")
        ]
        assert queried == ["a", "b"]


class TestBadInput:
    """Inputs that cannot be queried end the pass with UNKNOWN."""

    def test_empty_target_node_filter(self):
        client = _client([])
        check = _check(client, version=4)
        check.config.node = ""

        result = check.run()

        assert result.severity == Severity.UNKNOWN
        assert result.message.startswith("invalid nodes query:")
        client.query.assert_not_called()

    def test_malformed_event_counts_is_unknown(self):
        client = _client([_row("a")])
        client.query.side_effect = lambda path, query: (
            [_row("a")] if path.endswith("nodes") else [["not", "a", "dict"]]
        )

        result = _check(client).run()

        assert result.severity == Severity.UNKNOWN
        assert "unusable event-counts response" in result.message
