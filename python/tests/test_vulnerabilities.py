"""Tests for vulnerability flattening."""

from unittest.mock import Mock

import pytest
from depsight.errors import VulnerabilityCheckError
from depsight.models import PackageDescriptor, Vulnerability, DEVELOPMENT
from depsight.vulnerabilities import VulnerabilityChecker, severity_counts


class TestVulnerabilityChecker:

    def test_flattens_per_package_entries(self):
        client = Mock()
        client.check.return_value = [
            {"package": "lodash", "vulnerabilities": [
                {"severity": "high", "title": "Prototype pollution", "description": "d1",
                 "id": "GHSA-1", "references": ["https://example.com/1"]},
                {"severity": "low", "title": "ReDoS", "description": "d2", "id": "GHSA-2", "references": []},
            ]},
            {"package": "react", "vulnerabilities": []},
            {"package": "minimist", "vulnerabilities": [{"severity": "critical", "title": "Pollution"}]},
        ]
        packages = [
            PackageDescriptor("lodash", "^4.17.20"),
            PackageDescriptor("react", ""),
            PackageDescriptor("minimist", "1.2.0", DEVELOPMENT),
        ]

        vulns = VulnerabilityChecker(client).check(packages)

        client.check.assert_called_once_with([
            {"name": "lodash", "version": "^4.17.20"},
            {"name": "react", "version": "latest"},
            {"name": "minimist", "version": "1.2.0"},
        ])
        assert [(v.package, v.severity, v.title) for v in vulns] == [
            ("lodash", "high", "Prototype pollution"),
            ("lodash", "low", "ReDoS"),
            ("minimist", "critical", "Pollution"),
        ]
        assert vulns[0].id == "GHSA-1"
        assert vulns[0].references == ["https://example.com/1"]
        assert vulns[2].description is None

    def test_client_errors_propagate(self):
        client = Mock()
        client.check.side_effect = VulnerabilityCheckError("down")

        with pytest.raises(VulnerabilityCheckError):
            VulnerabilityChecker(client).check([PackageDescriptor("a", "1.0.0")])

    def test_malformed_entry_raises(self):
        client = Mock()
        client.check.return_value = ["lodash"]

        with pytest.raises(VulnerabilityCheckError, match="Malformed"):
            VulnerabilityChecker(client).check([PackageDescriptor("lodash", "1.0.0")])

    def test_malformed_vulnerability_item_raises(self):
        client = Mock()
        client.check.return_value = [{"package": "lodash", "vulnerabilities": ["oops"]}]

        with pytest.raises(VulnerabilityCheckError, match="Malformed"):
            VulnerabilityChecker(client).check([PackageDescriptor("lodash", "1.0.0")])

    def test_non_list_vulnerabilities_raise(self):
        client = Mock()
        client.check.return_value = [{"package": "lodash", "vulnerabilities": {"severity": "high"}}]

        with pytest.raises(VulnerabilityCheckError):
            VulnerabilityChecker(client).check([PackageDescriptor("lodash", "1.0.0")])

    def test_null_severity_is_unknown(self):
        client = Mock()
        client.check.return_value = [{"package": "lodash", "vulnerabilities": [{"severity": None, "title": "t"}]}]

        vulns = VulnerabilityChecker(client).check([PackageDescriptor("lodash", "1.0.0")])

        assert vulns[0].severity == "unknown"
        assert severity_counts(vulns)["other"] == 1


def test_severity_counts():
    vulns = [
        Vulnerability("a", "HIGH", "t"),
        Vulnerability("b", "high", "t"),
        Vulnerability("c", "critical", "t"),
        Vulnerability("d", "info", "t"),
    ]
    assert severity_counts(vulns) == {"critical": 1, "high": 2, "moderate": 0, "low": 0, "other": 1}


def test_severity_counts_tolerates_missing_severity():
    assert severity_counts([Vulnerability("a", None, "t")])["other"] == 1
