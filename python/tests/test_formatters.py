"""Tests for output formatters."""

import json

from depsight.formatters import OutputFormatter
from depsight.manifest import ManifestAnalyzer, SAMPLE_MANIFEST
from depsight.models import DependencyNode, Vulnerability


def sample_tree():
    root = DependencyNode("app", "1.0.0")
    lib = DependencyNode("lib", "2.0.0", depth=1)
    lib.add_child(DependencyNode("app", "1.0.0", is_circular=True, depth=2))
    root.add_child(lib)
    root.add_child(DependencyNode("jest", "29.0.0", is_dev=True, depth=1))
    root.add_child(DependencyNode("react", "18.2.0", is_peer=True, depth=1))
    return root


class TestTreeFormatting:

    def test_unicode_tree(self):
        output = OutputFormatter.format_tree(sample_tree())

        assert "app@1.0.0\n├── lib@2.0.0\n│   └── app@1.0.0 (circular)" in output
        assert "├── jest@29.0.0 [dev]" in output
        assert "└── react@18.2.0 [peer]" in output
        assert "Total Nodes: 5" in output
        assert "Max Depth: 2" in output
        assert "Circular References: 1" in output

    def test_ascii_tree(self):
        output = OutputFormatter.format_tree(sample_tree(), style="ascii")

        assert "+-- lib@2.0.0" in output
        assert "|   \\-- app@1.0.0 (circular)" in output
        assert "\\-- react@18.2.0 [peer]" in output

    def test_json_tree_uses_wire_format(self):
        data = json.loads(OutputFormatter.format_tree_as_json(sample_tree()))

        assert data["name"] == "app"
        assert data["dependencies"][0]["dependencies"][0]["isCircular"] is True
        assert data["dependencies"][1]["isDev"] is True
        assert data["dependencies"][2]["depth"] == 1

    def test_sbom(self):
        sbom = json.loads(OutputFormatter.format_tree_as_sbom(sample_tree()))

        assert sbom["bomFormat"] == "CycloneDX"
        assert sbom["specVersion"] == "1.6"
        purls = sorted(c["purl"] for c in sbom["components"])
        assert purls == [
            "pkg:npm/app@1.0.0",
            "pkg:npm/jest@29.0.0",
            "pkg:npm/lib@2.0.0",
            "pkg:npm/react@18.2.0",
        ]
        scopes = {c["name"]: c.get("scope") for c in sbom["components"]}
        assert scopes["jest"] == "excluded"
        assert scopes["react"] == "optional"
        assert scopes["lib"] == "required"

        deps = {d["ref"]: d["dependsOn"] for d in sbom["dependencies"]}
        assert deps["pkg:npm/app@1.0.0"] == [
            "pkg:npm/jest@29.0.0",
            "pkg:npm/lib@2.0.0",
            "pkg:npm/react@18.2.0",
        ]
        assert deps["pkg:npm/lib@2.0.0"] == ["pkg:npm/app@1.0.0"]
        assert deps["pkg:npm/jest@29.0.0"] == []


class TestAnalysisFormatting:

    def test_text_report(self):
        analysis = ManifestAnalyzer().analyze(SAMPLE_MANIFEST)
        output = OutputFormatter.format_analysis_as_text(analysis)

        assert "Total Packages: 10" in output
        assert "No vulnerabilities detected" in output
        assert "Duplicate Dependencies:\n  @types/node" in output
        assert "typescript ^5.0.0 (dev)" in output
        assert "react ^18.2.0 (prod)" in output

    def test_long_descriptions_are_cut(self):
        analysis = ManifestAnalyzer().analyze(SAMPLE_MANIFEST)
        analysis.vulnerabilities = [Vulnerability(
            "lodash", "high", "Prototype pollution", description="x" * 250,
            id="GHSA-1", references=["https://example.com/advisory"],
        )]
        output = OutputFormatter.format_analysis_as_text(analysis)

        assert "x" * 200 + "..." in output
        assert "x" * 201 not in output
        assert "[HIGH] lodash: Prototype pollution" in output
        assert "GHSA-1 (https://example.com/advisory)" in output
        assert "high: 1" in output

    def test_missing_severity_is_reported_as_unknown(self):
        analysis = ManifestAnalyzer().analyze(SAMPLE_MANIFEST)
        analysis.vulnerabilities = [Vulnerability("lodash", None, "Prototype pollution")]
        output = OutputFormatter.format_analysis_as_text(analysis)

        assert "[UNKNOWN] lodash: Prototype pollution" in output
        assert "other: 1" in output

    def test_json_report(self):
        analysis = ManifestAnalyzer().analyze(SAMPLE_MANIFEST)
        data = json.loads(OutputFormatter.format_analysis_as_json(analysis))

        assert data["totalPackages"] == 10
        assert data["outdated"] == ["react", "react-dom", "next"]
        assert data["packages"][5]["category"] == "development"
