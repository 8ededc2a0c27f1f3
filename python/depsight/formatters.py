"""Output formatters for analyses and resolved trees."""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, List
from uuid import uuid4

from cyclonedx.model import ExternalReference, ExternalReferenceType, XsUri
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType, ComponentScope
from cyclonedx.output.json import JsonV1Dot6
from packageurl import PackageURL

from .models import DependencyNode, ManifestAnalysis, build_npm_purl
from .vulnerabilities import severity_counts

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 200


class OutputFormatter:
    """Formatter for various output formats."""

    @staticmethod
    def format_analysis_as_text(analysis: ManifestAnalysis) -> str:
        """Human-readable analysis report."""
        lines = [
            "Dependency Analysis:",
            f"  Total Packages: {analysis.total_packages}",
            f"  Production: {analysis.production_packages}",
            f"  Development: {analysis.dev_packages}",
            f"  Peer: {analysis.peer_packages}",
            f"  Vulnerabilities: {len(analysis.vulnerabilities)}",
            "",
            "Outdated Packages:",
        ]
        if analysis.outdated:
            lines.extend(f"  {name}" for name in analysis.outdated)
        else:
            lines.append("  No outdated packages detected")

        lines.extend(["", "Security Vulnerabilities:"])
        if analysis.vulnerabilities:
            counts = severity_counts(analysis.vulnerabilities)
            lines.append("  " + ", ".join(f"{level}: {n}" for level, n in counts.items() if n))
            for vuln in analysis.vulnerabilities:
                severity = (vuln.severity or "unknown").upper()
                lines.append(f"  [{severity}] {vuln.package}: {vuln.title}")
                if vuln.description:
                    text = vuln.description[:DESCRIPTION_LIMIT]
                    if len(vuln.description) > DESCRIPTION_LIMIT:
                        text += "..."
                    lines.append(f"      {text}")
                if vuln.id:
                    details = f"      {vuln.id}"
                    if vuln.references:
                        details += f" ({vuln.references[0]})"
                    lines.append(details)
        else:
            lines.append("  No vulnerabilities detected")

        if analysis.duplicates:
            lines.extend(["", "Duplicate Dependencies:"])
            lines.extend(f"  {name}" for name in analysis.duplicates)

        lines.extend(["", "All Dependencies:"])
        for pkg in analysis.packages:
            lines.append(f"  {pkg.name} {pkg.version_range} ({pkg.label})")

        return '\n'.join(lines) + '\n'

    @staticmethod
    def format_analysis_as_json(analysis: ManifestAnalysis) -> str:
        return json.dumps(analysis.to_dict(), indent=2) + '\n'

    @staticmethod
    def format_tree(tree: DependencyNode, style: str = "unicode") -> str:
        """Format a resolved tree as a tree visualization plus statistics."""
        lines = [
            "Dependency Tree:",
            "",
            tree.get_tree_representation(style),
            "",
            "Dependency Statistics:",
            f"  Total Nodes: {tree.node_count}",
            f"  Max Depth: {tree.max_depth}",
            f"  Circular References: {tree.circular_count}",
        ]
        return '\n'.join(lines) + '\n'

    @staticmethod
    def format_tree_as_json(tree: DependencyNode) -> str:
        return json.dumps(tree.to_dict(), indent=2) + '\n'

    @staticmethod
    def format_tree_as_sbom(tree: DependencyNode) -> str:
        """Generate a CycloneDX SBOM in JSON format for one resolved tree."""
        from . import __version__

        bom = Bom()
        bom.serial_number = uuid4()
        bom.metadata.timestamp = datetime.now(timezone.utc).replace(microsecond=0)

        tool_component = Component(
            name="depsight",
            version=__version__,
            type=ComponentType.APPLICATION,
            bom_ref=f"depsight@{__version__}",
            external_references=[ExternalReference(
                type=ExternalReferenceType.DISTRIBUTION,
                url=XsUri("https://pypi.org/project/depsight/"),
            )],
        )
        bom.metadata.tools.components.add(tool_component)

        components: Dict[str, Component] = {}
        for node in tree.iter_nodes():
            purl = OutputFormatter._build_purl(node)
            if purl not in components:
                components[purl] = OutputFormatter._node_to_component(node, purl)
        for component in components.values():
            bom.components.add(component)

        sbom = json.loads(JsonV1Dot6(bom).output_as_string())

        dependency_map = OutputFormatter._build_dependency_map(tree)
        sbom['dependencies'] = [
            {"ref": ref, "dependsOn": sorted(dependency_map.get(ref, []))}
            for ref in sorted(components)
        ]

        logger.info(f"Generated SBOM with {len(components)} components")
        return json.dumps(sbom, indent=2) + '\n'

    @staticmethod
    def _build_dependency_map(tree: DependencyNode) -> Dict[str, List[str]]:
        """Map each purl to the purls of its direct children, merged over all paths."""
        dependency_map: Dict[str, List[str]] = {}
        for node in tree.iter_nodes():
            ref = OutputFormatter._build_purl(node)
            children = dependency_map.setdefault(ref, [])
            for child in node.children:
                child_ref = OutputFormatter._build_purl(child)
                if child_ref not in children:
                    children.append(child_ref)
        return dependency_map

    @staticmethod
    def _node_scope(node: DependencyNode) -> ComponentScope:
        """Dev dependencies are excluded at runtime, peers are optional."""
        if node.is_dev:
            return ComponentScope.EXCLUDED
        if node.is_peer:
            return ComponentScope.OPTIONAL
        return ComponentScope.REQUIRED

    @staticmethod
    def _node_to_component(node: DependencyNode, purl: str) -> Component:
        purl_obj = PackageURL.from_string(purl)
        return Component(
            name=purl_obj.name,
            version=node.version or None,
            type=ComponentType.LIBRARY,
            group=purl_obj.namespace,
            purl=purl_obj,
            bom_ref=purl,
            scope=OutputFormatter._node_scope(node),
        )

    @staticmethod
    def _build_purl(node: DependencyNode) -> str:
        return build_npm_purl(node.name, node.version).to_string()
