"""Vulnerability annotation for analyzed manifests."""

import logging
from collections import Counter
from typing import Dict, List, Sequence

from .api_client import VulnerabilityClient
from .errors import VulnerabilityCheckError
from .models import PackageDescriptor, Vulnerability

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ("critical", "high", "moderate", "low")


class VulnerabilityChecker:
    """Sends the whole package list in one request and flattens the answer."""

    def __init__(self, client: VulnerabilityClient):
        self.client = client

    def check(self, packages: Sequence[PackageDescriptor]) -> List[Vulnerability]:
        """
        Look up vulnerabilities for every package.

        Raises:
            VulnerabilityCheckError: If the data source fails or its answer is malformed
        """
        request = [{"name": pkg.name, "version": pkg.version_range or "latest"} for pkg in packages]
        entries = self.client.check(request)

        vulnerabilities = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise VulnerabilityCheckError(f"Malformed vulnerability entry: {entry!r}")
            package = entry.get("package", "")
            items = entry.get("vulnerabilities") or []
            if not isinstance(items, list):
                raise VulnerabilityCheckError(f"Malformed vulnerability list for {package}: {items!r}")
            for vuln in items:
                if not isinstance(vuln, dict):
                    raise VulnerabilityCheckError(f"Malformed vulnerability for {package}: {vuln!r}")
                vulnerabilities.append(Vulnerability(
                    package=package,
                    severity=vuln.get("severity") or "unknown",
                    title=vuln.get("title", ""),
                    description=vuln.get("description"),
                    id=vuln.get("id"),
                    references=list(vuln.get("references") or []),
                ))

        logger.info(f"Found {len(vulnerabilities)} vulnerabilities across {len(packages)} packages")
        return vulnerabilities


def severity_counts(vulnerabilities: Sequence[Vulnerability]) -> Dict[str, int]:
    """Count vulnerabilities per severity, most severe first, unknown levels as 'other'."""
    counter = Counter((v.severity or "unknown").lower() for v in vulnerabilities)
    counts = {severity: counter.pop(severity, 0) for severity in SEVERITY_ORDER}
    counts["other"] = sum(counter.values())
    return counts
