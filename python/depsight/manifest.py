"""Manifest (package.json) loading and analysis."""

import json
import logging
import sys
from typing import List, Dict, Any, Optional
from urllib.parse import urlparse

import requests

from .errors import ParseError, NoDependenciesError
from .models import (
    PackageDescriptor, ManifestAnalysis,
    PRODUCTION, DEVELOPMENT, PEER,
)

logger = logging.getLogger(__name__)

# Manifest key for each category, in the order packages are listed
MANIFEST_SECTIONS = (
    ("dependencies", PRODUCTION),
    ("devDependencies", DEVELOPMENT),
    ("peerDependencies", PEER),
)

# Placeholder heuristic: only this many caret-range packages are reported as outdated
OUTDATED_LIMIT = 3

SAMPLE_MANIFEST = json.dumps(
    {
        "name": "sample-project",
        "version": "1.0.0",
        "dependencies": {
            "react": "^18.2.0",
            "react-dom": "^18.2.0",
            "next": "^13.4.0",
            "lodash": "^4.17.21",
            "@types/node": "^20.0.0",
        },
        "devDependencies": {
            "typescript": "^5.0.0",
            "@types/react": "^18.2.0",
            "eslint": "^8.42.0",
            "prettier": "^2.8.0",
            "@types/node": "^20.0.0",
        },
    },
    indent=2,
)


def _is_url(path: str) -> bool:
    """Check if a path is a URL."""
    return urlparse(path).scheme in ('http', 'https')


class ManifestAnalyzer:
    """Turns manifest text into a ManifestAnalysis."""

    @staticmethod
    def load(source: str, timeout: int = 30) -> str:
        """
        Read manifest text from a file path, an http(s) URL, or '-' for stdin.

        Raises:
            OSError: If the file cannot be read
            requests.RequestException: If the URL fetch fails
        """
        if source == '-':
            logger.info("Reading manifest from stdin")
            return sys.stdin.read()
        if _is_url(source):
            logger.info(f"Fetching manifest from URL: {source}")
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
            return response.text
        logger.info(f"Reading manifest from file: {source}")
        with open(source, 'r', encoding='utf-8') as f:
            return f.read()

    @staticmethod
    def parse(text: str) -> Dict[str, Any]:
        """Decode manifest text into a JSON object."""
        if text is None or not text.strip():
            raise ParseError("Please provide package.json content")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
        if not isinstance(data, dict):
            raise ParseError("package.json must contain a JSON object")
        return data

    @staticmethod
    def extract_packages(data: Dict[str, Any]) -> List[PackageDescriptor]:
        """
        Flatten the dependency maps into descriptors.

        Raises:
            NoDependenciesError: If none of the dependency maps is present
            ParseError: If a dependency map is not a JSON object
        """
        present = [key for key, _ in MANIFEST_SECTIONS if data.get(key) is not None]
        if not present:
            raise NoDependenciesError("No dependencies found in package.json")

        packages = []
        for key, category in MANIFEST_SECTIONS:
            section = data.get(key)
            if section is None:
                continue
            if not isinstance(section, dict):
                raise ParseError(f"'{key}' must be an object mapping names to versions")
            for name, version in section.items():
                version_range = "" if version is None else str(version)
                packages.append(PackageDescriptor(name=name, version_range=version_range, category=category))
        return packages

    @staticmethod
    def find_duplicates(packages: List[PackageDescriptor]) -> List[str]:
        """Every repeat occurrence of a name is reported, so three occurrences give two entries."""
        duplicates = []
        seen = set()
        for pkg in packages:
            if pkg.name in seen:
                duplicates.append(pkg.name)
            else:
                seen.add(pkg.name)
        return duplicates

    @staticmethod
    def find_outdated(packages: List[PackageDescriptor], limit: int = OUTDATED_LIMIT) -> List[str]:
        """
        Flag caret-range packages as outdated, first `limit` in list order.

        This is a placeholder, not a registry lookup or a version comparison.
        """
        candidates = [pkg.name for pkg in packages if '^' in pkg.version_range]
        return candidates[:limit]

    def analyze(self, text: Optional[str]) -> ManifestAnalysis:
        """Analyze manifest text."""
        data = self.parse(text)
        packages = self.extract_packages(data)

        counts = {category: 0 for _, category in MANIFEST_SECTIONS}
        for pkg in packages:
            counts[pkg.category] += 1

        analysis = ManifestAnalysis(
            total_packages=len(packages),
            production_packages=counts[PRODUCTION],
            dev_packages=counts[DEVELOPMENT],
            peer_packages=counts[PEER],
            packages=tuple(packages),
            duplicates=self.find_duplicates(packages),
            outdated=self.find_outdated(packages),
        )

        logger.info(
            f"Analyzed manifest: {analysis.total_packages} packages "
            f"({analysis.production_packages} prod, {analysis.dev_packages} dev, "
            f"{analysis.peer_packages} peer), {len(analysis.duplicates)} duplicates"
        )
        return analysis
