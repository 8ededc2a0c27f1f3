"""Analysis session: the state behind Analyze, select-a-package and Clear."""

import dataclasses
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Set

from .errors import ParseError, NoDependenciesError, ResolutionError, VulnerabilityCheckError
from .manifest import ManifestAnalyzer, SAMPLE_MANIFEST
from .models import DependencyNode, ManifestAnalysis, Vulnerability, PackageDescriptor
from .tree_resolver import CancellationToken, DependencyTreeResolver, TreeSource
from .vulnerabilities import VulnerabilityChecker

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"

_LOG_LEVELS = {INFO: logging.INFO, SUCCESS: logging.INFO, ERROR: logging.WARNING}

# Oldest notifications are dropped past this many
NOTIFICATION_LIMIT = 50


@dataclass(frozen=True)
class Notification:
    """A transient user-visible message."""

    level: str
    message: str


class AnalysisSession:
    """
    Owns one user's analysis state.

    Errors from each action are caught here and turned into `error` or a
    notification, so a failed action never leaves the session unusable.
    """

    def __init__(self, tree_source: TreeSource,
                 vulnerability_checker: Optional[VulnerabilityChecker] = None,
                 analyzer: Optional[ManifestAnalyzer] = None):
        self.analyzer = analyzer or ManifestAnalyzer()
        self.resolver = DependencyTreeResolver(tree_source)
        self.vulnerability_checker = vulnerability_checker

        self.manifest_text = ""
        self.analysis: Optional[ManifestAnalysis] = None
        self.selected_package = ""
        self.error = ""
        self.notifications: Deque[Notification] = deque(maxlen=NOTIFICATION_LIMIT)

        self._pending: Set[CancellationToken] = set()
        self._lock = threading.Lock()

    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level, message))
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)

    def load_sample(self) -> str:
        self.manifest_text = SAMPLE_MANIFEST
        self.notify(INFO, "Sample package.json loaded")
        return self.manifest_text

    def _invalidate_trees(self) -> None:
        """Cancel in-flight resolutions and start over with an empty cache."""
        with self._lock:
            for token in self._pending:
                token.cancel()
            self._pending.clear()
        self.resolver.reset_cache()

    def analyze(self, text: Optional[str] = None) -> Optional[ManifestAnalysis]:
        """Analyze `text` (or the current manifest text) and check vulnerabilities."""
        if text is not None:
            self.manifest_text = text
        self.error = ""

        try:
            result = self.analyzer.analyze(self.manifest_text)
        except (ParseError, NoDependenciesError) as e:
            self.error = f"Error analyzing dependencies: {e}"
            self.analysis = None
            self.notify(ERROR, "Failed to analyze dependencies")
            return None

        self._invalidate_trees()
        self.selected_package = ""

        self.notify(INFO, "Checking for security vulnerabilities...")
        vulnerabilities = self._check_vulnerabilities(result.packages)
        self.analysis = dataclasses.replace(result, vulnerabilities=vulnerabilities)

        self.notify(
            SUCCESS,
            f"Dependencies analyzed successfully! Found {len(vulnerabilities)} vulnerabilities.",
        )
        return self.analysis

    def _check_vulnerabilities(self, packages: List[PackageDescriptor]) -> List[Vulnerability]:
        if self.vulnerability_checker is None:
            self.notify(ERROR, "Failed to check vulnerabilities")
            logger.info("No vulnerability checker configured; reporting none")
            return []
        try:
            return self.vulnerability_checker.check(packages)
        except VulnerabilityCheckError as e:
            logger.info(f"Vulnerability check failed: {e}")
            self.notify(ERROR, "Failed to check vulnerabilities")
            return []

    def select_package(self, name: str) -> Optional[DependencyNode]:
        """Select a package and resolve its dependency tree (cached per name)."""
        self.selected_package = name
        if not name or self.analysis is None:
            return None

        descriptor = self.analysis.find_package(name)
        if descriptor is None:
            logger.warning(f"Package {name} is not part of the current analysis")
            return None

        analysis = self.analysis
        token = CancellationToken()
        with self._lock:
            self._pending.add(token)

        self.notify(INFO, f"Building dependency tree for {name}...")
        try:
            tree = self.resolver.resolve(
                descriptor.name, descriptor.version_range,
                is_dev=descriptor.is_dev, is_peer=descriptor.is_peer, token=token,
            )
        except ResolutionError as e:
            logger.info(f"Resolution of {name} failed: {e}")
            self.notify(ERROR, "Failed to build dependency tree")
            return None
        finally:
            with self._lock:
                self._pending.discard(token)

        if tree is not None and not token.cancelled:
            analysis.dependency_tree = [tree]
        return tree

    def clear(self) -> None:
        """Discard all analyzer and resolver state."""
        self.manifest_text = ""
        self.analysis = None
        self.selected_package = ""
        self.error = ""
        self._invalidate_trees()
        self.notify(INFO, "Cleared all fields")
