"""Clients for the remote dependency-tree and vulnerability endpoints."""

import logging
from typing import Optional, Dict, Any, List

import requests

from .config import Settings
from .errors import DepsightError, ResolutionError, VulnerabilityCheckError
from .ssl_config import create_session

logger = logging.getLogger(__name__)


class _JsonPostClient:
    """Shared plumbing: one session, one endpoint, POST a JSON body, expect JSON back."""

    error_class = DepsightError
    result_key = ""

    def __init__(self, url: Optional[str], settings: Optional[Settings] = None,
                 session: Optional[requests.Session] = None):
        self.settings = settings or Settings()
        self.url = url
        self.session = session or create_session(self.settings.user_agent, self.settings.ca_bundle)

    def _post(self, packages: List[Dict[str, Any]]) -> List[Any]:
        if not self.url:
            raise self.error_class(f"No endpoint configured for {type(self).__name__}")

        logger.debug(f"POST {self.url} with {len(packages)} packages")
        try:
            response = self.session.post(
                self.url,
                json={"packages": packages},
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error contacting {self.url}: {e}")
            raise self.error_class(f"Could not reach {self.url}: {e}") from e

        if response.status_code != 200:
            logger.info(f"Request to {self.url} failed: HTTP {response.status_code}")
            raise self.error_class(f"{self.url} answered HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise self.error_class(f"{self.url} returned a non-JSON body") from e

        result = body.get(self.result_key) if isinstance(body, dict) else None
        if not isinstance(result, list):
            raise self.error_class(f"{self.url} response has no '{self.result_key}' list")
        return result

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class DependencyTreeClient(_JsonPostClient):
    """
    Tree data source backed by a remote endpoint.

    Request:  {"packages": [{"name", "version", "isDev", "isPeer"}, ...]}
    Response: {"dependencyTrees": [<tree>, ...]}, one tree per root, in order.
    """

    error_class = ResolutionError
    result_key = "dependencyTrees"

    def __init__(self, settings: Optional[Settings] = None,
                 session: Optional[requests.Session] = None):
        settings = settings or Settings()
        super().__init__(settings.tree_url, settings, session)

    def fetch_trees(self, packages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Fetch the raw dependency trees for the given root packages."""
        trees = self._post(packages)
        logger.info(f"Received {len(trees)} dependency trees for {len(packages)} packages")
        return trees


class VulnerabilityClient(_JsonPostClient):
    """
    Vulnerability data source.

    Request:  {"packages": [{"name", "version"}, ...]}
    Response: {"vulnerabilities": [{"package", "vulnerabilities": [...]}, ...]}
    """

    error_class = VulnerabilityCheckError
    result_key = "vulnerabilities"

    def __init__(self, settings: Optional[Settings] = None,
                 session: Optional[requests.Session] = None):
        settings = settings or Settings()
        super().__init__(settings.vulnerability_url, settings, session)

    def check(self, packages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Return the raw per-package vulnerability entries."""
        return self._post(packages)
