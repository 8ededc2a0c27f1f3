"""Local tree data source that walks the npm registry."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Set
from urllib.parse import quote

import requests

from .config import Settings
from .errors import ResolutionError
from .ssl_config import create_session

logger = logging.getLogger(__name__)

_RANGE_PREFIX = re.compile(r'[\^~]')


def clean_version(version_range: str) -> str:
    """Strip caret and tilde so a range can be used as a registry version."""
    return _RANGE_PREFIX.sub('', version_range)


@dataclass
class PackageMetadata:
    """The parts of a registry document the tree builder needs."""

    name: str
    version: str
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_registry(cls, data: Dict[str, Any]) -> 'PackageMetadata':
        return cls(
            name=data.get("name", ""),
            version=str(data.get("version", "")),
            dependencies=_dependency_map(data, "dependencies"),
            dev_dependencies=_dependency_map(data, "devDependencies"),
            peer_dependencies=_dependency_map(data, "peerDependencies"),
        )


def _dependency_map(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key)
    if not isinstance(value, dict):
        if value is not None:
            logger.warning(f"Ignoring malformed {key} in registry document for {data.get('name')}")
        return {}
    return value


class NpmRegistryClient:
    """Fetches package version documents from an npm registry."""

    def __init__(self, settings: Optional[Settings] = None,
                 session: Optional[requests.Session] = None):
        self.settings = settings or Settings()
        self.base_url = self.settings.registry_url.rstrip('/')
        self.session = session or create_session(self.settings.user_agent, self.settings.ca_bundle)
        self._metadata_cache: Dict[str, PackageMetadata] = {}

    def _get(self, name: str, version: str) -> Optional[Dict[str, Any]]:
        # Scoped names keep the leading @ but encode the slash
        url = f"{self.base_url}/{quote(name, safe='@')}/{quote(version, safe='')}"
        logger.debug(f"GET {url}")
        response = self.session.get(url, timeout=self.settings.request_timeout)
        if response.status_code == 200:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"Registry document for {name}@{version} is not an object")
            return data
        logger.info(f"Registry lookup {name}@{version} failed: HTTP {response.status_code}")
        return None

    def get_package_metadata(self, name: str, version: str) -> Optional[PackageMetadata]:
        """
        Get metadata for name@version, falling back to the latest release.

        Returns:
            PackageMetadata, or None if neither lookup succeeds

        Raises:
            requests.RequestException: On transport failures
        """
        cache_key = f"{name}@{version}"
        if cache_key in self._metadata_cache:
            return self._metadata_cache[cache_key]

        data = self._get(name, version)
        if data is None and version != "latest":
            data = self._get(name, "latest")
        if data is None:
            return None

        metadata = PackageMetadata.from_registry(data)
        self._metadata_cache[cache_key] = metadata
        return metadata

    def close(self):
        self.session.close()


class RegistryTreeSource:
    """
    Builds dependency trees directly from registry metadata.

    Production dependencies are followed at every level. Dev and peer
    dependencies are only followed for the root. Anything deeper than
    `max_depth` is dropped, and a name@version already on the current path
    becomes a circular leaf. A registry failure on a root raises
    ResolutionError; on a descendant it only drops that branch.
    """

    def __init__(self, client: Optional[NpmRegistryClient] = None, max_depth: int = 3):
        self.client = client or NpmRegistryClient()
        self.max_depth = max_depth

    def fetch_trees(self, packages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        trees = []
        for pkg in packages:
            tree = self._build_tree(
                pkg["name"], pkg.get("version") or "latest", 0, set(),
                bool(pkg.get("isDev", False)), bool(pkg.get("isPeer", False)),
            )
            if tree:
                trees.append(tree)
        logger.info(f"Built {len(trees)} dependency trees from the registry")
        return trees

    def _build_tree(self, name: str, version: str, depth: int, visited: Set[str],
                    is_dev: bool = False, is_peer: bool = False) -> Optional[Dict[str, Any]]:
        if depth > self.max_depth:
            return None

        package_key = f"{name}@{version}"
        if depth > 0 and package_key in visited:
            return {
                "name": name,
                "version": version,
                "dependencies": [],
                "isDev": is_dev,
                "isPeer": is_peer,
                "isCircular": True,
                "depth": depth,
            }

        visited.add(package_key)
        try:
            metadata = self.client.get_package_metadata(name, version)
        except (requests.RequestException, ValueError) as e:
            if depth == 0:
                raise ResolutionError(f"Registry unreachable while resolving {name}: {e}") from e
            logger.error(f"Error building tree for {name}: {e}")
            return None
        if metadata is None:
            return None

        sections = [(metadata.dependencies, False, False)]
        if depth == 0:
            sections.append((metadata.dev_dependencies, True, False))
            sections.append((metadata.peer_dependencies, False, True))

        children = []
        for deps, child_dev, child_peer in sections:
            for dep_name, dep_range in deps.items():
                child = self._build_tree(
                    dep_name, clean_version(str(dep_range)), depth + 1,
                    set(visited), child_dev, child_peer,
                )
                if child:
                    children.append(child)

        return {
            "name": name,
            "version": metadata.version,
            "dependencies": children,
            "isDev": is_dev,
            "isPeer": is_peer,
            "isCircular": False,
            "depth": depth,
        }

    def close(self):
        self.client.close()
