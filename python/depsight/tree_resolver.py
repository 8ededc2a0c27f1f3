"""Resolves and memoizes the transitive dependency tree of one root package."""

import logging
import threading
from typing import Any, Dict, FrozenSet, List, Optional, Protocol

from .errors import ResolutionError
from .models import DependencyNode

logger = logging.getLogger(__name__)


class TreeSource(Protocol):
    """Anything that turns root package requests into wire-format trees."""

    def fetch_trees(self, packages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...


class TreeCache:
    """Resolved trees keyed by root package name."""

    def __init__(self):
        self._trees: Dict[str, DependencyNode] = {}

    def get(self, name: str) -> Optional[DependencyNode]:
        return self._trees.get(name)

    def put(self, name: str, tree: DependencyNode) -> None:
        self._trees[name] = tree

    def names(self) -> List[str]:
        return list(self._trees)

    def __contains__(self, name: object) -> bool:
        return name in self._trees

    def __len__(self) -> int:
        return len(self._trees)


class CancellationToken:
    """Lets a clear or a new analysis void a resolution that is still in flight."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class DependencyTreeResolver:
    """
    Resolves a root package into a DependencyNode tree.

    The tree data source supplies the shape; this class recomputes depths and
    cycle flags itself. A node whose name already appears on its ancestor
    path is marked circular and cut off, whatever the source sent below it.

    Trees are cached by package name only, so asking again for the same name
    with a different version range returns the cached tree.
    """

    def __init__(self, source: TreeSource, cache: Optional[TreeCache] = None):
        self.source = source
        self._cache = cache if cache is not None else TreeCache()

    @property
    def cache(self) -> TreeCache:
        return self._cache

    def reset_cache(self) -> TreeCache:
        """Install a new empty cache; late writers keep their old reference."""
        self._cache = TreeCache()
        logger.debug("Dependency tree cache reset")
        return self._cache

    def resolve(self, name: str, version_range: str = "", is_dev: bool = False,
                is_peer: bool = False,
                token: Optional[CancellationToken] = None) -> Optional[DependencyNode]:
        """
        Resolve the dependency tree for one root package.

        Args:
            name: Root package name (also the cache key)
            version_range: Version or range from the manifest; 'latest' if empty
            is_dev: Tag the root as a development dependency
            is_peer: Tag the root as a peer dependency
            token: Optional cancellation token; a cancelled result is not cached

        Returns:
            The resolved tree, or None if the source returned no tree or the
            token was cancelled

        Raises:
            ResolutionError: If the source fails or returns a malformed tree
        """
        cache = self._cache

        cached = cache.get(name)
        if cached is not None:
            logger.debug(f"Cache hit for {name}")
            return cached

        request = [{
            "name": name,
            "version": version_range or "latest",
            "isDev": is_dev,
            "isPeer": is_peer,
        }]
        logger.info(f"Resolving dependency tree for {name}@{request[0]['version']}")
        trees = self.source.fetch_trees(request)

        if not trees or trees[0] is None:
            logger.warning(f"No dependency tree returned for {name}")
            return None

        tree = self._build_node(trees[0], depth=0, ancestors=frozenset())

        if token is not None and token.cancelled:
            logger.info(f"Resolution of {name} was cancelled; discarding result")
            return None

        cache.put(name, tree)
        logger.info(
            f"Resolved {name}: {tree.node_count} nodes, max depth {tree.max_depth}, "
            f"{tree.circular_count} circular"
        )
        return tree

    def _build_node(self, raw: Any, depth: int, ancestors: FrozenSet[str]) -> DependencyNode:
        """Copy one wire-format node, recomputing depth and cycle flags."""
        if not isinstance(raw, dict) or not raw.get("name"):
            raise ResolutionError(f"Malformed dependency tree node at depth {depth}: {raw!r}")

        name = str(raw["name"])
        node = DependencyNode(
            name=name,
            version=str(raw.get("version") or ""),
            is_dev=bool(raw.get("isDev", False)),
            is_peer=bool(raw.get("isPeer", False)),
            depth=depth,
        )

        if name in ancestors:
            node.is_circular = True
            logger.debug(f"Circular dependency: {name} at depth {depth}")
            return node

        children = raw.get("dependencies") or []
        if not isinstance(children, list):
            raise ResolutionError(f"Malformed dependency list for {name}")

        path = ancestors | {name}
        for child in children:
            node.add_child(self._build_node(child, depth + 1, path))
        return node
