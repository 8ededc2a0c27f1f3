"""Core data models for depsight."""

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any, Iterator, Tuple

from packageurl import PackageURL

PRODUCTION = "production"
DEVELOPMENT = "development"
PEER = "peer"

# Manifest order: dependencies, devDependencies, peerDependencies
CATEGORIES = (PRODUCTION, DEVELOPMENT, PEER)

_CATEGORY_LABELS = {PRODUCTION: "prod", DEVELOPMENT: "dev", PEER: "peer"}
_CATEGORY_DESCRIPTIONS = {
    PRODUCTION: "Production dependency",
    DEVELOPMENT: "Development dependency",
    PEER: "Peer dependency",
}


def build_npm_purl(name: str, version: Optional[str] = None) -> PackageURL:
    """Build an npm Package URL, splitting scoped names into namespace and name."""
    namespace = None
    if name.startswith("@") and "/" in name:
        namespace, name = name.split("/", 1)
    return PackageURL(type="npm", namespace=namespace, name=name, version=version or None)


@dataclass(frozen=True)
class PackageDescriptor:
    """One (name, version range, category) entry extracted from a manifest."""

    name: str
    version_range: str
    category: str = PRODUCTION

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown dependency category: {self.category}")

    @property
    def is_dev(self) -> bool:
        return self.category == DEVELOPMENT

    @property
    def is_peer(self) -> bool:
        return self.category == PEER

    @property
    def label(self) -> str:
        """Short label shown next to the package (prod, dev, peer)."""
        return _CATEGORY_LABELS[self.category]

    @property
    def description(self) -> str:
        return _CATEGORY_DESCRIPTIONS[self.category]

    @property
    def purl(self) -> PackageURL:
        return build_npm_purl(self.name, self.version_range)

    def __str__(self) -> str:
        return f"{self.name}@{self.version_range}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version_range,
            "category": self.category,
            "description": self.description,
        }


@dataclass
class DependencyNode:
    """
    A node in a resolved transitive dependency tree.

    Unlike a graph node, a DependencyNode owns its children: the same package
    reached through two paths appears as two separate nodes. A circular node
    (its name repeats an ancestor's) is always a leaf.
    """

    name: str
    version: str
    children: List['DependencyNode'] = field(default_factory=list)
    is_dev: bool = False
    is_peer: bool = False
    is_circular: bool = False
    depth: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.name}@{self.version}"

    def __str__(self) -> str:
        return self.full_name

    def add_child(self, child: 'DependencyNode') -> None:
        """Attach a child node; circular nodes never get children."""
        if self.is_circular:
            raise ValueError(f"Circular node {self.full_name} cannot have children")
        self.children.append(child)

    def iter_nodes(self) -> Iterator['DependencyNode']:
        """Walk this tree in pre-order."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def max_depth(self) -> int:
        return max(node.depth for node in self.iter_nodes())

    @property
    def circular_count(self) -> int:
        return sum(1 for node in self.iter_nodes() if node.is_circular)

    def _markers(self) -> str:
        markers = []
        if self.is_circular:
            markers.append("(circular)")
        if self.is_dev:
            markers.append("[dev]")
        if self.is_peer:
            markers.append("[peer]")
        return (" " + " ".join(markers)) if markers else ""

    def get_tree_representation(self, style: str = "unicode", prefix: str = "",
                                is_last: bool = True, is_top: bool = True) -> str:
        """Generate a tree visualization string."""
        if style == "ascii":
            branch, last_branch, pipe = "+-- ", "\\-- ", "|   "
        else:
            branch, last_branch, pipe = "├── ", "└── ", "│   "

        lines = []
        label = f"{self.full_name}{self._markers()}"
        if is_top:
            lines.append(label)
            child_prefix = ""
        else:
            connector = last_branch if is_last else branch
            lines.append(f"{prefix}{connector}{label}")
            child_prefix = prefix + ("    " if is_last else pipe)

        for i, child in enumerate(self.children):
            is_last_child = (i == len(self.children) - 1)
            lines.append(child.get_tree_representation(style, child_prefix, is_last_child, False))

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire format used by tree data sources."""
        return {
            "name": self.name,
            "version": self.version,
            "dependencies": [child.to_dict() for child in self.children],
            "isDev": self.is_dev,
            "isPeer": self.is_peer,
            "isCircular": self.is_circular,
            "depth": self.depth,
        }


@dataclass
class Vulnerability:
    """A single advisory reported against a manifest package."""

    package: str
    severity: str
    title: str
    description: Optional[str] = None
    id: Optional[str] = None
    references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ManifestAnalysis:
    """Result of analyzing one manifest."""

    total_packages: int
    production_packages: int
    dev_packages: int
    peer_packages: int
    packages: Tuple[PackageDescriptor, ...]
    duplicates: List[str] = field(default_factory=list)
    outdated: List[str] = field(default_factory=list)
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    dependency_tree: List[DependencyNode] = field(default_factory=list)

    def find_package(self, name: str) -> Optional[PackageDescriptor]:
        """Return the first descriptor with the given name."""
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPackages": self.total_packages,
            "productionPackages": self.production_packages,
            "devPackages": self.dev_packages,
            "peerPackages": self.peer_packages,
            "packages": [pkg.to_dict() for pkg in self.packages],
            "duplicates": list(self.duplicates),
            "outdated": list(self.outdated),
            "vulnerabilities": [vuln.to_dict() for vuln in self.vulnerabilities],
            "dependencyTree": [tree.to_dict() for tree in self.dependency_tree],
        }
