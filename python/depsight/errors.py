"""Error types raised by depsight."""


class DepsightError(Exception):
    """Base class for all depsight errors."""


class ParseError(DepsightError):
    """The manifest text is empty, not valid JSON, or not shaped like a manifest."""


class NoDependenciesError(DepsightError):
    """The manifest is valid JSON but declares no dependency maps."""


class ResolutionError(DepsightError):
    """The dependency tree data source could not be reached or returned garbage."""


class VulnerabilityCheckError(DepsightError):
    """The vulnerability data source could not be reached or returned garbage."""
