"""depsight - package manifest analysis and dependency tree resolution."""

__version__ = "1.0.0"
