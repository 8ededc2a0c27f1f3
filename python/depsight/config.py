"""Runtime configuration for depsight.

Values come from DEPSIGHT_* environment variables and can be overridden from
the command line. Anything not set falls back to the defaults below.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from . import __version__

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_TIMEOUT = 30  # seconds, for every outbound HTTP request
DEFAULT_MAX_DEPTH = 3

ENV_TREE_URL = "DEPSIGHT_TREE_URL"
ENV_VULN_URL = "DEPSIGHT_VULN_URL"
ENV_REGISTRY_URL = "DEPSIGHT_REGISTRY_URL"
ENV_TIMEOUT = "DEPSIGHT_TIMEOUT"
ENV_MAX_DEPTH = "DEPSIGHT_MAX_DEPTH"
ENV_CA_BUNDLE = "DEPSIGHT_CA_BUNDLE"


def _read_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}={raw!r}: not an integer, using {default}")
        return default
    if value < 0:
        logger.warning(f"Ignoring {key}={raw!r}: must not be negative, using {default}")
        return default
    return value


def _read_str(environ: Mapping[str, str], key: str) -> Optional[str]:
    raw = environ.get(key)
    if raw and raw.strip():
        return raw.strip()
    return None


@dataclass(frozen=True)
class Settings:
    """Endpoints, timeouts and limits used by the data source clients."""

    tree_url: Optional[str] = None  # None -> resolve locally against the registry
    vulnerability_url: Optional[str] = None  # None -> vulnerability check degrades
    registry_url: str = DEFAULT_REGISTRY_URL
    request_timeout: int = DEFAULT_TIMEOUT
    max_depth: int = DEFAULT_MAX_DEPTH
    ca_bundle: Optional[str] = None
    user_agent: str = f"depsight/{__version__}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Build settings from DEPSIGHT_* environment variables."""
        if environ is None:
            environ = os.environ
        return cls(
            tree_url=_read_str(environ, ENV_TREE_URL),
            vulnerability_url=_read_str(environ, ENV_VULN_URL),
            registry_url=_read_str(environ, ENV_REGISTRY_URL) or DEFAULT_REGISTRY_URL,
            request_timeout=_read_int(environ, ENV_TIMEOUT, DEFAULT_TIMEOUT),
            max_depth=_read_int(environ, ENV_MAX_DEPTH, DEFAULT_MAX_DEPTH),
            ca_bundle=_read_str(environ, ENV_CA_BUNDLE),
        )

    def with_overrides(self, **overrides) -> 'Settings':
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if changes:
            logger.debug(f"Applying configuration overrides: {sorted(changes)}")
        return dataclasses.replace(self, **changes)
