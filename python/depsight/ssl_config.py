"""HTTP session factory that copes with corporate SSL inspection proxies.

OpenSSL 3.x rejects certificates without proper key usage extensions, which
is exactly what proxies such as Netskope tend to present. When a CA bundle is
configured (or one of the known proxy bundles is installed) the session gets
an adapter whose SSL context loads that bundle with relaxed verify flags.
"""

import os
import ssl
import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.ssl_ import create_urllib3_context

logger = logging.getLogger(__name__)

CORPORATE_CERT_PATHS = [
    "/Library/Application Support/Netskope/STAgent/data/netskope-cert-bundle.pem",
    "/etc/netskope/cert-bundle.pem",
]


def find_ca_bundle(explicit: Optional[str] = None) -> Optional[str]:
    """Return the configured CA bundle, else the first known proxy bundle on disk."""
    if explicit:
        if os.path.exists(explicit):
            return explicit
        logger.warning(f"Configured CA bundle {explicit} does not exist; ignoring it")
    for path in CORPORATE_CERT_PATHS:
        if os.path.exists(path):
            return path
    return None


class BundleSSLAdapter(HTTPAdapter):
    """HTTPS adapter whose SSL context trusts an extra CA bundle."""

    def __init__(self, cert_path: str, **kwargs):
        self.cert_path = cert_path
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        ctx = create_urllib3_context()
        ctx.load_verify_locations(self.cert_path)
        # Drop OpenSSL 3.x strict key usage checks
        ctx.verify_flags = ssl.VERIFY_DEFAULT
        kwargs['ssl_context'] = ctx
        return super().init_poolmanager(*args, **kwargs)


def create_session(user_agent: str, ca_bundle: Optional[str] = None) -> requests.Session:
    """Create a JSON-speaking requests session for the data source clients."""
    session = requests.Session()
    session.headers.update({
        "Accept": "application/json",
        "User-Agent": user_agent,
    })

    cert_path = find_ca_bundle(ca_bundle)
    if cert_path:
        logger.info(f"Using CA bundle {cert_path} for HTTPS requests")
        session.mount('https://', BundleSSLAdapter(cert_path))

    return session
