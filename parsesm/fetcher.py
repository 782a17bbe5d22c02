"""HTTP access for pages and source maps.

TLS verification is intentionally off: the tool is diagnostic and targets are
often misconfigured staging hosts.
"""

import logging

import requests
import urllib3
from requests.adapters import HTTPAdapter

from .errors import ParsesmError

logger = logging.getLogger(__name__)

POOL_MAXSIZE = 5
IDLE_TIMEOUT = 15

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class HttpFetcher:
    """Thin GET-only wrapper around a shared requests session."""

    def __init__(self, session=None):
        try:
            self._session = session if session is not None else self._build_session()
        except Exception as e:
            raise ParsesmError(f"Could not build HTTP client: {e}") from e

    @staticmethod
    def _build_session():
        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=POOL_MAXSIZE, pool_maxsize=POOL_MAXSIZE)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.verify = False
        return session

    def get(self, url: str):
        """Return the body text for a 2xx response, otherwise None."""
        try:
            result = self._session.get(url, timeout=IDLE_TIMEOUT, verify=False)
        except requests.RequestException as e:
            logger.warning(f"Could not retrieve {url}: {e}")
            return None

        if 200 <= result.status_code < 300:
            return result.text

        logger.debug(f"Got status code {result.status_code} for URI {url}")
        return None

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
