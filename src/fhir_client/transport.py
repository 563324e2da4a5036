"""
HTTP transport and response interpretation.

Issues one GET or PUT per call through a requests.Session, checks the status,
and returns the parsed JSON document as-is. Whether a document is a single
resource or a Bundle is left to the caller, except for continue_bundle().
"""

import logging
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Mapping, Optional

import requests

from . import config
from .errors import HttpError, InvalidJSON, NotABundle

logger = logging.getLogger(__name__)

ACCEPT_HEADERS = {"Accept": "application/json"}
PUT_HEADERS = {**ACCEPT_HEADERS, "Content-Type": "application/fhir+json"}


def is_bundle(document: Any) -> bool:
    return isinstance(document, Mapping) and document.get("resourceType") == "Bundle"


def next_link(bundle: Mapping) -> Optional[str]:
    """Return the url of the bundle's "next" link, or None on the last page."""
    for link in bundle.get("link") or []:
        if link.get("relation") == "next":
            return link.get("url")
    return None


class FHIRTransport:
    """
    Sends FHIR requests and decodes their JSON bodies.

    A session passed in is used as given; the default session refuses
    cookies.

    Attributes:
        session: The underlying requests.Session
        timeout: Seconds passed to requests for every call
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = config.FHIR_REQUEST_TIMEOUT):
        if session is None:
            session = requests.Session()
            # Refuse all server cookies
            session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self.session = session
        self.timeout = timeout

    def _decode(self, response: requests.Response, url: str) -> Any:
        if not response.ok:
            logger.warning(f"FHIR request failed: HTTP {response.status_code} for {url}")
            raise HttpError(response.status_code, url, response.text)
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"FHIR response from {url} is not valid JSON")
            raise InvalidJSON(url) from e

    def fetch_resource(self, url: str) -> Any:
        """
        GET a URL and return the parsed document.

        Raises:
            HttpError: If the server answers with a non-success status
            InvalidJSON: If the body cannot be parsed
        """
        logger.debug(f"FHIR GET: {url}")
        response = self.session.get(url, headers=ACCEPT_HEADERS, timeout=self.timeout)
        return self._decode(response, url)

    def fetch_bundle(self, url: str) -> Any:
        """GET a URL expected to return a Bundle. The type is not enforced."""
        return self.fetch_resource(url)

    def put_resource(self, url: str, resource: Mapping) -> Any:
        """
        PUT a resource as JSON and return the parsed response document.

        Raises:
            HttpError: If the server answers with a non-success status
            InvalidJSON: If the body cannot be parsed
        """
        logger.debug(f"FHIR PUT: {url}")
        response = self.session.put(url, json=resource, headers=PUT_HEADERS, timeout=self.timeout)
        return self._decode(response, url)

    def continue_bundle(self, bundle: Any) -> Any:
        """
        Fetch the page after the given bundle.

        Args:
            bundle: A Bundle document from a previous search or page

        Returns:
            The next page, or None when the bundle has no "next" link

        Raises:
            NotABundle: If the document is not a Bundle (no request is made)
        """
        if not is_bundle(bundle):
            raise NotABundle("Input is not recognized as a Bundle")
        url = next_link(bundle)
        if url is None:
            logger.debug("No next link, end of pages")
            return None
        return self.fetch_bundle(url)

    def close(self) -> None:
        self.session.close()
