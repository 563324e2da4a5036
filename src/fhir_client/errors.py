"""
Exceptions raised by the FHIR client.

Build-time errors (criteria, request shape) are raised before any network
call. Transport errors are raised after the response comes back.
"""

from typing import Optional


class FHIRClientError(Exception):
    """Base error for the FHIR client."""


class ConnectionFailed(FHIRClientError):
    """The capability statement could not be fetched or is not a CapabilityStatement."""


class UnsupportedVersion(FHIRClientError):
    """The server speaks a FHIR major version other than STU3."""

    def __init__(self, version: Optional[str]):
        super().__init__(f"Server FHIR version {version!r} is not supported, only STU3 (3.x)")
        self.version = version


class MalformedCriteria(FHIRClientError, ValueError):
    """A raw criterion lacks the '=' separator."""


class ConflictingCriteriaSource(FHIRClientError, ValueError):
    """Raw criteria and a structured query were supplied together."""


class ConflictingRequestIntent(FHIRClientError, ValueError):
    """An operation was combined with search inputs."""


class InvalidQueryObject(FHIRClientError, TypeError):
    """The query argument is not a SearchParams object."""


class InvalidResource(FHIRClientError, ValueError):
    """A resource lacks the resourceType or id needed to address it."""


class HttpError(FHIRClientError):
    """The server answered with a non-success status."""

    def __init__(self, status: int, url: str, body: str = ""):
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url
        self.body = body


class InvalidJSON(FHIRClientError):
    """The response body is not valid JSON."""

    def __init__(self, url: str):
        super().__init__(f"Response from {url} is not valid JSON")
        self.url = url


class NotABundle(FHIRClientError):
    """A document passed for paging is not a Bundle."""
