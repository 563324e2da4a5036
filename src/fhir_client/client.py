"""
FHIR STU3 read/search client.

Usage:

    client = FHIRClient("http://hapi.fhir.org/baseDstu3")
    patient = client.read("Patient/example")

    bundle = client.search("Patient", ["name=Peter", "address-postalcode=3999"])
    while bundle is not None:
        ...  # do something with bundle["entry"]
        bundle = client.continue_(bundle)

Paging is driven by the caller: each continue_() call is one request and
returns None after the last page.
"""

import logging
from typing import Any, Mapping, Optional, Union

import requests
from pydantic import ValidationError

from . import config
from .errors import ConnectionFailed, FHIRClientError, InvalidQueryObject, UnsupportedVersion
from .models import CapabilityInfo, SearchParams, SearchRequest, SummaryType
from .transport import FHIRTransport
from .urls import (
    build_graphql_url,
    build_metadata_url,
    build_read_url,
    build_request_url,
    build_update_url,
    normalize_endpoint,
)

logger = logging.getLogger(__name__)

Summary = Optional[Union[SummaryType, str]]


class FHIRClient:
    """
    Read and search client bound to one FHIR STU3 endpoint.

    The endpoint is checked once, at construction, by fetching the server's
    CapabilityStatement. Every other method builds one URL and performs one
    request; the client keeps no per-call state.
    """

    def __init__(self, endpoint: str, transport: Optional[FHIRTransport] = None):
        """
        Connect to a FHIR server.

        Args:
            endpoint: Server base URL; a trailing '/' is added when missing
            transport: Transport to send requests with (default: a new FHIRTransport)

        Raises:
            ConnectionFailed: If the capability statement cannot be fetched or is
                not a CapabilityStatement
            UnsupportedVersion: If the server's FHIR major version is not 3
        """
        self._endpoint = normalize_endpoint(endpoint)
        self.transport = transport or FHIRTransport()

        capability = self._fetch_capability()
        if capability.major_version != config.SUPPORTED_MAJOR_VERSION:
            raise UnsupportedVersion(capability.fhir_version)

        logger.info(
            f"Connected to {self._endpoint} (FHIR {capability.fhir_version}"
            f"{', ' + capability.software_name if capability.software_name else ''})"
        )

    def _fetch_capability(self) -> CapabilityInfo:
        url = build_metadata_url(self._endpoint)
        try:
            document = self.transport.fetch_resource(url)
        except (requests.RequestException, FHIRClientError) as e:
            raise ConnectionFailed(f"Could not connect to endpoint {self._endpoint}: {e}") from e

        if not isinstance(document, Mapping):
            raise ConnectionFailed(f"Could not connect to endpoint {self._endpoint}: unexpected metadata response")
        try:
            capability = CapabilityInfo.from_document(document)
        except ValidationError as e:
            raise ConnectionFailed(f"Could not connect to endpoint {self._endpoint}: {e}") from e
        if capability.resource_type != "CapabilityStatement":
            raise ConnectionFailed(
                f"Could not connect to endpoint {self._endpoint}: "
                f"metadata returned {capability.resource_type!r}, expected CapabilityStatement"
            )
        return capability

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def read(self, location: str, summary: Summary = None) -> Any:
        """
        Fetch a resource by location.

        Args:
            location: "Patient/example", a version-specific
                "Patient/example/_history/1", or an absolute URL
            summary: Optional _summary modifier
        """
        url = build_read_url(self._endpoint, location, summary)
        return self.transport.fetch_resource(url)

    def search(
            self,
            resource_type: str,
            criteria=None,
            includes=None,
            page_size: Optional[int] = None,
            summary: Summary = None,
            query: Optional[SearchParams] = None,
    ) -> Any:
        """
        Search resources of one type.

        Args:
            resource_type: Resource type, e.g. "Patient"
            criteria: "key=value" strings, e.g. ["name=Peter", "birthdate=ge1980"]
            includes: Paths to include, e.g. ["Observation:subject"]
            page_size: Entries per page the server is asked for
            summary: Optional _summary modifier
            query: SearchParams object, used instead of criteria

        Returns:
            The searchset Bundle

        Raises:
            ConflictingCriteriaSource: If both criteria and query are given
            InvalidQueryObject: If query is not a SearchParams
        """
        return self._search(resource_type, criteria, includes, page_size, summary, query)

    def search_by_id(self, resource_type: str, resource_id: str, includes=None, summary: Summary = None) -> Any:
        """Search resources of one type by id (so includes can be applied)."""
        return self._search(resource_type, [f"_id={resource_id}"], includes, None, summary, None)

    def whole_system_search(
            self,
            criteria=None,
            includes=None,
            page_size: Optional[int] = None,
            summary: Summary = None,
            query: Optional[SearchParams] = None,
    ) -> Any:
        """Search across all resource types. Arguments as for search()."""
        return self._search(None, criteria, includes, page_size, summary, query)

    def search_by_query(self, query: SearchParams, resource_type: Optional[str] = None) -> Any:
        """
        Search using a SearchParams object.

        Args:
            query: The structured query
            resource_type: Resource type to search; defaults to query.resource_type,
                and to a whole-system search when neither is set

        Raises:
            InvalidQueryObject: If query is not a SearchParams (no request is made)
        """
        if not isinstance(query, SearchParams):
            raise InvalidQueryObject("Parameter is not a valid SearchParams object")
        return self._search(resource_type or query.resource_type, None, None, None, None, query)

    def _search(self, resource_type, criteria, includes, page_size, summary, query) -> Any:
        if query is not None and not isinstance(query, SearchParams):
            raise InvalidQueryObject("Parameter is not a valid SearchParams object")
        request = SearchRequest(
            resource_type=resource_type,
            criteria=criteria,
            includes=includes,
            page_size=page_size,
            summary=summary,
            query=query,
        )
        url = build_request_url(self._endpoint, request)
        return self.transport.fetch_bundle(url)

    def graphql(self, query: str, location: Optional[str] = None) -> Any:
        """
        Run a GraphQL query through the $graphql operation.

        Args:
            query: GraphQL query text, e.g. "{name{text,given,family}}"
            location: Optional resource the query is scoped to, e.g. "Patient/example"
        """
        url = build_graphql_url(self._endpoint, location, query)
        return self.transport.fetch_resource(url)

    def operation(
            self,
            name: str,
            resource_type: Optional[str] = None,
            resource_id: Optional[str] = None,
            parameters=None,
    ) -> Any:
        """
        Invoke a named operation with GET.

        Args:
            name: Operation name, with or without the leading '$'
            resource_type: Type the operation runs on; None for system level
            resource_id: Instance the operation runs on
            parameters: Mapping or (name, value) pairs sent as query parameters

        Returns:
            The operation result (a Bundle or any other resource)
        """
        request = SearchRequest(
            resource_type=resource_type,
            resource_id=resource_id,
            operation=name,
            operation_parameters=parameters,
        )
        url = build_request_url(self._endpoint, request)
        return self.transport.fetch_bundle(url)

    def update(self, resource: Mapping) -> Any:
        """
        Update (or create with a client-chosen id) a resource with PUT.

        Raises:
            InvalidResource: If the resource lacks resourceType or id
        """
        url = build_update_url(self._endpoint, resource)
        return self.transport.put_resource(url, resource)

    def continue_(self, bundle: Any) -> Any:
        """
        Fetch the next page of a search.

        Returns:
            The next Bundle, or None when there are no more pages

        Raises:
            NotABundle: If bundle is not a Bundle
        """
        return self.transport.continue_bundle(bundle)

    def describe(self) -> str:
        return f"Endpoint: {self._endpoint}"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"FHIRClient({self._endpoint!r})"

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "FHIRClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def get_fhir_client() -> FHIRClient:
    """Get a FHIRClient instance using FHIR_SERVER_URL environment variable."""
    return FHIRClient(config.FHIR_SERVER_URL)
