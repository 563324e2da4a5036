"""
Read and search client for FHIR STU3 servers.

Builds protocol-correct URLs for reads, searches, operations and GraphQL
queries, and returns the parsed resource or Bundle documents.
"""

from .client import FHIRClient, get_fhir_client
from .errors import (
    ConflictingCriteriaSource,
    ConflictingRequestIntent,
    ConnectionFailed,
    FHIRClientError,
    HttpError,
    InvalidJSON,
    InvalidQueryObject,
    InvalidResource,
    MalformedCriteria,
    NotABundle,
    UnsupportedVersion,
)
from .models import SearchParams, SearchRequest, SummaryType
from .transport import FHIRTransport

__all__ = [
    "FHIRClient",
    "FHIRTransport",
    "get_fhir_client",
    "SearchParams",
    "SearchRequest",
    "SummaryType",
    "FHIRClientError",
    "ConnectionFailed",
    "UnsupportedVersion",
    "MalformedCriteria",
    "ConflictingCriteriaSource",
    "ConflictingRequestIntent",
    "InvalidQueryObject",
    "InvalidResource",
    "HttpError",
    "InvalidJSON",
    "NotABundle",
]
