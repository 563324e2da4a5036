"""
URL construction for FHIR STU3 interactions.

Pure functions: each returns one fully encoded absolute URL and never touches
the network. Errors in the caller's input are raised here, before any request.

Query parameter order for searches is fixed:
criteria -> _include -> _count -> _summary
"""

from typing import Any, Iterable, Mapping, Optional, Union
from urllib.parse import quote, urlparse

from .criteria import Pair, criteria_source, encode_criteria, split_criterion
from .errors import ConflictingRequestIntent, InvalidResource
from .models import SearchRequest, SummaryType

# Characters left literal in query values: legal in a query component and
# common in FHIR references and tokens.
VALUE_SAFE_CHARS = ":/,"
# Names keep ':' so modifiers like "name:exact" survive.
NAME_SAFE_CHARS = ":"


def normalize_endpoint(endpoint: str) -> str:
    """Ensure the endpoint ends with exactly one '/'."""
    if endpoint.endswith("/"):
        return endpoint
    return endpoint + "/"


def encode_query(pairs: Iterable[Pair]) -> str:
    """Percent-encode (name, value) pairs and join them with '&'."""
    return "&".join(
        f"{quote(str(name), safe=NAME_SAFE_CHARS)}={quote(str(value), safe=VALUE_SAFE_CHARS)}"
        for name, value in pairs
    )


def _with_query(base: str, pairs: list[Pair]) -> str:
    if not pairs:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{encode_query(pairs)}"


def _summary_value(summary: Union[SummaryType, str]) -> str:
    return SummaryType(summary).value


def build_metadata_url(endpoint: str) -> str:
    return f"{endpoint}metadata?_summary=true"


def build_read_url(endpoint: str, location: str, summary: Optional[Union[SummaryType, str]] = None) -> str:
    """
    Build the URL for a read or vread.

    Args:
        endpoint: Normalized server base URL
        location: Relative resource path ("Patient/example",
            "Patient/example/_history/2") or an absolute URL, used as-is
        summary: Optional _summary modifier

    Returns:
        The read URL
    """
    if urlparse(location).scheme:
        base = location
    else:
        base = endpoint + location.lstrip("/")
    pairs = [("_summary", _summary_value(summary))] if summary is not None else []
    return _with_query(base, pairs)


def build_search_url(
        endpoint: str,
        resource_type: Optional[str] = None,
        criteria: Optional[Union[str, Iterable[str]]] = None,
        includes: Optional[Union[str, Iterable[str]]] = None,
        page_size: Optional[int] = None,
        summary: Optional[Union[SummaryType, str]] = None,
        query: Any = None,
) -> str:
    """
    Build the URL for a type-level or whole-system search.

    Args:
        endpoint: Normalized server base URL
        resource_type: Resource type to search; None searches all types
        criteria: Raw "key=value" strings
        includes: Include paths, each sent as a separate _include
        page_size: Positive number of entries per page (_count)
        summary: Optional _summary modifier
        query: SearchParams object, used instead of raw criteria

    Returns:
        The search URL

    Raises:
        ConflictingCriteriaSource: If both criteria and query are given
        MalformedCriteria: If a raw criterion lacks '='
        InvalidQueryObject: If query is not a SearchParams
        ValueError: If page_size is not a positive integer or summary is unknown
    """
    base = f"{endpoint}{resource_type}/_search" if resource_type else f"{endpoint}_search"

    pairs = encode_criteria(criteria_source(criteria, query))

    if includes is not None:
        if isinstance(includes, str):
            includes = [includes]
        pairs.extend(("_include", path) for path in includes)

    if page_size is not None:
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ValueError(f"page_size must be a positive integer, got {page_size!r}")
        pairs.append(("_count", str(page_size)))

    if summary is not None:
        pairs.append(("_summary", _summary_value(summary)))

    return _with_query(base, pairs)


def _operation_pairs(parameters: Any) -> list[Pair]:
    if parameters is None:
        return []
    if isinstance(parameters, Mapping):
        pairs = []
        for name, value in parameters.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((name, str(item)) for item in value if item is not None)
            elif value is not None:
                pairs.append((name, str(value)))
        return pairs
    if isinstance(parameters, str):
        parameters = [parameters]
    pairs = []
    for parameter in parameters:
        if isinstance(parameter, str):
            pairs.append(split_criterion(parameter))
        else:
            name, value = parameter
            if value is not None:
                pairs.append((name, str(value)))
    return pairs


def build_operation_url(
        endpoint: str,
        resource_type: Optional[str],
        resource_id: Optional[str],
        name: str,
        parameters: Any = None,
) -> str:
    """
    Build the URL for a named operation ("$everything", "$meta", ...).

    Omitting resource_type and resource_id gives a system-level operation.
    Parameters may be a mapping (list values repeat the name), a sequence of
    (name, value) pairs or "key=value" strings; input order is kept and
    None values are left out.
    """
    path = endpoint
    if resource_type:
        path += f"{resource_type}/"
    if resource_id:
        path += f"{resource_id}/"
    path += "$" + name.lstrip("$")
    return _with_query(path, _operation_pairs(parameters))


def build_graphql_url(endpoint: str, location: Optional[str], query: str) -> str:
    """Build the URL for a $graphql query, optionally scoped to a resource."""
    path = endpoint
    if location:
        path += location.strip("/") + "/"
    return _with_query(path + "$graphql", [("query", query)])


def build_update_url(endpoint: str, resource: Mapping) -> str:
    """
    Build the URL a resource is PUT to: <endpoint><resourceType>/<id>.

    Raises:
        InvalidResource: If the resource lacks resourceType or id
    """
    if not isinstance(resource, Mapping):
        raise InvalidResource(f"Expected a resource document, got {type(resource).__name__}")
    resource_type = resource.get("resourceType")
    resource_id = resource.get("id")
    if not resource_type:
        raise InvalidResource("Resource has no resourceType")
    if not resource_id:
        raise InvalidResource(f"{resource_type} resource has no id")
    return f"{endpoint}{resource_type}/{quote(str(resource_id), safe='')}"


def build_request_url(endpoint: str, request: SearchRequest) -> str:
    """
    Build the URL for a SearchRequest.

    An operation request uses resource_type, resource_id, operation and
    operation_parameters; a search request uses the remaining fields.

    Raises:
        ConflictingRequestIntent: If an operation is combined with search inputs
    """
    if request.is_operation:
        search_inputs = {
            "criteria": request.criteria,
            "query": request.query,
            "includes": request.includes,
            "page_size": request.page_size,
            "summary": request.summary,
        }
        given = [name for name, value in search_inputs.items() if value is not None]
        if given:
            raise ConflictingRequestIntent(
                f"Operation ${request.operation.lstrip('$')} cannot be combined with {', '.join(given)}"
            )
        return build_operation_url(
            endpoint,
            request.resource_type,
            request.resource_id,
            request.operation,
            request.operation_parameters,
        )

    return build_search_url(
        endpoint,
        resource_type=request.resource_type,
        criteria=request.criteria,
        includes=request.includes,
        page_size=request.page_size,
        summary=request.summary,
        query=request.query,
    )
