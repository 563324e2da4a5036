"""
Search criteria normalization.

Criteria come from exactly one of two sources per call:
- RawCriteria: "key=value" strings, split once on the first '='
- StructuredQuery: a SearchParams object

encode_criteria() turns either into ordered (name, value) pairs. Values are
left unencoded; percent-encoding happens once, in fhir_client.urls.
"""

from typing import NamedTuple, Optional, Sequence, Union

from .errors import ConflictingCriteriaSource, InvalidQueryObject, MalformedCriteria
from .models import SearchParams

Pair = tuple[str, str]


class RawCriteria(NamedTuple):
    strings: Sequence[str]


class StructuredQuery(NamedTuple):
    query: SearchParams


CriteriaSource = Union[RawCriteria, StructuredQuery]


def split_criterion(criterion: str) -> Pair:
    """
    Split a "key=value" criterion on its first '='.

    Values may themselves contain '=' (e.g. "_filter=name eq x=y").

    Raises:
        MalformedCriteria: If the criterion has no '='
    """
    name, separator, value = criterion.partition("=")
    if not separator:
        raise MalformedCriteria(f"Criterion {criterion!r} is not of the form key=value")
    return name, value


def criteria_source(criteria=None, query=None) -> Optional[CriteriaSource]:
    """
    Pick the criteria source for a call.

    Raises:
        ConflictingCriteriaSource: If both raw criteria and a query are given
    """
    if query is not None and criteria is not None:
        raise ConflictingCriteriaSource("Pass either raw criteria or a SearchParams query, not both")
    if query is not None:
        return StructuredQuery(query)
    if criteria is not None:
        if isinstance(criteria, str):
            criteria = [criteria]
        return RawCriteria(criteria)
    return None


def encode_criteria(source: Optional[CriteriaSource]) -> list[Pair]:
    """
    Normalize a criteria source into ordered (name, value) pairs.

    Raises:
        MalformedCriteria: If a raw criterion lacks '='
        InvalidQueryObject: If a structured query is not a SearchParams
    """
    if source is None:
        return []
    if isinstance(source, RawCriteria):
        return [split_criterion(criterion) for criterion in source.strings]
    if isinstance(source, StructuredQuery):
        if not isinstance(source.query, SearchParams):
            raise InvalidQueryObject(
                f"Expected a SearchParams object, got {type(source.query).__name__}"
            )
        return source.query.parameters
    raise InvalidQueryObject(f"Unknown criteria source: {type(source).__name__}")
