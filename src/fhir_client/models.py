"""
Data models for the FHIR client.

- SummaryType: values accepted by the _summary search modifier
- SearchParams: structured query object, built fluently
- SearchRequest: everything needed to build one search or operation URL
- CapabilityInfo: the parts of the server CapabilityStatement the client checks
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, conint, field_validator


class SummaryType(str, Enum):
    """Request modifier asking the server to trim resource bodies."""
    TRUE = "true"
    FALSE = "false"
    TEXT = "text"
    DATA = "data"
    COUNT = "count"


class SearchParams(BaseModel):
    """
    Structured search query.

    Parameters keep the order in which they were added. Every builder method
    returns the same object so calls can be chained:

        query = SearchParams(resource_type="Patient").where("name=Peter").limit_to(10)

    Attributes:
        resource_type: Resource type to search when the caller gives none
        entries: Ordered (name, value) parameter pairs
    """
    resource_type: Optional[str] = None
    entries: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def parameters(self) -> list[tuple[str, str]]:
        return list(self.entries)

    def add(self, name: str, value: Any) -> "SearchParams":
        self.entries.append((name, str(value)))
        return self

    def where(self, criterion: str) -> "SearchParams":
        """Add a "key=value" criterion, e.g. "birthdate=ge1980-01-01"."""
        from .criteria import split_criterion

        name, value = split_criterion(criterion)
        return self.add(name, value)

    def select(self, elements: Union[str, list[str]]) -> "SearchParams":
        if isinstance(elements, str):
            elements = [elements]
        return self.add("_elements", ",".join(elements))

    def include(self, path: str) -> "SearchParams":
        return self.add("_include", path)

    def rev_include(self, path: str) -> "SearchParams":
        return self.add("_revinclude", path)

    def order_by(self, field: str, descending: bool = False) -> "SearchParams":
        return self.add("_sort", f"-{field}" if descending else field)

    def limit_to(self, count: int) -> "SearchParams":
        if count < 1:
            raise ValueError(f"count must be a positive integer, got {count}")
        return self.add("_count", count)

    def summary_only(self) -> "SearchParams":
        return self.add("_summary", SummaryType.TRUE.value)

    def text_only(self) -> "SearchParams":
        return self.add("_summary", SummaryType.TEXT.value)

    def data_only(self) -> "SearchParams":
        return self.add("_summary", SummaryType.DATA.value)

    def count_only(self) -> "SearchParams":
        return self.add("_summary", SummaryType.COUNT.value)


class SearchRequest(BaseModel):
    """A plain search or a named operation invocation, never both."""
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    criteria: Optional[list[str]] = None
    query: Optional[SearchParams] = None
    includes: Optional[list[str]] = None
    page_size: Optional[conint(strict=True, gt=0)] = None
    summary: Optional[SummaryType] = None
    operation: Optional[str] = None
    operation_parameters: Optional[Any] = None

    @field_validator("criteria", "includes", mode="before")
    @classmethod
    def _single_string_as_list(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    @property
    def is_operation(self) -> bool:
        return self.operation is not None


class CapabilityInfo(BaseModel):
    """Server capability summary, fetched once when a client connects."""
    resource_type: Optional[str] = None
    fhir_version: Optional[str] = None
    software_name: Optional[str] = None

    @classmethod
    def from_document(cls, document: dict) -> "CapabilityInfo":
        software = document.get("software") or {}
        return cls(
            resource_type=document.get("resourceType"),
            fhir_version=document.get("fhirVersion"),
            software_name=software.get("name") if isinstance(software, dict) else None,
        )

    @property
    def major_version(self) -> str:
        return (self.fhir_version or "").split(".")[0]
