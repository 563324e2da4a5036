import pytest

from fhir_client import FHIRClient

ENDPOINT = "http://x/"
METADATA_URL = "http://x/metadata?_summary=true"

CAPABILITY_STU3 = {
    "resourceType": "CapabilityStatement",
    "status": "active",
    "fhirVersion": "3.0.2",
    "software": {"name": "HAPI FHIR Server"},
}


def make_bundle(entries=(), next_url=None, self_url=None):
    links = []
    if self_url:
        links.append({"relation": "self", "url": self_url})
    if next_url:
        links.append({"relation": "next", "url": next_url})
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": len(entries),
        "link": links,
        "entry": [{"resource": resource} for resource in entries],
    }


@pytest.fixture
def client(requests_mock):
    requests_mock.get(METADATA_URL, json=CAPABILITY_STU3)
    return FHIRClient("http://x")
