import logging

import pytest
import requests

from fhir_client import (
    ConflictingCriteriaSource,
    ConnectionFailed,
    FHIRClient,
    HttpError,
    InvalidQueryObject,
    InvalidResource,
    NotABundle,
    SearchParams,
    SummaryType,
    UnsupportedVersion,
)

from conftest import CAPABILITY_STU3, METADATA_URL, make_bundle

PATIENT = {"resourceType": "Patient", "id": "example", "name": [{"family": "Chalmers", "given": ["Peter"]}]}


class TestConnect:
    def test_endpoint_normalized(self, client):
        assert client.endpoint == "http://x/"

    def test_endpoint_with_separator_unchanged(self, requests_mock):
        requests_mock.get(METADATA_URL, json=CAPABILITY_STU3)
        assert FHIRClient("http://x/").endpoint == "http://x/"

    def test_fetches_capability_summary(self, client, requests_mock):
        assert requests_mock.call_count == 1
        assert requests_mock.last_request.url == METADATA_URL

    def test_logs_connection(self, requests_mock, caplog):
        requests_mock.get(METADATA_URL, json=CAPABILITY_STU3)
        with caplog.at_level(logging.INFO, logger="fhir_client"):
            FHIRClient("http://x")
        assert "Connected to http://x/ (FHIR 3.0.2, HAPI FHIR Server)" in caplog.text

    @pytest.mark.parametrize("version", ["3.0.2", "3.0.1", "3.0"])
    def test_stu3_accepted(self, requests_mock, version):
        requests_mock.get(METADATA_URL, json={**CAPABILITY_STU3, "fhirVersion": version})
        FHIRClient("http://x")

    @pytest.mark.parametrize("version", ["4.0.1", "1.0.2", None])
    def test_other_versions_rejected(self, requests_mock, version):
        requests_mock.get(METADATA_URL, json={**CAPABILITY_STU3, "fhirVersion": version})
        with pytest.raises(UnsupportedVersion) as excinfo:
            FHIRClient("http://x")
        assert excinfo.value.version == version

    def test_not_a_capability_statement(self, requests_mock):
        requests_mock.get(METADATA_URL, json={"resourceType": "Conformance", "fhirVersion": "3.0.2"})
        with pytest.raises(ConnectionFailed):
            FHIRClient("http://x")

    def test_http_error(self, requests_mock):
        requests_mock.get(METADATA_URL, status_code=503, text="unavailable")
        with pytest.raises(ConnectionFailed) as excinfo:
            FHIRClient("http://x")
        assert isinstance(excinfo.value.__cause__, HttpError)

    def test_invalid_json(self, requests_mock):
        requests_mock.get(METADATA_URL, text="<html></html>")
        with pytest.raises(ConnectionFailed):
            FHIRClient("http://x")

    def test_non_object_body(self, requests_mock):
        requests_mock.get(METADATA_URL, json=["CapabilityStatement"])
        with pytest.raises(ConnectionFailed):
            FHIRClient("http://x")

    def test_unreachable(self, requests_mock):
        requests_mock.get(METADATA_URL, exc=requests.exceptions.ConnectionError)
        with pytest.raises(ConnectionFailed):
            FHIRClient("http://x")


class TestRead:
    def test_read(self, client, requests_mock):
        requests_mock.get("http://x/Patient/example", json=PATIENT)
        assert client.read("Patient/example") == PATIENT

    def test_read_summary(self, client, requests_mock):
        requests_mock.get("http://x/Patient/example?_summary=true", json=PATIENT)
        client.read("Patient/example", summary=SummaryType.TRUE)
        assert requests_mock.last_request.url == "http://x/Patient/example?_summary=true"

    def test_read_absolute_url_with_summary(self, client, requests_mock):
        requests_mock.get("http://x/Patient", json=make_bundle([PATIENT]))
        client.read("http://x/Patient?_id=example", summary="true")
        assert requests_mock.last_request.url == "http://x/Patient?_id=example&_summary=true"

    def test_read_not_found(self, client, requests_mock):
        requests_mock.get("http://x/Patient/nope", status_code=404, json={"resourceType": "OperationOutcome"})
        with pytest.raises(HttpError) as excinfo:
            client.read("Patient/nope")
        assert excinfo.value.status == 404


class TestSearch:
    def test_search(self, client, requests_mock):
        bundle = make_bundle([PATIENT])
        requests_mock.get("http://x/Patient/_search", json=bundle)
        assert client.search("Patient", ["name=Peter"], page_size=10) == bundle
        assert requests_mock.last_request.url == "http://x/Patient/_search?name=Peter&_count=10"

    def test_search_with_query(self, client, requests_mock):
        requests_mock.get("http://x/Patient/_search", json=make_bundle())
        client.search("Patient", query=SearchParams().where("family=Chalmers"), summary="count")
        assert requests_mock.last_request.url == "http://x/Patient/_search?family=Chalmers&_summary=count"

    def test_conflicting_sources_make_no_request(self, client, requests_mock):
        calls = requests_mock.call_count
        with pytest.raises(ConflictingCriteriaSource):
            client.search("Patient", ["name=Peter"], query=SearchParams().where("name=Peter"))
        assert requests_mock.call_count == calls

    def test_invalid_query_makes_no_request(self, client, requests_mock):
        calls = requests_mock.call_count
        with pytest.raises(InvalidQueryObject):
            client.search("Patient", query={"name": "Peter"})
        assert requests_mock.call_count == calls

    def test_search_by_id(self, client, requests_mock):
        requests_mock.get("http://x/Patient/_search", json=make_bundle([PATIENT]))
        client.search_by_id("Patient", "example", includes=["Patient:organization"], summary="true")
        assert requests_mock.last_request.url == (
            "http://x/Patient/_search?_id=example&_include=Patient:organization&_summary=true"
        )

    @pytest.mark.parametrize("page_size", [0, -1, True, "10"])
    def test_page_size_must_be_positive_int(self, client, requests_mock, page_size):
        calls = requests_mock.call_count
        with pytest.raises(ValueError):
            client.search("Patient", page_size=page_size)
        with pytest.raises(ValueError):
            client.whole_system_search(page_size=page_size)
        assert requests_mock.call_count == calls

    def test_search_by_id_keywords(self, client, requests_mock):
        requests_mock.get("http://x/Patient/_search", json=make_bundle([PATIENT]))
        client.search_by_id(resource_type="Patient", resource_id="example")
        assert requests_mock.last_request.url == "http://x/Patient/_search?_id=example"

    def test_whole_system_search(self, client, requests_mock):
        requests_mock.get("http://x/_search", json=make_bundle())
        client.whole_system_search(["_lastUpdated=gt2018-01-01"], page_size=50)
        assert requests_mock.last_request.url == "http://x/_search?_lastUpdated=gt2018-01-01&_count=50"

    def test_whole_system_conflict(self, client):
        with pytest.raises(ConflictingCriteriaSource):
            client.whole_system_search(["name=Peter"], query=SearchParams())

    def test_search_by_query_uses_hint(self, client, requests_mock):
        requests_mock.get("http://x/Observation/_search", json=make_bundle())
        query = SearchParams(resource_type="Observation").where("subject=Patient/example").limit_to(3)
        client.search_by_query(query)
        assert requests_mock.last_request.url == "http://x/Observation/_search?subject=Patient/example&_count=3"

    def test_search_by_query_explicit_type_wins(self, client, requests_mock):
        requests_mock.get("http://x/Patient/_search", json=make_bundle())
        client.search_by_query(SearchParams(resource_type="Observation").where("name=Peter"), "Patient")
        assert requests_mock.last_request.url == "http://x/Patient/_search?name=Peter"

    def test_search_by_query_whole_system(self, client, requests_mock):
        requests_mock.get("http://x/_search", json=make_bundle())
        client.search_by_query(SearchParams().where("_text=cancer"))
        assert requests_mock.last_request.url == "http://x/_search?_text=cancer"

    @pytest.mark.parametrize("query", [["name=Peter"], "name=Peter", {"name": "Peter"}, None])
    def test_search_by_query_rejects_other_objects(self, client, requests_mock, query):
        calls = requests_mock.call_count
        with pytest.raises(InvalidQueryObject):
            client.search_by_query(query)
        assert requests_mock.call_count == calls


class TestOperations:
    def test_graphql(self, client, requests_mock):
        requests_mock.get("http://x/Patient/example/$graphql", json={"data": {"id": "example"}})
        assert client.graphql("{id}", "Patient/example") == {"data": {"id": "example"}}
        assert requests_mock.last_request.url == "http://x/Patient/example/$graphql?query=%7Bid%7D"

    def test_operation(self, client, requests_mock):
        requests_mock.get("http://x/Patient/example/$everything", json=make_bundle([PATIENT]))
        client.operation("everything", "Patient", "example", {"_count": 10})
        assert requests_mock.last_request.url == "http://x/Patient/example/$everything?_count=10"

    def test_operation_keywords_skip_none(self, client, requests_mock):
        requests_mock.get("http://x/Patient/example/$everything", json=make_bundle([PATIENT]))
        client.operation(
            name="everything",
            resource_type="Patient",
            resource_id="example",
            parameters={"start": None, "_count": 10},
        )
        assert requests_mock.last_request.url == "http://x/Patient/example/$everything?_count=10"

    def test_system_operation(self, client, requests_mock):
        requests_mock.get("http://x/$meta", json={"resourceType": "Parameters"})
        assert client.operation("$meta") == {"resourceType": "Parameters"}

    def test_update(self, client, requests_mock):
        updated = {**PATIENT, "meta": {"versionId": "2"}}
        requests_mock.put("http://x/Patient/example", json=updated)
        assert client.update(PATIENT) == updated
        assert requests_mock.last_request.method == "PUT"
        assert requests_mock.last_request.json() == PATIENT

    def test_update_requires_id(self, client, requests_mock):
        calls = requests_mock.call_count
        with pytest.raises(InvalidResource):
            client.update({"resourceType": "Patient"})
        assert requests_mock.call_count == calls


class TestContinue:
    def test_end_of_pages(self, client):
        assert client.continue_(make_bundle(self_url="http://x/Patient/_search")) is None

    def test_not_a_bundle(self, client, requests_mock):
        calls = requests_mock.call_count
        with pytest.raises(NotABundle):
            client.continue_(PATIENT)
        assert requests_mock.call_count == calls

    def test_search_then_continue(self, client, requests_mock):
        page_one = make_bundle([PATIENT], next_url="http://x/Patient/_search?page=2")
        page_two = make_bundle([{"resourceType": "Patient", "id": "other"}])
        requests_mock.get("http://x/Patient/_search?name=Peter&address-postalcode=3999", json=page_one)
        requests_mock.get("http://x/Patient/_search?page=2", json=page_two)

        bundle = client.search("Patient", ["name=Peter", "address-postalcode=3999"])
        assert requests_mock.last_request.url == "http://x/Patient/_search?name=Peter&address-postalcode=3999"
        assert bundle == page_one

        bundle = client.continue_(bundle)
        assert requests_mock.last_request.url == "http://x/Patient/_search?page=2"
        assert bundle == page_two

        assert client.continue_(bundle) is None

    def test_paging_loop(self, client, requests_mock):
        requests_mock.get("http://x/Patient/_search", json=make_bundle([PATIENT], next_url="http://x/page/2"))
        requests_mock.get("http://x/page/2", json=make_bundle([PATIENT], next_url="http://x/page/3"))
        requests_mock.get("http://x/page/3", json=make_bundle([PATIENT]))

        pages = 0
        bundle = client.search("Patient")
        while bundle is not None:
            pages += 1
            bundle = client.continue_(bundle)
        assert pages == 3


class TestDescribe:
    def test_describe(self, client):
        assert client.describe() == "Endpoint: http://x/"
        assert str(client) == "Endpoint: http://x/"

    def test_context_manager_closes_session(self, client, monkeypatch):
        closed = []
        monkeypatch.setattr(client.transport.session, "close", lambda: closed.append(True))
        with client as c:
            assert c is client
        assert closed == [True]
