"""
Unit tests for the FHIR mapping helpers (no database).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from records_api.core.fhir import (
    appointment_update_values,
    bundle_entry,
    codeable_concepts_contain,
    create_bundle,
    create_operation_outcome,
    format_instant,
    human_name_matches,
    organization_to_db,
    parse_date,
    parse_instant,
    patient_to_db,
    search_bundle,
)


class TestEnvelopes:
    def test_operation_outcome(self):
        outcome = create_operation_outcome("error", "not-found", "Patient not found")
        assert outcome["resourceType"] == "OperationOutcome"
        assert outcome["issue"] == [
            {"severity": "error", "code": "not-found", "diagnostics": "Patient not found"}
        ]
        assert "lastUpdated" in outcome["meta"]

    def test_operation_outcome_details(self):
        outcome = create_operation_outcome("error", "exception", "boom", {"text": "trace"})
        assert outcome["issue"][0]["details"] == {"text": "trace"}

    def test_bundle_total_defaults_to_entries(self):
        bundle = create_bundle("searchset", [{"resource": {}}, {"resource": {}}])
        assert bundle["total"] == 2
        assert create_bundle("searchset", [], total=10)["total"] == 10

    def test_bundle_entry_full_url(self):
        entry = bundle_entry("http://host/fhir/", {"resourceType": "Patient", "id": "abc"})
        assert entry["fullUrl"] == "http://host/fhir/Patient/abc"

    def test_search_bundle(self):
        resources = [{"resourceType": "Organization", "id": "1"}]
        bundle = search_bundle("http://host/fhir", resources)
        assert bundle["type"] == "searchset"
        assert bundle["entry"][0]["resource"] is resources[0]


class TestScalars:
    def test_parse_instant_normalizes_to_utc(self):
        parsed = parse_instant("2025-03-12T01:00:00+03:00")
        assert parsed == datetime(2025, 3, 11, 22, 0, tzinfo=timezone.utc)

    def test_parse_instant_zulu_and_naive(self):
        assert parse_instant("2025-03-10T09:00:00Z").tzinfo == timezone.utc
        assert parse_instant("2025-03-10T09:00:00").tzinfo == timezone.utc
        assert parse_instant(None) is None

    def test_parse_instant_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_instant("tomorrow")

    def test_parse_date(self):
        assert parse_date("1985-05-15") == date(1985, 5, 15)
        assert parse_date("") is None
        with pytest.raises(ValueError):
            parse_date("15/05/1985")

    def test_format_instant_assumes_utc_for_naive(self):
        assert format_instant(datetime(2025, 1, 1, 12, 0)) == "2025-01-01T12:00:00+00:00"
        aware = datetime(2025, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_instant(aware) == "2025-01-01T12:00:00+02:00"


class TestMatching:
    NAMES = [{"family": "Smith", "given": ["John", "Quincy"]}, {"text": "Johnny"}]

    @pytest.mark.parametrize("term", ["smith", "SMI", "quin", "john"])
    def test_name_matches(self, term):
        assert human_name_matches(self.NAMES, term)

    def test_name_no_match(self):
        assert not human_name_matches(self.NAMES, "jones")
        assert not human_name_matches(None, "smith")
        assert not human_name_matches(["not-a-dict"], "smith")

    def test_codeable_concepts(self):
        concepts = [{"coding": [{"system": "s", "code": "123"}]}]
        assert codeable_concepts_contain(concepts, "123")
        assert not codeable_concepts_contain(concepts, "456")

    def test_qualification_codes(self):
        qualifications = [{"code": {"coding": [{"code": "394579002"}]}}]
        assert codeable_concepts_contain(qualifications, "394579002")
        assert not codeable_concepts_contain([], "394579002")


class TestResourceMapping:
    def test_patient_defaults(self):
        values = patient_to_db({"resourceType": "Patient", "name": [{"family": "Smith"}]})
        assert values["active"] is True
        assert values["birth_date"] is None
        assert values["telecom"] == []

    def test_organization_identifier_generated_when_missing(self):
        values = organization_to_db({"name": "Clinic"})
        uuid.UUID(values["identifier"])
        assert values["type"] is None

    def test_organization_first_identifier_and_type(self):
        values = organization_to_db(
            {
                "name": "Clinic",
                "identifier": [{"value": "c-1"}, {"value": "c-2"}],
                "type": [{"text": "clinic"}],
            }
        )
        assert values["identifier"] == "c-1"
        assert values["type"] == "clinic"

    def test_appointment_partial_update_skips_absent_fields(self):
        values = appointment_update_values(
            {"status": "arrived", "description": None, "start": "2025-03-10T10:00:00Z"}
        )
        assert values == {
            "status": "arrived",
            "start": datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc),
        }
