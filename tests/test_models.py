from __future__ import annotations

import pytest

from easydrive.exceptions import ParseError, UnknownFieldError
from easydrive.models import (
    Coordinates,
    ExtractedRecord,
    SelectedFile,
    format_file_size,
    schema_paths,
    to_text,
)


# =========================================================================
# 1. Record initialization
# =========================================================================


class TestFromOutput:
    def test_missing_keys_become_empty_strings(self):
        record = ExtractedRecord.from_output({"vehicle": {"vin": "1HGCM"}})
        assert record.vehicle.vin == "1HGCM"
        for section, key in schema_paths():
            if (section, key) != ("vehicle", "vin"):
                assert record.get_field(section, key) == ""

    def test_empty_output_is_total(self):
        record = ExtractedRecord.from_output({})
        assert all(record.get_field(s, k) == "" for s, k in schema_paths())
        assert set(record.to_dict()) == {
            "vehicle",
            "selling_dealership",
            "buying_dealership",
            "pickup_location",
            "dropoff_location",
            "transaction",
            "authorization",
            "dealer_notes",
        }

    def test_idempotent(self):
        raw = {
            "vehicle": {"vin": "1HGCM", "year": 2019, "odometer_km": 45210.0},
            "drop_off_location": {"address": "5 Rue Peel, Montreal", "lat": 45.5, "lng": "-73.57"},
            "dealer_notes": "Keys at front desk",
        }
        first = ExtractedRecord.from_output(raw)
        second = ExtractedRecord.from_output(raw)
        assert first == second
        assert ExtractedRecord.from_output(first.to_dict()) == first

    def test_numbers_are_stored_as_text(self):
        record = ExtractedRecord.from_output(
            {"vehicle": {"year": 2020, "odometer_km": 1234.5}, "dropoff_location": {"lat": 45.0}}
        )
        assert record.vehicle.year == "2020"
        assert record.vehicle.odometer_km == "1234.5"
        assert record.dropoff_location.lat == "45"

    def test_dropoff_alias_spelling(self):
        record = ExtractedRecord.from_output(
            {"drop_off_location": {"name": "Lot B", "address": "12 King St", "phone": "555"}}
        )
        assert record.dropoff_location.name == "Lot B"
        assert record.dropoff_location.address == "12 King St"
        assert record.dropoff_location.phone == "555"

    def test_primary_spelling_wins_per_field(self):
        record = ExtractedRecord.from_output(
            {
                "dropoff_location": {"address": "1 Primary Rd"},
                "drop_off_location": {"address": "2 Alias Rd", "name": "Alias Lot"},
            }
        )
        assert record.dropoff_location.address == "1 Primary Rd"
        assert record.dropoff_location.name == "Alias Lot"

    def test_non_object_section_is_ignored(self):
        record = ExtractedRecord.from_output({"vehicle": "not an object"})
        assert record.vehicle.vin == ""

    def test_rejects_non_object_output(self):
        with pytest.raises(ParseError):
            ExtractedRecord.from_output(None)
        with pytest.raises(ParseError):
            ExtractedRecord.from_output(["vehicle"])


class TestToText:
    def test_conversions(self):
        assert to_text(None) == ""
        assert to_text("abc") == "abc"
        assert to_text(True) == "true"
        assert to_text(False) == "false"
        assert to_text(7) == "7"
        assert to_text(7.0) == "7"
        assert to_text(7.25) == "7.25"


# =========================================================================
# 2. Field edits
# =========================================================================


class TestWithField:
    def test_replaces_only_that_field(self):
        record = ExtractedRecord.from_output({"vehicle": {"vin": "1HGCM", "make": "Honda"}})
        updated = record.with_field("vehicle", "year", "2020")
        assert updated.vehicle.year == "2020"
        assert updated.vehicle.vin == "1HGCM"
        assert updated.vehicle.make == "Honda"
        assert record.vehicle.year == ""

    def test_untouched_sections_are_shared(self):
        record = ExtractedRecord.from_output({})
        updated = record.with_field("vehicle", "year", "2020")
        assert updated.pickup_location is record.pickup_location
        assert updated.dropoff_location is record.dropoff_location

    def test_top_level_text_field(self):
        record = ExtractedRecord.from_output({})
        updated = record.with_field("dealer_notes", None, "Call first")
        assert updated.dealer_notes == "Call first"

    def test_unknown_section(self):
        with pytest.raises(UnknownFieldError):
            ExtractedRecord.from_output({}).with_field("engine", "size", "2.0")

    def test_unknown_key(self):
        with pytest.raises(UnknownFieldError):
            ExtractedRecord.from_output({}).with_field("vehicle", "wheels", "4")

    def test_text_field_rejects_a_key(self):
        with pytest.raises(UnknownFieldError):
            ExtractedRecord.from_output({}).with_field("dealer_notes", "body", "x")


# =========================================================================
# 3. Coordinates
# =========================================================================


class TestDropoffCoordinates:
    def _record(self, address, lat, lng):
        return ExtractedRecord.from_output(
            {"dropoff_location": {"address": address, "lat": lat, "lng": lng}}
        )

    def test_present(self):
        coords = self._record("123 Main St", "45.0", "-73.0").dropoff_coordinates
        assert coords == Coordinates(45.0, -73.0)

    def test_absent_without_address(self):
        assert self._record("   ", "45.0", "-73.0").dropoff_coordinates is None

    def test_absent_when_empty_text(self):
        assert self._record("123 Main St", "", "-73.0").dropoff_coordinates is None

    def test_absent_when_not_finite(self):
        assert self._record("123 Main St", "nan", "-73.0").dropoff_coordinates is None
        assert self._record("123 Main St", "inf", "-73.0").dropoff_coordinates is None
        assert self._record("123 Main St", "north", "-73.0").dropoff_coordinates is None


# =========================================================================
# 4. Selected file
# =========================================================================


class TestSelectedFile:
    def test_from_bytes(self):
        f = SelectedFile.from_bytes("release.pdf", b"x" * 1536)
        assert f.name == "release.pdf"
        assert f.size == "1.5 KB"
        assert f.type == "application/pdf"
        assert f.byte_count == 1536
        assert len(f.id) == 9

    def test_unknown_type(self):
        assert SelectedFile.from_bytes("scan", b"abc").type == "unknown"

    def test_explicit_type_kept(self):
        assert SelectedFile.from_bytes("scan.png", b"abc", "image/png").type == "image/png"

    def test_ids_are_unique(self):
        assert SelectedFile.from_bytes("a.pdf", b"").id != SelectedFile.from_bytes("a.pdf", b"").id


@pytest.mark.parametrize(
    "num_bytes, expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (2 * 1024 * 1024, "2 MB"),
        (3 * 1024 ** 3, "3 GB"),
    ],
)
def test_format_file_size(num_bytes, expected):
    assert format_file_size(num_bytes) == expected
