"""
Tests for condition extraction and merging

Tests cover:
- Hearing sheet: area splitting, land budget, requirement keywords, family size
- Reception: municipality from address, labelled notes
- Negotiation notes
- Provenance stamping
- Merge rules: manual protection, list union, None handling
"""

import pytest

from core.land import (
    HearingSheet,
    LandSearchConditions,
    NegotiationNote,
    ReceptionRecord,
    RoadDirection,
    SearchPriorities,
    TriState,
    UpdateSource,
    extract_conditions_from_hearing_sheet,
    extract_conditions_from_negotiation,
    extract_conditions_from_reception,
    extract_for_source,
    get_extractor,
    merge_conditions,
)
from core.land.extractors import ReceptionExtractor


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def manual_conditions():
    return LandSearchConditions(
        id="lc-1",
        customer_id="cust-1",
        desired_areas=["箕面市"],
        max_price=3000,
        preferred_land_area=45,
        notes="担当者メモ",
        last_updated_from=UpdateSource.MANUAL,
    )


@pytest.fixture
def automated_conditions():
    return LandSearchConditions(
        id="lc-2",
        customer_id="cust-2",
        desired_areas=["箕面市"],
        max_price=3000,
        last_updated_from=UpdateSource.RECEPTION,
    )


def _without_provenance(update):
    return {k: v for k, v in update.items() if k not in ("last_updated_from", "last_updated_at")}


# =============================================================================
# Test: Hearing Sheet
# =============================================================================


class TestHearingSheetExtraction:

    def test_full_sheet(self):
        sheet = HearingSheet(
            customer_id="cust-1",
            desired_area="豊中市、吹田市",
            budget=50_000_000,
            land_requirements="50坪程度、駅から徒歩10分以内、角地希望",
        )

        update = extract_conditions_from_hearing_sheet(sheet)

        assert update["desired_areas"] == ["豊中市", "吹田市"]
        assert update["max_price"] == 2000
        assert update["preferred_land_area"] == 50
        assert update["station_distance"] == 10
        assert update["corner_lot"] is True
        assert "new_development" not in update

    def test_area_and_location_combined(self):
        sheet = HearingSheet(desired_area="豊中市・池田市", desired_location="箕面市 吹田市")

        update = extract_conditions_from_hearing_sheet(sheet)

        assert update["desired_areas"] == ["豊中市", "池田市", "箕面市", "吹田市"]

    def test_land_budget_is_forty_percent_in_man(self):
        update = extract_conditions_from_hearing_sheet(HearingSheet(budget=36_250_000))

        assert update["max_price"] == 1450

    def test_keywords_fire_independently(self):
        sheet = HearingSheet(land_requirements="新規分譲地で平坦な土地、60つぼ")

        update = extract_conditions_from_hearing_sheet(sheet)

        assert update["new_development"] is True
        assert update["flat_land"] is True
        assert update["preferred_land_area"] == 60
        assert "corner_lot" not in update

    @pytest.mark.parametrize("family,expected", [
        ("5人家族", 50),
        ("4人家族", 40),
        ("3人", 40),
        ("6 人", 60),
    ])
    def test_family_size_fallback(self, family, expected):
        update = extract_conditions_from_hearing_sheet(HearingSheet(family_structure=family))

        assert update["preferred_land_area"] == expected

    def test_explicit_tsubo_beats_family_size(self):
        sheet = HearingSheet(land_requirements="45坪", family_structure="6人家族")

        assert extract_conditions_from_hearing_sheet(sheet)["preferred_land_area"] == 45

    def test_empty_sheet_only_stamps_provenance(self):
        update = extract_conditions_from_hearing_sheet(HearingSheet(customer_id="cust-1"))

        assert _without_provenance(update) == {}
        assert update["last_updated_from"] == UpdateSource.HEARING_SHEET
        assert update["last_updated_at"] is not None

    def test_accepts_camel_case_dict(self):
        update = extract_conditions_from_hearing_sheet({
            "customerId": "cust-1",
            "desiredArea": "吹田市",
            "landRequirements": "駅徒歩7分",
            "unknownField": "ignored",
        })

        assert update["desired_areas"] == ["吹田市"]
        assert update["station_distance"] == 7


# =============================================================================
# Test: Reception
# =============================================================================


class TestReceptionExtraction:

    def test_municipality_from_address(self):
        record = ReceptionRecord(customer_id="cust-1", address="大阪府豊中市xx町1-2-3")

        update = extract_conditions_from_reception(record)

        assert update["desired_areas"] == ["豊中"]
        assert update["last_updated_from"] == UpdateSource.RECEPTION

    def test_address_without_prefecture(self):
        update = extract_conditions_from_reception(ReceptionRecord(address="吹田市千里山西"))

        assert update["desired_areas"] == ["吹田"]

    def test_labelled_notes(self):
        record = ReceptionRecord(notes="希望エリア：吹田市、予算：3000万")

        update = extract_conditions_from_reception(record)

        assert update["desired_areas"] == ["吹田市"]
        assert update["max_price"] == 3000

    def test_labelled_area_overrides_address(self):
        record = ReceptionRecord(address="大阪府豊中市xx町", notes="希望地域: 池田市")

        assert extract_conditions_from_reception(record)["desired_areas"] == ["池田市"]

    def test_unrecognised_text_is_ignored(self):
        record = ReceptionRecord(address="住所不明", notes="特になし")

        assert _without_provenance(extract_conditions_from_reception(record)) == {}


# =============================================================================
# Test: Negotiation Notes
# =============================================================================


class TestNegotiationExtraction:

    def test_labels_and_keywords(self):
        note = NegotiationNote(
            customer_id="cust-1",
            content="希望エリア: 箕面市\n予算: 2800万\n南向き、角地、60坪くらい",
        )

        update = extract_conditions_from_negotiation(note)

        assert update["desired_areas"] == ["箕面市"]
        assert update["max_price"] == 2800
        assert update["preferred_land_area"] == 60
        assert update["corner_lot"] is True
        assert update["last_updated_from"] == UpdateSource.NEGOTIATION

    def test_empty_note(self):
        assert _without_provenance(extract_conditions_from_negotiation(NegotiationNote())) == {}


# =============================================================================
# Test: Extractor Registry
# =============================================================================


class TestExtractorRegistry:

    def test_lookup_by_source(self):
        assert isinstance(get_extractor(UpdateSource.RECEPTION), ReceptionExtractor)
        assert isinstance(get_extractor("reception"), ReceptionExtractor)

    def test_manual_has_no_extractor(self):
        with pytest.raises(KeyError):
            get_extractor(UpdateSource.MANUAL)

    def test_extract_for_source(self):
        update = extract_for_source(UpdateSource.NEGOTIATION, {"content": "予算 2500万"})

        assert update["max_price"] == 2500


# =============================================================================
# Test: Merge
# =============================================================================


class TestMergeConditions:

    def test_manual_record_keeps_protected_fields(self, manual_conditions):
        update = extract_conditions_from_hearing_sheet(HearingSheet(
            desired_area="豊中市",
            budget=50_000_000,
            land_requirements="60坪 角地",
        ))

        merged = merge_conditions(manual_conditions, update)

        assert merged.desired_areas == ["箕面市"]
        assert merged.max_price == 3000
        assert merged.preferred_land_area == 45
        assert merged.notes == "担当者メモ"
        assert merged.corner_lot is TriState.REQUIRED
        assert merged.last_updated_from == UpdateSource.HEARING_SHEET

    def test_automated_record_unions_lists(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {
            "desired_areas": ["豊中市", "箕面市"],
            "max_price": 2000,
        })

        assert merged.desired_areas == ["箕面市", "豊中市"]
        assert merged.max_price == 2000

    def test_zoning_types_union_without_duplicates(self, automated_conditions):
        first = merge_conditions(automated_conditions, {"zoning_types": ["x"]})

        merged = merge_conditions(first, {"zoning_types": ["y", "x"]})

        assert sorted(merged.zoning_types) == ["x", "y"]

    def test_none_values_are_ignored(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"max_price": None})

        assert merged.max_price == 3000

    def test_returns_new_record(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"station_distance": 12})

        assert merged is not automated_conditions
        assert automated_conditions.station_distance is None
        assert merged.station_distance == 12
        assert merged.id == automated_conditions.id
        assert merged.created_at == automated_conditions.created_at

    def test_timestamp_refreshed_source_kept_without_provenance(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"road_width": 4})

        assert merged.last_updated_from == UpdateSource.RECEPTION
        assert merged.last_updated_at >= automated_conditions.last_updated_at

    def test_camel_case_keys(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"excludedAreas": ["工業地域"]})

        assert merged.excluded_areas == ["工業地域"]

    def test_road_direction_union(self, automated_conditions):
        first = merge_conditions(automated_conditions, {"road_direction": ["south"]})
        second = merge_conditions(first, {"road_direction": ["south", "east"]})

        assert second.road_direction == [RoadDirection.SOUTH, RoadDirection.EAST]

    def test_partial_priorities(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"priorities": {"price": 5}})

        assert merged.priorities == SearchPriorities(price=5)

    def test_identity_fields_not_overwritten(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"id": "other", "customer_id": "other"})

        assert merged.id == "lc-2"
        assert merged.customer_id == "cust-2"

    def test_unknown_fields_logged_and_skipped(self, automated_conditions, caplog):
        merged = merge_conditions(automated_conditions, {"favouriteColour": "blue"})

        assert not hasattr(merged, "favourite_colour")
        assert "favouriteColour" in caplog.text

    def test_inconsistent_merge_is_tolerated(self, automated_conditions):
        merged = merge_conditions(automated_conditions, {"min_price": 5000})

        assert merged.min_price == 5000
        assert merged.max_price == 3000
