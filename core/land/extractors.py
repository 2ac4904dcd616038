"""
Condition Extractors - Derive land search conditions from upstream documents

Each upstream source (hearing sheet, reception desk, negotiation notes) has
its own extractor that turns a raw document into a PARTIAL conditions
update: a dict keyed by LandSearchConditions field names containing only
what could be recognised. Unrecognised text is simply left out.

Updates are applied with ``merge_conditions``, which protects the
decision-relevant fields of manually maintained records.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Final, Optional

from core.land.constants import (
    LAND_BUDGET_RATIO,
    MIN_FAMILY_LAND_AREA,
    TSUBO_PER_PERSON,
    YEN_PER_MAN,
)
from core.land.models import (
    LIST_FIELDS,
    LandSearchConditions,
    RoadDirection,
    SearchPriorities,
    UpdateSource,
    to_snake,
    utc_now,
)
from utils.formatting import round_half_up


logger = logging.getLogger(__name__)


# =============================================================================
# Patterns
# =============================================================================

AREA_SEPARATORS: Final = re.compile(r"[、,・\s]+")
TSUBO_PATTERN: Final = re.compile(r"(\d+)\s*(坪|つぼ)")
STATION_PATTERN: Final = re.compile(r"(駅|えき)[^\d\n]{0,10}?(\d+)\s*(分|ふん)")
FAMILY_SIZE_PATTERN: Final = re.compile(r"(\d+)\s*人")
MUNICIPALITY_PATTERN: Final = re.compile(r"(.*?[都道府県])?(.+?[市区町村])")
MUNICIPALITY_SUFFIX: Final = re.compile(r"[市区町村]$")
AREA_LABEL_PATTERN: Final = re.compile(r"希望\s*(エリア|地域)\s*[:：]?\s*([^\n、]+)")
BUDGET_LABEL_PATTERN: Final = re.compile(r"予算\s*[:：]?\s*(\d+)\s*万")

CORNER_LOT_KEYWORDS: Final[tuple[str, ...]] = ("角地", "かどち")
NEW_DEVELOPMENT_KEYWORDS: Final[tuple[str, ...]] = ("分譲", "新規")
FLAT_LAND_KEYWORDS: Final[tuple[str, ...]] = ("平坦", "フラット")

# Fields an automated source may not overwrite on a manual record
MANUAL_PROTECTED_FIELDS: Final[frozenset[str]] = frozenset({
    "desired_areas",
    "max_price",
    "preferred_land_area",
    "notes",
})

_PROVENANCE_FIELDS: Final[frozenset[str]] = frozenset({"last_updated_from", "last_updated_at"})
_IMMUTABLE_FIELDS: Final[frozenset[str]] = frozenset({"id", "customer_id", "created_at"})


# =============================================================================
# Upstream Documents
# =============================================================================


def _from_camel_dict(cls, data: dict[str, Any]):
    known = {f.name for f in dataclasses.fields(cls)}
    return cls(**{to_snake(k): v for k, v in data.items() if to_snake(k) in known})


@dataclass
class HearingSheet:
    """Answers from the customer hearing sheet."""

    customer_id: str = ""
    desired_area: Optional[str] = None
    desired_location: Optional[str] = None
    budget: Optional[float] = None  # Total household budget in yen
    land_requirements: Optional[str] = None
    family_structure: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HearingSheet":
        return _from_camel_dict(cls, data)


@dataclass
class ReceptionRecord:
    """Entry in the first-visit reception ledger."""

    customer_id: str = ""
    address: Optional[str] = None
    lead_source: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReceptionRecord":
        return _from_camel_dict(cls, data)


@dataclass
class NegotiationNote:
    """Free-text record of a sales meeting."""

    customer_id: str = ""
    content: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NegotiationNote":
        return _from_camel_dict(cls, data)


# =============================================================================
# Text Passes
# =============================================================================


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def _parse_requirement_text(text: str) -> dict[str, Any]:
    """
    Independent keyword passes over free-text land requirements.

    Tsubo size, station walk time, corner lot, new development and flat
    land are each recognised on their own; several may fire.
    """
    found: dict[str, Any] = {}

    tsubo = TSUBO_PATTERN.search(text)
    if tsubo:
        found["preferred_land_area"] = int(tsubo.group(1))

    station = STATION_PATTERN.search(text)
    if station:
        found["station_distance"] = int(station.group(2))

    if _contains_any(text, CORNER_LOT_KEYWORDS):
        found["corner_lot"] = True
    if _contains_any(text, NEW_DEVELOPMENT_KEYWORDS):
        found["new_development"] = True
    if _contains_any(text, FLAT_LAND_KEYWORDS):
        found["flat_land"] = True

    return found


def _parse_labelled_notes(text: str) -> dict[str, Any]:
    """Explicit ``希望エリア: X`` and ``予算: N万`` labels."""
    found: dict[str, Any] = {}

    area = AREA_LABEL_PATTERN.search(text)
    if area:
        found["desired_areas"] = [area.group(2).strip()]

    budget = BUDGET_LABEL_PATTERN.search(text)
    if budget:
        found["max_price"] = int(budget.group(1))

    return found


# =============================================================================
# Extractors
# =============================================================================


class ConditionExtractor(ABC):
    """Turns one kind of upstream document into a partial conditions update."""

    source: UpdateSource

    def extract(self, document: Any) -> dict[str, Any]:
        """
        Extract a partial update and stamp its provenance.

        Args:
            document: Source document (dataclass or camelCase dict).

        Returns:
            Dict of LandSearchConditions field values, always including
            ``last_updated_from`` and ``last_updated_at``.
        """
        if isinstance(document, dict):
            document = self.parse(document)

        update = self._extract(document)
        update["last_updated_from"] = self.source
        update["last_updated_at"] = utc_now()

        logger.debug(
            "Extracted %s from %s for customer %s",
            sorted(k for k in update if k not in _PROVENANCE_FIELDS),
            self.source.value,
            getattr(document, "customer_id", None),
        )
        return update

    @abstractmethod
    def parse(self, data: dict[str, Any]) -> Any:
        """Build the source document from its JSON shape."""

    @abstractmethod
    def _extract(self, document: Any) -> dict[str, Any]:
        """Source-specific extraction, without provenance fields."""


class HearingSheetExtractor(ConditionExtractor):
    """
    Hearing sheet answers.

    - Desired area / location text split on 、 , ・ and whitespace
    - Land budget assumed to be 40% of the total budget, in man
    - Keyword passes over the land requirements
    - Family size fallback of 10 tsubo per person (minimum 40)
    """

    source = UpdateSource.HEARING_SHEET

    def parse(self, data: dict[str, Any]) -> HearingSheet:
        return HearingSheet.from_dict(data)

    def _extract(self, sheet: HearingSheet) -> dict[str, Any]:
        update: dict[str, Any] = {}

        if sheet.desired_area or sheet.desired_location:
            text = f"{sheet.desired_area or ''} {sheet.desired_location or ''}"
            areas = [a.strip() for a in AREA_SEPARATORS.split(text)]
            areas = [a for a in areas if a]
            if areas:
                update["desired_areas"] = areas

        if sheet.budget:
            update["max_price"] = round_half_up(sheet.budget * LAND_BUDGET_RATIO / YEN_PER_MAN)

        if sheet.land_requirements:
            update.update(_parse_requirement_text(sheet.land_requirements))

        if sheet.family_structure and not update.get("preferred_land_area"):
            family = FAMILY_SIZE_PATTERN.search(sheet.family_structure)
            if family:
                size = int(family.group(1))
                update["preferred_land_area"] = max(MIN_FAMILY_LAND_AREA, size * TSUBO_PER_PERSON)

        return update


class ReceptionExtractor(ConditionExtractor):
    """
    Reception desk ledger.

    The current municipality is taken as the desired area (customers
    usually want to stay nearby). An explicit area label in the notes
    overrides it.
    """

    source = UpdateSource.RECEPTION

    def parse(self, data: dict[str, Any]) -> ReceptionRecord:
        return ReceptionRecord.from_dict(data)

    def _extract(self, reception: ReceptionRecord) -> dict[str, Any]:
        update: dict[str, Any] = {}

        if reception.address:
            city = MUNICIPALITY_PATTERN.search(reception.address)
            if city and city.group(2):
                update["desired_areas"] = [MUNICIPALITY_SUFFIX.sub("", city.group(2))]

        if reception.notes:
            update.update(_parse_labelled_notes(reception.notes))

        return update


class NegotiationNoteExtractor(ConditionExtractor):
    """Meeting notes: labelled area/budget plus the requirement keyword passes."""

    source = UpdateSource.NEGOTIATION

    def parse(self, data: dict[str, Any]) -> NegotiationNote:
        return NegotiationNote.from_dict(data)

    def _extract(self, note: NegotiationNote) -> dict[str, Any]:
        if not note.content:
            return {}
        update = _parse_requirement_text(note.content)
        update.update(_parse_labelled_notes(note.content))
        return update


EXTRACTORS: Final[dict[UpdateSource, ConditionExtractor]] = {
    UpdateSource.HEARING_SHEET: HearingSheetExtractor(),
    UpdateSource.RECEPTION: ReceptionExtractor(),
    UpdateSource.NEGOTIATION: NegotiationNoteExtractor(),
}


def get_extractor(source: UpdateSource) -> ConditionExtractor:
    """
    Look up the extractor for an upstream source.

    Raises:
        KeyError: For MANUAL, which has no extractor.
    """
    return EXTRACTORS[UpdateSource(source)]


def extract_for_source(source: UpdateSource, document: Any) -> dict[str, Any]:
    """Run the registered extractor for ``source`` over ``document``."""
    return get_extractor(source).extract(document)


def extract_conditions_from_hearing_sheet(
    sheet: HearingSheet | dict[str, Any],
    existing: Optional[LandSearchConditions] = None,
) -> dict[str, Any]:
    """
    Extract a partial conditions update from a hearing sheet.

    ``existing`` is accepted for callers that pass the current record; it
    does not change the extraction.
    """
    return EXTRACTORS[UpdateSource.HEARING_SHEET].extract(sheet)


def extract_conditions_from_reception(
    reception: ReceptionRecord | dict[str, Any],
) -> dict[str, Any]:
    """Extract a partial conditions update from a reception record."""
    return EXTRACTORS[UpdateSource.RECEPTION].extract(reception)


def extract_conditions_from_negotiation(
    note: NegotiationNote | dict[str, Any],
) -> dict[str, Any]:
    """Extract a partial conditions update from negotiation notes."""
    return EXTRACTORS[UpdateSource.NEGOTIATION].extract(note)


# =============================================================================
# Merge
# =============================================================================


def _union(existing: list, incoming: list) -> list:
    merged = list(existing)
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


def merge_conditions(
    existing: LandSearchConditions,
    updates: dict[str, Any],
) -> LandSearchConditions:
    """
    Apply a partial update to a conditions record.

    Rules:
    - On a MANUAL record, desired_areas / max_price / preferred_land_area /
      notes are never overwritten.
    - None values are ignored.
    - List fields are merged as a set union (existing order first).
    - Everything else replaces the existing value.
    - last_updated_at is always refreshed; last_updated_from only changes
      when the update carries one.

    Args:
        existing: Current record (not modified).
        updates: Partial update, snake_case or camelCase keys.

    Returns:
        A new LandSearchConditions.
    """
    protected = MANUAL_PROTECTED_FIELDS if existing.last_updated_from == UpdateSource.MANUAL else frozenset()
    known = {f.name for f in dataclasses.fields(LandSearchConditions)}

    changes: dict[str, Any] = {}
    new_source = None

    for key, value in updates.items():
        name = to_snake(key)
        if value is None:
            continue
        if name == "last_updated_from":
            new_source = UpdateSource(value)
            continue
        if name in _PROVENANCE_FIELDS or name in _IMMUTABLE_FIELDS:
            continue
        if name not in known:
            logger.warning("Ignoring unknown conditions field '%s'", key)
            continue
        if name in protected:
            logger.debug(
                "Kept manual value of %s for customer %s",
                name,
                existing.customer_id,
            )
            continue

        current = getattr(existing, name)
        if name in LIST_FIELDS and isinstance(value, (list, tuple, set)):
            value = list(value)
            if name == "road_direction":
                current = [d.value for d in current]
                value = [RoadDirection(v).value for v in value]
            changes[name] = _union(current, value)
        elif name == "priorities":
            if isinstance(value, SearchPriorities):
                changes[name] = value
            else:
                changes[name] = dataclasses.replace(current, **value)
        else:
            changes[name] = value

    changes["last_updated_at"] = utc_now()
    if new_source is not None:
        changes["last_updated_from"] = new_source

    return dataclasses.replace(existing, **changes)
