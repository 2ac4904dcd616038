"""
Land Matching Engine

Matches customers' land search conditions against listed land parcels:
1. Condition and property models
2. Condition extraction from hearing sheets, reception and negotiation notes
3. Weighted multi-factor match scoring with alert levels
4. Batch matching across all customers and available properties
5. In-memory store for conditions, properties, matches and alerts
"""

from .models import (
    AlertLevel,
    AlertStatus,
    LandAlert,
    LandMatchResult,
    LandProperty,
    LandSearchConditions,
    MatchDetail,
    PropertySource,
    PropertyStatus,
    RoadDirection,
    SearchPriorities,
    ShapePreference,
    TriState,
    UpdateSource,
    create_default_land_conditions,
)
from .matching import LandMatcher, batch_match_land_properties, calculate_land_match
from .extractors import (
    ConditionExtractor,
    HearingSheet,
    HearingSheetExtractor,
    NegotiationNote,
    NegotiationNoteExtractor,
    ReceptionExtractor,
    ReceptionRecord,
    extract_conditions_from_hearing_sheet,
    extract_conditions_from_negotiation,
    extract_conditions_from_reception,
    extract_for_source,
    get_extractor,
    merge_conditions,
)
from .validation import ConditionsValidationError, validate_conditions
from .repository import LandRepository, get_land_repository

__all__ = [
    # Models
    "AlertLevel",
    "AlertStatus",
    "LandAlert",
    "LandMatchResult",
    "LandProperty",
    "LandSearchConditions",
    "MatchDetail",
    "PropertySource",
    "PropertyStatus",
    "RoadDirection",
    "SearchPriorities",
    "ShapePreference",
    "TriState",
    "UpdateSource",
    "create_default_land_conditions",
    # Matching
    "LandMatcher",
    "calculate_land_match",
    "batch_match_land_properties",
    # Extraction
    "ConditionExtractor",
    "HearingSheet",
    "HearingSheetExtractor",
    "NegotiationNote",
    "NegotiationNoteExtractor",
    "ReceptionExtractor",
    "ReceptionRecord",
    "extract_conditions_from_hearing_sheet",
    "extract_conditions_from_negotiation",
    "extract_conditions_from_reception",
    "extract_for_source",
    "get_extractor",
    "merge_conditions",
    # Validation
    "ConditionsValidationError",
    "validate_conditions",
    # Store
    "LandRepository",
    "get_land_repository",
]

__version__ = "1.0"
