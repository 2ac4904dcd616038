"""
Land Matching Engine - Core Business Logic

This package provides the land matching pipeline:
1. Conditions (per-customer search criteria with provenance)
2. Extraction (hearing sheet, reception and negotiation documents)
3. Scoring (weighted categories, 0-100 with alert level)
4. Batch matching and alert follow-up
"""

from .land import (
    LandMatcher,
    LandProperty,
    LandRepository,
    LandSearchConditions,
    batch_match_land_properties,
    calculate_land_match,
    get_land_repository,
)

__all__ = [
    "LandMatcher",
    "LandProperty",
    "LandRepository",
    "LandSearchConditions",
    "batch_match_land_properties",
    "calculate_land_match",
    "get_land_repository",
]
