"""
Consistency checks for land search conditions.

Inconsistent ranges are rejected when an operator explicitly saves a
record. Scoring and automated merges tolerate them.
"""

from __future__ import annotations

from typing import Optional

from core.land.models import LandSearchConditions


class ConditionsValidationError(ValueError):
    """Raised when an explicitly saved conditions record is inconsistent."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def _check_positive(errors: list[str], name: str, value: Optional[float]) -> None:
    if value is not None and value <= 0:
        errors.append(f"{name} must be positive")


def _check_non_negative(errors: list[str], name: str, value: Optional[float]) -> None:
    if value is not None and value < 0:
        errors.append(f"{name} must not be negative")


def validate_conditions(conditions: LandSearchConditions) -> list[str]:
    """
    Check a conditions record for inconsistent or impossible values.

    Args:
        conditions: Record to check.

    Returns:
        List of problems; empty when the record is consistent.
    """
    errors: list[str] = []

    for name in ("min_land_area", "max_land_area", "preferred_land_area", "min_price", "max_price"):
        _check_positive(errors, name, getattr(conditions, name))

    for name in (
        "station_distance",
        "school_distance",
        "supermarket_distance",
        "hospital_distance",
        "road_width",
    ):
        _check_non_negative(errors, name, getattr(conditions, name))

    for name in ("building_coverage", "floor_area_ratio"):
        value = getattr(conditions, name)
        if value is not None and value <= 0:
            errors.append(f"{name} must be a positive percentage")

    lower = conditions.min_land_area
    upper = conditions.max_land_area
    preferred = conditions.preferred_land_area

    if lower is not None and upper is not None and lower > upper:
        errors.append("min_land_area must not exceed max_land_area")
    if preferred is not None:
        if lower is not None and preferred < lower:
            errors.append("preferred_land_area must not be below min_land_area")
        if upper is not None and preferred > upper:
            errors.append("preferred_land_area must not exceed max_land_area")

    if (
        conditions.min_price is not None
        and conditions.max_price is not None
        and conditions.min_price > conditions.max_price
    ):
        errors.append("min_price must not exceed max_price")

    return errors
