"""
Data models for land search conditions, land listings and match results.

Conditions and properties are flat records that round-trip through JSON
using camelCase keys (``to_dict`` / ``from_dict``). In memory, fields are
snake_case, enums are ``Enum`` members and timestamps are ``datetime``.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional

from core.land.constants import (
    ALERT_HIGH_THRESHOLD,
    ALERT_MEDIUM_THRESHOLD,
    PRIORITY_DEFAULT,
    PRIORITY_MAX,
    PRIORITY_MIN,
)
from utils.formatting import round_half_up


# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def to_camel(name: str) -> str:
    """``min_land_area`` -> ``minLandArea``."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    """``minLandArea`` -> ``min_land_area``. Snake names pass through."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# =============================================================================
# Enums
# =============================================================================


class UpdateSource(Enum):
    """
    Upstream process that last wrote a conditions record.

    MANUAL takes precedence: automated sources cannot overwrite the
    protected fields of a manually maintained record.
    """

    HEARING_SHEET = "hearing_sheet"
    RECEPTION = "reception"
    NEGOTIATION = "negotiation"
    MANUAL = "manual"


class PropertySource(Enum):
    """Listing site or channel a property came from."""

    REINS = "reins"
    SUUMO = "suumo"
    ATHOME = "athome"
    MANUAL = "manual"
    OTHER = "other"


class PropertyStatus(Enum):
    """Sales status of a listing. Only AVAILABLE takes part in matching."""

    AVAILABLE = "available"
    NEGOTIATING = "negotiating"
    SOLD = "sold"
    WITHDRAWN = "withdrawn"


class ShapePreference(Enum):
    RECTANGULAR = "rectangular"
    IRREGULAR = "irregular"
    ANY = "any"


class RoadDirection(Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"


class AlertLevel(Enum):
    """
    Notification urgency derived from a match score.

    >= 70: High
    50-69: Medium
    < 50: Low
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: int) -> "AlertLevel":
        if score >= ALERT_HIGH_THRESHOLD:
            return cls.HIGH
        if score >= ALERT_MEDIUM_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


class AlertStatus(Enum):
    """Follow-up state of a land alert."""

    NEW = "new"
    NOTIFIED = "notified"
    CONTACTED = "contacted"
    DISMISSED = "dismissed"


class TriState(Enum):
    """
    Three-valued preference for yes/no lot attributes.

    REQUIRED: the attribute must be present
    EXCLUDED: the attribute must be absent
    ANY: don't care
    """

    REQUIRED = "required"
    EXCLUDED = "excluded"
    ANY = "any"

    @classmethod
    def from_value(cls, value: Any) -> "TriState":
        """Convert ``True`` / ``False`` / ``None`` (or a TriState) to a TriState."""
        if isinstance(value, TriState):
            return value
        if value is None:
            return cls.ANY
        if isinstance(value, bool):
            return cls.REQUIRED if value else cls.EXCLUDED
        return cls(value)

    def to_value(self) -> Optional[bool]:
        """JSON form: ``true`` / ``false`` / ``null``."""
        if self is TriState.REQUIRED:
            return True
        if self is TriState.EXCLUDED:
            return False
        return None


TRI_STATE_FIELDS: Final[tuple[str, ...]] = (
    "corner_lot",
    "new_development",
    "flat_land",
    "existing_building",
)

LIST_FIELDS: Final[tuple[str, ...]] = (
    "desired_areas",
    "excluded_areas",
    "road_direction",
    "zoning_types",
)


# =============================================================================
# Search Conditions
# =============================================================================


@dataclass
class SearchPriorities:
    """Weights (1-5) that scale each matching category."""

    area: int = PRIORITY_DEFAULT
    price: int = PRIORITY_DEFAULT
    size: int = PRIORITY_DEFAULT
    access: int = PRIORITY_DEFAULT
    environment: int = PRIORITY_DEFAULT

    def __post_init__(self):
        """Validate every priority is an integer in range."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"priority '{f.name}' must be an integer, got {value!r}")
            if not PRIORITY_MIN <= value <= PRIORITY_MAX:
                raise ValueError(
                    f"priority '{f.name}' must be between {PRIORITY_MIN} and {PRIORITY_MAX}"
                )

    @classmethod
    def clamped(cls, **values: Any) -> "SearchPriorities":
        """Build priorities from slider input, rounding and clamping into range."""
        clean = {}
        for name, value in values.items():
            clean[name] = max(PRIORITY_MIN, min(PRIORITY_MAX, round_half_up(float(value))))
        return cls(**clean)

    def to_dict(self) -> dict[str, int]:
        return {
            "area": self.area,
            "price": self.price,
            "size": self.size,
            "access": self.access,
            "environment": self.environment,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchPriorities":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class LandSearchConditions:
    """
    A customer's land search criteria.

    Nullable numbers mean "no constraint". Areas are in tsubo, prices in
    man (10,000 yen), distances in walking minutes ("at most"), road width
    in metres ("at least").
    """

    id: str
    customer_id: str

    # Area
    desired_areas: list[str] = field(default_factory=list)
    excluded_areas: list[str] = field(default_factory=list)

    # Size (tsubo)
    min_land_area: Optional[float] = None
    max_land_area: Optional[float] = None
    preferred_land_area: Optional[float] = None

    # Price (man)
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    # Access (minutes)
    station_distance: Optional[int] = None
    school_distance: Optional[int] = None
    supermarket_distance: Optional[int] = None
    hospital_distance: Optional[int] = None

    # Road / lot
    road_width: Optional[float] = None
    road_direction: list[RoadDirection] = field(default_factory=list)
    corner_lot: TriState = TriState.ANY
    zoning_types: list[str] = field(default_factory=list)
    building_coverage: Optional[float] = None
    floor_area_ratio: Optional[float] = None
    shape_preference: ShapePreference = ShapePreference.ANY
    flat_land: TriState = TriState.ANY
    new_development: TriState = TriState.ANY
    existing_building: TriState = TriState.ANY

    priorities: SearchPriorities = field(default_factory=SearchPriorities)
    notes: str = ""

    # Provenance
    last_updated_from: UpdateSource = UpdateSource.MANUAL
    last_updated_at: datetime = field(default_factory=utc_now)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        """Coerce loosely typed input (bools, strings, dicts) into model types."""
        for name in TRI_STATE_FIELDS:
            setattr(self, name, TriState.from_value(getattr(self, name)))
        self.road_direction = [RoadDirection(d) for d in self.road_direction]
        self.shape_preference = ShapePreference(self.shape_preference)
        self.last_updated_from = UpdateSource(self.last_updated_from)
        if isinstance(self.priorities, dict):
            self.priorities = SearchPriorities.from_dict(self.priorities)
        self.last_updated_at = parse_timestamp(self.last_updated_at)
        self.created_at = parse_timestamp(self.created_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase JSON shape."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, TriState):
                value = value.to_value()
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, SearchPriorities):
                value = value.to_dict()
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, list):
                value = [v.value if isinstance(v, Enum) else v for v in value]
            data[to_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LandSearchConditions":
        """Build from a JSON dict (camelCase or snake_case keys)."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = to_snake(key)
            if name in known:
                kwargs[name] = value
        for name in ("last_updated_at", "created_at"):
            if kwargs.get(name) is None:
                kwargs.pop(name, None)
        return cls(**kwargs)


def create_default_land_conditions(customer_id: str) -> LandSearchConditions:
    """
    Create an empty conditions record for a customer.

    Every filter is unset, priorities are all 3, and the record is marked
    as manually maintained.
    """
    now = utc_now()
    return LandSearchConditions(
        id=_new_id("lc"),
        customer_id=customer_id,
        priorities=SearchPriorities(),
        last_updated_from=UpdateSource.MANUAL,
        last_updated_at=now,
        created_at=now,
    )


# =============================================================================
# Land Property
# =============================================================================


@dataclass
class LandProperty:
    """A listed land parcel from an external source."""

    id: str
    name: str
    address: str
    area: str  # Neighbourhood label, distinct from address
    land_area: float  # tsubo
    price: float  # man

    price_per_tsubo: Optional[float] = None

    # Access
    nearest_station: str = ""
    station_distance: Optional[int] = None
    school_distance: Optional[int] = None
    supermarket_distance: Optional[int] = None
    hospital_distance: Optional[int] = None

    # Road / lot
    road_width: Optional[float] = None
    road_direction: Optional[str] = None
    corner_lot: bool = False
    zoning_type: Optional[str] = None
    building_coverage: Optional[float] = None
    floor_area_ratio: Optional[float] = None
    shape: Optional[str] = None
    flat_land: Optional[bool] = None
    new_development: bool = False
    existing_building: bool = False

    # Listing metadata
    source: PropertySource = PropertySource.MANUAL
    source_url: Optional[str] = None
    listed_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    status: PropertyStatus = PropertyStatus.AVAILABLE
    notes: str = ""

    def __post_init__(self):
        self.source = PropertySource(self.source)
        self.status = PropertyStatus(self.status)
        self.listed_at = parse_timestamp(self.listed_at)
        self.updated_at = parse_timestamp(self.updated_at)
        if not self.price_per_tsubo and self.land_area:
            self.price_per_tsubo = round(self.price / self.land_area, 1)

    @property
    def is_available(self) -> bool:
        return self.status == PropertyStatus.AVAILABLE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            data[to_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LandProperty":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = to_snake(key)
            if name in known:
                kwargs[name] = value
        for name in ("listed_at", "updated_at"):
            if kwargs.get(name) is None:
                kwargs.pop(name, None)
        return cls(**kwargs)


# =============================================================================
# Match Results
# =============================================================================


@dataclass
class MatchDetail:
    """One category's contribution to a match score."""

    category: str
    label: str
    score: float
    max_score: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "score": self.score,
            "maxScore": self.max_score,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchDetail":
        return cls(
            category=data["category"],
            label=data["label"],
            score=data["score"],
            max_score=data.get("maxScore", data.get("max_score")),
            reason=data.get("reason", ""),
        )


@dataclass
class LandMatchResult:
    """
    Score of one property against one customer's conditions.

    ``notified_at`` and ``assigned_to`` are always None from the engine;
    the alert workflow fills them in.
    """

    property_id: str
    customer_id: str
    match_score: int  # 0-100
    match_details: list[MatchDetail] = field(default_factory=list)
    alert_level: AlertLevel = AlertLevel.LOW
    notified_at: Optional[datetime] = None
    assigned_to: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "propertyId": self.property_id,
            "customerId": self.customer_id,
            "matchScore": self.match_score,
            "matchDetails": [d.to_dict() for d in self.match_details],
            "alertLevel": self.alert_level.value,
            "notifiedAt": format_timestamp(self.notified_at),
            "assignedTo": self.assigned_to,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LandMatchResult":
        return cls(
            property_id=data["propertyId"],
            customer_id=data["customerId"],
            match_score=data["matchScore"],
            match_details=[MatchDetail.from_dict(d) for d in data.get("matchDetails", [])],
            alert_level=AlertLevel(data.get("alertLevel", "low")),
            notified_at=parse_timestamp(data.get("notifiedAt")),
            assigned_to=data.get("assignedTo"),
        )


@dataclass
class LandAlert:
    """
    A high-scoring match awaiting staff follow-up.

    Carries snapshots of the property and the customer's conditions
    taken when the match was made.
    """

    id: str
    match_result: LandMatchResult
    land: LandProperty
    conditions: LandSearchConditions
    customer_name: str = "不明"
    created_at: datetime = field(default_factory=utc_now)
    status: AlertStatus = AlertStatus.NEW
    notified_at: Optional[datetime] = None
    contacted_at: Optional[datetime] = None
    contacted_by: Optional[str] = None
    notes: str = ""

    @property
    def customer_id(self) -> str:
        return self.match_result.customer_id

    @property
    def property_id(self) -> str:
        return self.match_result.property_id

    @classmethod
    def create(
        cls,
        match_result: LandMatchResult,
        land: LandProperty,
        conditions: LandSearchConditions,
        customer_name: Optional[str] = None,
    ) -> "LandAlert":
        """
        Create a NEW alert for a match.

        Args:
            match_result: The high-level match
            land: Snapshot of the matched property
            conditions: Snapshot of the customer's conditions
            customer_name: Display name (default "不明")
        """
        return cls(
            id=_new_id("alert"),
            match_result=match_result,
            land=land,
            conditions=conditions,
            customer_name=customer_name or "不明",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "matchResult": self.match_result.to_dict(),
            "property": self.land.to_dict(),
            "conditions": self.conditions.to_dict(),
            "customerId": self.customer_id,
            "propertyId": self.property_id,
            "customerName": self.customer_name,
            "createdAt": self.created_at.isoformat(),
            "status": self.status.value,
            "notifiedAt": format_timestamp(self.notified_at),
            "contactedAt": format_timestamp(self.contacted_at),
            "contactedBy": self.contacted_by,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LandAlert":
        return cls(
            id=data["id"],
            match_result=LandMatchResult.from_dict(data["matchResult"]),
            land=LandProperty.from_dict(data["property"]),
            conditions=LandSearchConditions.from_dict(data["conditions"]),
            customer_name=data.get("customerName", "不明"),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
            status=AlertStatus(data.get("status", "new")),
            notified_at=parse_timestamp(data.get("notifiedAt")),
            contacted_at=parse_timestamp(data.get("contactedAt")),
            contacted_by=data.get("contactedBy"),
            notes=data.get("notes", ""),
        )
