"""
Land matching engine.

Scores a land property against a customer's search conditions, category by
category. Each category that has something to compare contributes a
weight (derived from the customer's priorities) to the maximum possible
score and between zero and that weight to the total. The final score is
the total as a percentage of the maximum.

Categories:
- Area: desired / excluded area names against the property's area and address
- Price: budget ceiling, with linear decay when over budget
- Size: land area window around the preferred size
- Access: walking minutes to the nearest station
- Road: front road width
- Corner lot / new development: only when explicitly requested
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from core.land.constants import (
    ACCESS_DECAY_MINUTES,
    ACCESS_MULTIPLIER,
    AREA_MULTIPLIER,
    AREA_OUTSIDE_CREDIT,
    BATCH_MIN_SCORE,
    CORNER_MULTIPLIER,
    DEVELOPMENT_MULTIPLIER,
    PRICE_MAX_ONLY_CREDIT,
    PRICE_MULTIPLIER,
    PRICE_OVER_BUDGET_DECAY,
    PRIORITY_SCALE,
    ROAD_MULTIPLIER,
    SIZE_FALLBACK_PREFERRED,
    SIZE_MAX_RATIO,
    SIZE_MIN_CREDIT,
    SIZE_MIN_RATIO,
    SIZE_MULTIPLIER,
)
from core.land.models import (
    AlertLevel,
    LandMatchResult,
    LandProperty,
    LandSearchConditions,
    MatchDetail,
    TriState,
)
from utils.formatting import format_number, round_half_up


logger = logging.getLogger(__name__)


def _clamp(score: float, weight: float) -> float:
    return max(0.0, min(float(weight), score))


class LandMatcher:
    """
    Calculates match scores between search conditions and land properties.

    Category weight = priority x PRIORITY_SCALE x category multiplier.
    Categories whose condition (or property value) is missing are skipped
    entirely: they neither add credit nor count towards the maximum.
    """

    PRIORITY_SCALE = PRIORITY_SCALE

    AREA_MULTIPLIER = AREA_MULTIPLIER
    PRICE_MULTIPLIER = PRICE_MULTIPLIER
    SIZE_MULTIPLIER = SIZE_MULTIPLIER
    ACCESS_MULTIPLIER = ACCESS_MULTIPLIER
    ROAD_MULTIPLIER = ROAD_MULTIPLIER
    CORNER_MULTIPLIER = CORNER_MULTIPLIER
    DEVELOPMENT_MULTIPLIER = DEVELOPMENT_MULTIPLIER

    MIN_BATCH_SCORE = BATCH_MIN_SCORE

    def calculate(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> LandMatchResult:
        """
        Score a single property against one customer's conditions.

        Args:
            conditions: The customer's search conditions.
            land: The candidate property.

        Returns:
            LandMatchResult with the 0-100 score, per-category details
            and alert level. Never raises for missing fields.
        """
        scorers: List[Callable[[LandSearchConditions, LandProperty], Optional[MatchDetail]]] = [
            self._score_area,
            self._score_price,
            self._score_size,
            self._score_access,
            self._score_road,
            self._score_corner_lot,
            self._score_new_development,
        ]

        details = []
        for scorer in scorers:
            detail = scorer(conditions, land)
            if detail is not None:
                details.append(detail)

        total_score = sum(d.score for d in details)
        max_possible = sum(d.max_score for d in details)

        if max_possible > 0:
            match_score = round_half_up(total_score / max_possible * 100)
        else:
            match_score = 0

        return LandMatchResult(
            property_id=land.id,
            customer_id=conditions.customer_id,
            match_score=match_score,
            match_details=details,
            alert_level=AlertLevel.from_score(match_score),
            notified_at=None,
            assigned_to=None,
        )

    def batch(
        self,
        all_conditions: List[LandSearchConditions],
        all_properties: List[LandProperty],
    ) -> List[LandMatchResult]:
        """
        Match every customer's conditions against every available property.

        Args:
            all_conditions: One conditions record per customer.
            all_properties: Candidate properties (any status).

        Returns:
            Results scoring at least MIN_BATCH_SCORE, sorted by score
            descending; ties go to the more recently listed property, then
            keep encounter order.
        """
        available = [p for p in all_properties if p.is_available]
        scored = []
        pairs = 0

        for conditions in all_conditions:
            for land in available:
                pairs += 1
                result = self.calculate(conditions, land)
                if result.match_score >= self.MIN_BATCH_SCORE:
                    scored.append((result, land))

        scored.sort(key=lambda item: (-item[0].match_score, -item[1].listed_at.timestamp()))

        logger.info(
            "Batch matched %d pairs (%d unavailable properties skipped), kept %d results",
            pairs,
            len(all_properties) - len(available),
            len(scored),
        )
        return [result for result, _ in scored]

    # =========================================================================
    # Weights
    # =========================================================================

    def _weight(self, priority: int, multiplier: int) -> int:
        return priority * self.PRIORITY_SCALE * multiplier

    # =========================================================================
    # Category Scorers
    # =========================================================================

    def _score_area(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        """Desired areas give full credit, excluded areas veto."""
        desired = [a for a in conditions.desired_areas if a]
        if not desired:
            return None

        weight = self._weight(conditions.priorities.area, self.AREA_MULTIPLIER)

        def located_in(name: str) -> bool:
            return name in (land.area or "") or name in (land.address or "")

        if any(located_in(a) for a in conditions.excluded_areas if a):
            score, reason = 0.0, "除外エリアに該当"
        elif any(located_in(a) for a in desired):
            score, reason = float(weight), "希望エリア一致"
        else:
            score, reason = weight * AREA_OUTSIDE_CREDIT, "希望エリア外"

        return MatchDetail("area", "エリア", _clamp(score, weight), weight, reason)

    def _score_price(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        """Within budget scores (near) full; over budget decays linearly."""
        max_price = conditions.max_price
        if max_price is None or land.price is None:
            return None

        weight = self._weight(conditions.priorities.price, self.PRICE_MULTIPLIER)
        price = format_number(land.price)

        if land.price <= max_price:
            # A stated minimum means the whole range up to the ceiling is acceptable
            if conditions.min_price is not None:
                score = float(weight)
            else:
                score = weight * PRICE_MAX_ONLY_CREDIT
            reason = f"{price}万円 (予算内)"
        elif max_price > 0:
            over_rate = (land.price - max_price) / max_price
            score = weight * (1 - over_rate * PRICE_OVER_BUDGET_DECAY)
            reason = f"{price}万円 (予算{round_half_up(over_rate * 100)}%オーバー)"
        else:
            score = 0.0
            reason = f"{price}万円 (予算オーバー)"

        return MatchDetail("price", "価格", _clamp(score, weight), weight, reason)

    def _score_size(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        """Inside the size window, credit shrinks with distance from preferred."""
        if conditions.preferred_land_area is None and conditions.min_land_area is None:
            return None
        if land.land_area is None:
            return None

        weight = self._weight(conditions.priorities.size, self.SIZE_MULTIPLIER)

        preferred = (
            conditions.preferred_land_area
            or conditions.min_land_area
            or SIZE_FALLBACK_PREFERRED
        )
        lower = conditions.min_land_area or preferred * SIZE_MIN_RATIO
        upper = conditions.max_land_area or preferred * SIZE_MAX_RATIO

        if lower <= land.land_area <= upper:
            deviation = abs(land.land_area - preferred) / preferred
            score = weight * max(SIZE_MIN_CREDIT, 1 - deviation)
            reason = f"{format_number(land.land_area)}坪 (希望: {format_number(preferred)}坪)"
        else:
            score = 0.0
            reason = (
                f"{format_number(land.land_area)}坪 "
                f"(範囲外: {format_number(lower)}-{format_number(upper)}坪)"
            )

        return MatchDetail("size", "面積", _clamp(score, weight), weight, reason)

    def _score_access(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        """Walk time to station; each minute over the limit costs a tenth."""
        limit = conditions.station_distance
        if limit is None or land.station_distance is None:
            return None

        weight = self._weight(conditions.priorities.access, self.ACCESS_MULTIPLIER)
        minutes = land.station_distance

        if minutes <= limit:
            score = float(weight)
            reason = f"徒歩{format_number(minutes)}分 (希望{format_number(limit)}分以内)"
        else:
            over = minutes - limit
            score = weight * (1 - over / ACCESS_DECAY_MINUTES)
            reason = f"徒歩{format_number(minutes)}分 (希望より{format_number(over)}分超過)"

        return MatchDetail("access", "駅距離", _clamp(score, weight), weight, reason)

    def _score_road(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        """Front road width, scaled by the actual/required ratio when narrower."""
        required = conditions.road_width
        if required is None or land.road_width is None:
            return None

        weight = self._weight(conditions.priorities.environment, self.ROAD_MULTIPLIER)
        width = format_number(land.road_width)

        if land.road_width >= required:
            score = float(weight)
            reason = f"{width}m (希望{format_number(required)}m以上)"
        else:
            ratio = land.road_width / required if required > 0 else 0.0
            score = weight * ratio
            reason = f"{width}m (希望{format_number(required)}m未満)"

        return MatchDetail("road", "前面道路", _clamp(score, weight), weight, reason)

    def _score_corner_lot(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        if conditions.corner_lot is not TriState.REQUIRED:
            return None

        weight = self._weight(conditions.priorities.environment, self.CORNER_MULTIPLIER)
        if land.corner_lot:
            return MatchDetail("corner", "角地", float(weight), weight, "角地 ✓")
        return MatchDetail("corner", "角地", 0.0, weight, "角地ではない")

    def _score_new_development(
        self,
        conditions: LandSearchConditions,
        land: LandProperty,
    ) -> Optional[MatchDetail]:
        if conditions.new_development is not TriState.REQUIRED:
            return None

        weight = self._weight(conditions.priorities.environment, self.DEVELOPMENT_MULTIPLIER)
        if land.new_development:
            return MatchDetail("development", "新規分譲", float(weight), weight, "新規分譲地 ✓")
        return MatchDetail("development", "新規分譲", 0.0, weight, "新規分譲地ではない")


# =============================================================================
# Module-level API
# =============================================================================

_default_matcher = LandMatcher()


def calculate_land_match(
    conditions: LandSearchConditions,
    land: LandProperty,
) -> LandMatchResult:
    """Score one property against one customer's conditions."""
    return _default_matcher.calculate(conditions, land)


def batch_match_land_properties(
    all_conditions: List[LandSearchConditions],
    all_properties: List[LandProperty],
) -> List[LandMatchResult]:
    """Match all customers against all available properties (score >= 50)."""
    return _default_matcher.batch(all_conditions, all_properties)
