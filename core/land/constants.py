"""
Tuning constants for land matching and condition extraction.

All weights and heuristics live here so they can be adjusted without
touching the scoring algorithm.
"""

from typing import Final


# =============================================================================
# Category Weights
# =============================================================================

# Every priority (1-5) is doubled before the per-category base multiplier
PRIORITY_SCALE: Final[int] = 2

AREA_MULTIPLIER: Final[int] = 5
PRICE_MULTIPLIER: Final[int] = 4
SIZE_MULTIPLIER: Final[int] = 3
ACCESS_MULTIPLIER: Final[int] = 3
ROAD_MULTIPLIER: Final[int] = 2
CORNER_MULTIPLIER: Final[int] = 1
DEVELOPMENT_MULTIPLIER: Final[int] = 1

# =============================================================================
# Partial Credit
# =============================================================================

# Outside the desired areas (but not excluded)
AREA_OUTSIDE_CREDIT: Final[float] = 0.3

# Within budget when no minimum price was given
PRICE_MAX_ONLY_CREDIT: Final[float] = 0.9

# Credit lost per unit of over-budget fraction
PRICE_OVER_BUDGET_DECAY: Final[float] = 2.0

# Size window defaults relative to the preferred area
SIZE_MIN_RATIO: Final[float] = 0.8
SIZE_MAX_RATIO: Final[float] = 1.5
SIZE_MIN_CREDIT: Final[float] = 0.5
SIZE_FALLBACK_PREFERRED: Final[float] = 50.0

# Minutes over the walk-time limit at which access credit reaches zero
ACCESS_DECAY_MINUTES: Final[float] = 10.0

# =============================================================================
# Alert Thresholds
# =============================================================================

ALERT_HIGH_THRESHOLD: Final[int] = 70
ALERT_MEDIUM_THRESHOLD: Final[int] = 50

# Batch results below this score are discarded
BATCH_MIN_SCORE: Final[int] = ALERT_MEDIUM_THRESHOLD

# =============================================================================
# Extraction Heuristics
# =============================================================================

# Share of the total household budget assumed to go to land
LAND_BUDGET_RATIO: Final[float] = 0.4

# Yen per "man" (10,000)
YEN_PER_MAN: Final[int] = 10000

# Recommended tsubo per household member, and the floor
TSUBO_PER_PERSON: Final[int] = 10
MIN_FAMILY_LAND_AREA: Final[int] = 40

# Priority slider bounds
PRIORITY_MIN: Final[int] = 1
PRIORITY_MAX: Final[int] = 5
PRIORITY_DEFAULT: Final[int] = 3
