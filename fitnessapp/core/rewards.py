from dataclasses import dataclass
from typing import Optional

CHECK_ITEM_POINTS = 10

LEDGER_CHECK_ITEM = "CHECK_ITEM"
LEDGER_CHECK_ITEM_REVOKE = "CHECK_ITEM_REVOKE"
LEDGER_REDEEM = "REDEEM"
LEDGER_SEED = "SEED"


@dataclass(frozen=True)
class Tier:
    name: str
    min_points: int
    max_points: Optional[int]  # None means no upper limit


TIERS: list[Tier] = [
    Tier(name="Bronze", min_points=0, max_points=199),
    Tier(name="Silver", min_points=200, max_points=499),
    Tier(name="Gold", min_points=500, max_points=None),
]

# Redeemable badge -> (cost, user counter column).
BADGE_CATALOG: dict[str, tuple[int, str]] = {
    "Bronze Badge": (100, "bronze_badges"),
    "Silver Badge": (200, "silver_badges"),
    "Gold Badge": (500, "gold_badges"),
}


def get_tier(points: int) -> Tier:
    for tier in TIERS:
        if tier.max_points is None and points >= tier.min_points:
            return tier
        if tier.max_points is not None and tier.min_points <= points <= tier.max_points:
            return tier
    return TIERS[0]


def get_next_tier(points: int) -> Optional[Tier]:
    current = get_tier(points)
    idx = TIERS.index(current)
    if idx + 1 < len(TIERS):
        return TIERS[idx + 1]
    return None


def points_to_next_tier(points: int) -> Optional[int]:
    nxt = get_next_tier(points)
    if nxt is None:
        return None
    return max(0, nxt.min_points - points)


def tier_progress(points: int) -> int:
    """Progress through the current tier as a 0..100 percentage; 100 once at the top tier."""
    current = get_tier(points)
    nxt = get_next_tier(points)
    if nxt is None:
        return 100
    span = (nxt.min_points - current.min_points) or 1
    progress = ((points - current.min_points) / span) * 100.0
    return int(max(0, min(100, round(progress))))
