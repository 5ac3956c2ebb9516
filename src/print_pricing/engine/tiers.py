"""
Tier Schedule Resolver - Picks the active volume tier for a quantity.

A schedule is an ascending list of (min_quantity, rate) tiers. The active
tier is the one with the largest min_quantity <= quantity; below the lowest
threshold no tier applies and the base rate stands.
"""
import logging
from typing import Iterable, Optional

from .models import QuantityDiscountTier, VolumeTier

logger = logging.getLogger(__name__)

TierKey = tuple[int, Optional[int]]  # (service_id, variant_id)


def build_schedule(tiers: Iterable[VolumeTier]) -> list[VolumeTier]:
    """
    Sort active tiers ascending by min_quantity.

    Duplicate thresholds break the write-time invariant; the last one
    inserted wins and the clash is logged.
    """
    by_threshold: dict[int, VolumeTier] = {}
    for tier in tiers:
        if not tier.is_active:
            continue
        existing = by_threshold.get(tier.min_quantity)
        if existing is not None:
            logger.warning(
                "Duplicate tier threshold %s for service %s variant %s (tiers %s, %s); keeping %s",
                tier.min_quantity, tier.service_id, tier.variant_id, existing.id, tier.id, tier.id,
            )
        by_threshold[tier.min_quantity] = tier
    return [by_threshold[k] for k in sorted(by_threshold)]


def resolve_tier(schedule: list, quantity: int):
    """
    Return the tier with the largest min_quantity <= quantity, or None.

    `schedule` must be sorted ascending by min_quantity.
    """
    active = None
    for tier in schedule:
        if tier.min_quantity <= quantity:
            active = tier
        else:
            break
    return active


class TierScheduleResolver:
    """
    Volume-tier lookup keyed by (service_id, variant_id).

    Variant-less services use a None variant.
    """

    def __init__(self, tiers: Iterable[VolumeTier] = ()):
        grouped: dict[TierKey, list[VolumeTier]] = {}
        for tier in tiers:
            grouped.setdefault((tier.service_id, tier.variant_id), []).append(tier)
        self._schedules: dict[TierKey, list[VolumeTier]] = {
            key: build_schedule(group) for key, group in grouped.items()
        }

    def schedule(self, service_id: int, variant_id: Optional[int] = None) -> list[VolumeTier]:
        return list(self._schedules.get((service_id, variant_id), []))

    def resolve(self, service_id: int, quantity: int, variant_id: Optional[int] = None) -> Optional[VolumeTier]:
        """Active tier for a service (and variant) at a quantity."""
        return resolve_tier(self._schedules.get((service_id, variant_id), []), quantity)

    def resolve_rate(self, service_id: int, base_rate: float, quantity: int,
                     variant_id: Optional[int] = None) -> tuple[float, Optional[VolumeTier]]:
        """Effective unit rate and the tier that produced it (None → base rate)."""
        tier = self.resolve(service_id, quantity, variant_id)
        if tier is None:
            return base_rate, None
        return tier.apply(base_rate), tier


def resolve_quantity_discount(discounts: Iterable[QuantityDiscountTier], quantity: int) -> Optional[QuantityDiscountTier]:
    """
    Order-level discount for a quantity.

    Same inclusive lower bound as volume tiers; an upper bound, when set,
    is inclusive too.
    """
    candidates = sorted(
        (d for d in discounts if d.is_active),
        key=lambda d: d.min_quantity,
    )
    active = resolve_tier(candidates, quantity)
    if active is None:
        return None
    if active.max_quantity is not None and quantity > active.max_quantity:
        return None
    return active
