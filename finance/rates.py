import logging
from typing import Mapping, Optional, Sequence

from config import AREA_RATES, AREA_MEDIAN_PRICES, DEFAULT_MEDIAN_PRICES
from models import Listing, Policy, RateEstimate, DEFAULT_POLICY, BVT_ASSUMPTIONS

logger = logging.getLogger(__name__)

TIERS = 5


def bedroom_tier(bedrooms: Optional[int], policy: Policy = DEFAULT_POLICY) -> int:
    """Tier index 0..4 for 1, 2, 3, 4 and 5+ bedrooms."""
    beds = bedrooms if bedrooms and bedrooms > 0 else policy.default_bedrooms
    return min(max(int(beds), 1), TIERS) - 1


def match_area(location: str, table: Mapping[str, Sequence[float]]) -> Optional[str]:
    """First area in the table whose name appears in the free-text location."""
    loc = (location or "").lower()
    if not loc:
        return None
    for area in table:
        if area.lower() in loc:
            return area
    return None


def dampened_multiplier(
    price_usd: float, median_price: float, policy: Policy = DEFAULT_POLICY
) -> float:
    """
    Sub-linear price adjustment: (price / median) ** exponent, clamped.
    With the default exponent a listing at twice the median earns ~1.3x the base rate.
    """
    if price_usd <= 0 or median_price <= 0:
        return 1.0
    ratio = price_usd / median_price
    mult = ratio ** policy.dampening_exponent
    return min(policy.max_rate_multiplier, max(policy.min_rate_multiplier, mult))


def price_cap(price_usd: float, occupancy_pct: float, policy: Policy = DEFAULT_POLICY) -> Optional[float]:
    """Highest nightly rate that keeps implied gross yield at or below the policy ceiling."""
    occ = occupancy_pct / 100.0
    if price_usd <= 0 or occ <= 0:
        return None
    return (price_usd * policy.max_implied_gross_yield) / (365 * occ)


def _baseline(bedrooms: Optional[int], policy: Policy) -> float:
    beds = bedrooms if bedrooms and bedrooms > 0 else policy.default_bedrooms
    return policy.baseline_rate + policy.baseline_rate_per_bedroom * beds


def estimate_nightly_rate(
    listing: Listing,
    price_usd: float,
    area_rates: Mapping[str, Sequence[float]] = AREA_RATES,
    median_prices: Mapping[str, Sequence[float]] = AREA_MEDIAN_PRICES,
    occupancy_pct: Optional[float] = None,
    policy: Policy = DEFAULT_POLICY,
) -> RateEstimate:
    """
    Estimated nightly rate (USD) for a listing.

    - Upstream enrichment (estimated_nightly_rate > 0) is authoritative.
    - Otherwise: area base rate for the bedroom tier (or 100 + 35/bedroom for
      unlisted areas), times a dampened price/median multiplier, then capped so
      the implied gross yield never exceeds the policy ceiling.

    The returned rate is unrounded; use RateEstimate.rounded for display.
    """
    if listing.estimated_nightly_rate and listing.estimated_nightly_rate > 0:
        rate = float(listing.estimated_nightly_rate)
        factors = listing.rate_factors or (f"Pipeline estimate ${rate:,.0f}/night",)
        return RateEstimate(rate=rate, base_rate=rate, source="pipeline", factors=factors)

    tier = bedroom_tier(listing.bedrooms, policy)
    area = match_area(listing.location, area_rates)
    factors = []
    if area is not None:
        base = float(area_rates[area][tier])
        source = "area"
        label = f"{tier + 1}+" if tier == TIERS - 1 else str(tier + 1)
        factors.append(f"{area} {label}BR base ${base:,.0f}/night")
    else:
        base = _baseline(listing.bedrooms, policy)
        source = "baseline"
        logger.debug("Area not listed for %r, using generic baseline", listing.location)
        factors.append(f"Generic baseline ${base:,.0f}/night (area not in rate table)")

    medians = median_prices.get(area, DEFAULT_MEDIAN_PRICES) if area else DEFAULT_MEDIAN_PRICES
    mult = dampened_multiplier(price_usd, medians[tier], policy)
    rate = base * mult
    if abs(mult - 1.0) > 1e-9:
        factors.append(f"Price adjustment x{mult:.2f} vs. area median ${medians[tier]:,.0f}")

    if occupancy_pct is None:
        occupancy_pct = listing.estimated_occupancy or BVT_ASSUMPTIONS.occupancy_pct
    cap = price_cap(price_usd, occupancy_pct, policy)
    capped = cap is not None and rate > cap
    if capped:
        factors.append(
            f"Capped at ${cap:,.0f}/night ({policy.max_implied_gross_yield * 100:.0f}% max gross yield)"
        )
        rate = cap

    return RateEstimate(
        rate=rate,
        base_rate=base,
        multiplier=mult,
        cap=cap,
        capped=capped,
        source=source,
        factors=tuple(factors),
    )
