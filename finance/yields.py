from typing import Optional

from config import FREEHOLD_SENTINEL, FREEHOLD_MARKERS, LEASEHOLD_MARKERS
from models import Assumptions, Listing, Policy, Tenure, YieldResult, BVT_ASSUMPTIONS, DEFAULT_POLICY
from finance.currency import normalize_price


def resolve_tenure(listing: Listing) -> Tenure:
    """
    Freehold if lease_years is the 999 sentinel or the features mention
    freehold / Hak Milik. A known lease term > 0 is leasehold; anything else
    is leasehold of unknown length.
    """
    if listing.lease_years == FREEHOLD_SENTINEL:
        return Tenure.FREEHOLD
    text = (listing.features_text or "").lower()
    if any(marker in text for marker in FREEHOLD_MARKERS):
        return Tenure.FREEHOLD
    if listing.lease_years is not None and listing.lease_years > 0:
        return Tenure.LEASEHOLD
    return Tenure.UNKNOWN


def mentions_leasehold(listing: Listing) -> bool:
    text = (listing.features_text or "").lower()
    return any(marker in text for marker in LEASEHOLD_MARKERS)


def _pct(value: float) -> float:
    return min(100.0, max(0.0, float(value)))


def compute_yield(
    listing: Listing,
    nightly_rate: float,
    assumptions: Assumptions = BVT_ASSUMPTIONS,
    price_usd: Optional[float] = None,
    policy: Policy = DEFAULT_POLICY,
    occupancy_pct: Optional[float] = None,
) -> YieldResult:
    """Pure computation for one listing under one assumption set.

    Used unchanged for the BVT defaults and for compare-panel slider values.
    Upstream occupancy on the listing overrides the assumption set unless an
    explicit occupancy_pct is passed.
    Without price_usd the listing price is normalized with the fallback rates.
    """
    if price_usd is None:
        price_usd, _ = normalize_price(listing)
    rate = max(0.0, float(nightly_rate)) * assumptions.nightly_multiplier
    if occupancy_pct is None:
        occupancy_pct = listing.estimated_occupancy or assumptions.occupancy_pct
    occ = _pct(occupancy_pct) / 100.0
    exp = _pct(assumptions.expense_pct) / 100.0

    gross_revenue = rate * 365 * occ
    expenses = gross_revenue * exp
    net_revenue = gross_revenue - expenses

    tenure = resolve_tenure(listing)
    lease_years = listing.lease_years if tenure == Tenure.LEASEHOLD else None

    if price_usd <= 0:
        return YieldResult(
            nightly_rate=rate,
            gross_revenue=gross_revenue,
            expenses=expenses,
            net_revenue=net_revenue,
            gross_yield=0.0,
            cash_flow_yield=0.0,
            net_yield=0.0,
            lease_depreciation_pct=0.0,
            lease_depreciation_abs=0.0,
            is_freehold=tenure == Tenure.FREEHOLD,
            tenure=tenure,
            lease_years=lease_years,
            price_usd=0.0,
        )

    gross_yield = min(policy.gross_yield_cap, max(0.0, gross_revenue / price_usd * 100))
    cash_flow_yield = net_revenue / price_usd * 100

    # Leasehold reverts to the landowner: price depreciates to zero over the term
    if tenure == Tenure.LEASEHOLD:
        dep_abs = price_usd / lease_years
        dep_pct = 100.0 / lease_years
    else:
        dep_abs = 0.0
        dep_pct = 0.0

    net_yield = max(policy.net_yield_floor, cash_flow_yield - dep_pct)

    return YieldResult(
        nightly_rate=rate,
        gross_revenue=gross_revenue,
        expenses=expenses,
        net_revenue=net_revenue,
        gross_yield=gross_yield,
        cash_flow_yield=cash_flow_yield,
        net_yield=net_yield,
        lease_depreciation_pct=dep_pct,
        lease_depreciation_abs=dep_abs,
        is_freehold=tenure == Tenure.FREEHOLD,
        tenure=tenure,
        lease_years=lease_years,
        price_usd=float(price_usd),
    )
