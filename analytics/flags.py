import logging
from typing import Callable, Dict, List, Optional

from config import PRICE_TIERS
from finance.yields import mentions_leasehold
from models import (
    Flag,
    FlagLevel,
    Listing,
    Policy,
    RateEstimate,
    Tenure,
    YieldResult,
    DEFAULT_POLICY,
)

logger = logging.getLogger(__name__)

SHORT_LEASE = "SHORT_LEASE"
BUDGET_VILLA = "BUDGET_VILLA"
INFLATED_ROI = "INFLATED_ROI"
OPTIMISTIC_ROI = "OPTIMISTIC_ROI"
RATE_PRICE_GAP = "RATE_PRICE_GAP"
MISSING_DATA = "MISSING_DATA"
RATE_ADJUSTED = "RATE_ADJUSTED"

CODE_ALIASES = {"PRICE_CAP": RATE_ADJUSTED}


def price_tier_label(price_usd: float) -> str:
    for bound, label in PRICE_TIERS:
        if price_usd < bound:
            return label
    return PRICE_TIERS[-1][1]


def claimed_gross_yield(listing: Listing, result: YieldResult, policy: Policy = DEFAULT_POLICY) -> float:
    """
    Gross yield the source listing implies. Agents quote their own nightly rate at
    ~85% occupancy; without a claimed rate we fall back to our own gross figure.
    """
    if listing.agent_claimed_rate and listing.agent_claimed_rate > 0 and result.price_usd > 0:
        revenue = listing.agent_claimed_rate * 365 * policy.agent_occupancy_pct / 100.0
        return revenue / result.price_usd * 100
    return result.gross_yield


# ---------------------------------------------------------------------------
# Detection, only used when the upstream pipeline did not supply flag codes
# ---------------------------------------------------------------------------


def detect_flag_codes(
    listing: Listing,
    result: YieldResult,
    price_usd: float,
    estimate: Optional[RateEstimate] = None,
    policy: Policy = DEFAULT_POLICY,
) -> List[str]:
    codes = []
    if result.tenure == Tenure.LEASEHOLD and result.lease_years < policy.short_lease_years:
        codes.append(SHORT_LEASE)

    if price_usd > 0 and listing.bedrooms:
        if price_usd / listing.bedrooms < policy.budget_price_per_bedroom:
            codes.append(BUDGET_VILLA)

    claimed = claimed_gross_yield(listing, result, policy)
    if claimed > policy.inflated_yield:
        codes.append(INFLATED_ROI)
    elif claimed > policy.optimistic_yield:
        codes.append(OPTIMISTIC_ROI)

    if 0 < price_usd < policy.gap_price_ceiling:
        if result.nightly_rate >= price_usd / 1000.0 * policy.gap_rate_per_1k_price:
            codes.append(RATE_PRICE_GAP)

    if listing.bedrooms is None or result.tenure == Tenure.UNKNOWN:
        codes.append(MISSING_DATA)

    if estimate is not None and estimate.source != "pipeline":
        if estimate.capped or abs(estimate.deviation) > policy.rate_adjusted_deviation:
            codes.append(RATE_ADJUSTED)
    return codes


def flag_codes(
    listing: Listing,
    result: YieldResult,
    price_usd: float,
    estimate: Optional[RateEstimate] = None,
    policy: Policy = DEFAULT_POLICY,
) -> List[str]:
    """Upstream pipeline codes are authoritative; detection covers unenriched listings."""
    if listing.pipeline_flags is None:
        raw = detect_flag_codes(listing, result, price_usd, estimate, policy)
    else:
        raw = list(listing.pipeline_flags)
    codes = []
    for code in raw:
        code = CODE_ALIASES.get(code, code)
        if code not in codes:
            codes.append(code)
    return codes


# ---------------------------------------------------------------------------
# Rules: one per code, each turning a code into a Flag with its detail text
# ---------------------------------------------------------------------------


def _short_lease(listing, result, price_usd, estimate, policy):
    if result.tenure == Tenure.LEASEHOLD:
        covered = result.net_revenue >= result.lease_depreciation_abs
        verdict = "covers" if covered else "does not cover"
        detail = (
            f"Only {result.lease_years} years remaining. The lease depreciates "
            f"${result.lease_depreciation_abs:,.0f}/yr; rental income "
            f"(${result.net_revenue:,.0f}/yr net) {verdict} it."
        )
    elif result.tenure == Tenure.FREEHOLD:
        detail = (
            "Flagged as a short lease but the listing reads as freehold. "
            "No depreciation was applied; confirm the title before relying on it."
        )
    else:
        detail = (
            f"Lease flagged as under {policy.short_lease_years} years but the term is not "
            f"listed, so depreciation could not be included. Verify the remaining years."
        )
    return Flag(FlagLevel.DANGER, SHORT_LEASE, "Short lease", detail)


def _budget_villa(listing, result, price_usd, estimate, policy):
    beds = listing.bedrooms or policy.default_bedrooms
    per_room = price_usd / beds if beds else price_usd
    detail = (
        f"${per_room:,.0f} per bedroom, below the ${policy.budget_price_per_bedroom:,.0f} "
        f"floor. Budget builds rarely achieve area nightly rates."
    )
    return Flag(FlagLevel.WARNING, BUDGET_VILLA, "Budget villa", detail)


def _inflated_roi(listing, result, price_usd, estimate, policy):
    claimed = claimed_gross_yield(listing, result, policy)
    level = FlagLevel.DANGER if claimed >= policy.inflated_danger_yield else FlagLevel.WARNING
    detail = (
        f"Claimed gross yield {claimed:.1f}% vs. corrected net yield {result.net_yield:.1f}%."
    )
    if listing.agent_claimed_rate:
        detail += (
            f" Agent rate ${listing.agent_claimed_rate:,.0f}/night at "
            f"{policy.agent_occupancy_pct:.0f}% occupancy."
        )
    return Flag(level, INFLATED_ROI, "Inflated ROI", detail)


def _optimistic_roi(listing, result, price_usd, estimate, policy):
    claimed = claimed_gross_yield(listing, result, policy)
    detail = (
        f"Gross yield {claimed:.1f}% is above local norms; "
        f"net yield after expenses and lease is {result.net_yield:.1f}%."
    )
    return Flag(FlagLevel.WARNING, OPTIMISTIC_ROI, "Optimistic ROI", detail)


def _rate_price_gap(listing, result, price_usd, estimate, policy):
    detail = (
        f"${result.nightly_rate:,.0f}/night on a ${price_usd:,.0f} villa "
        f"({price_tier_label(price_usd)} tier). Rates this high are unusual at this price."
    )
    return Flag(FlagLevel.WARNING, RATE_PRICE_GAP, "Rate/price gap", detail)


def _missing_data(listing, result, price_usd, estimate, policy):
    notes = []
    if listing.bedrooms is None:
        notes.append(
            f"Bedrooms not listed: assumed {policy.default_bedrooms} (lowest rate tier) "
            f"so the projection is not inflated."
        )
    if result.tenure == Tenure.UNKNOWN:
        source = "features say leasehold" if mentions_leasehold(listing) else "not listed"
        notes.append(
            f"Lease term {source}: treated as leasehold of unknown length. "
            f"Depreciation is not included, so net yield is an upper bound."
        )
    if not notes:
        notes.append("Source listing omitted details; figures use model defaults.")
    return Flag(FlagLevel.ASSUMED, MISSING_DATA, "Missing data", " ".join(notes))


def _rate_adjusted(listing, result, price_usd, estimate, policy):
    if estimate is None:
        detail = "Nightly rate adjusted from the area baseline by the enrichment pipeline."
    else:
        cause = (
            f"capped so gross yield stays at or below {policy.max_implied_gross_yield * 100:.0f}%"
            if estimate.capped
            else "price-based adjustment"
        )
        detail = (
            f"Area baseline ${estimate.base_rate:,.0f}/night adjusted to "
            f"${estimate.rate:,.0f}/night ({estimate.deviation * 100:+.0f}%): {cause}."
        )
    return Flag(FlagLevel.ASSUMED, RATE_ADJUSTED, "Rate adjusted", detail)


RULES: Dict[str, Callable[..., Flag]] = {
    SHORT_LEASE: _short_lease,
    BUDGET_VILLA: _budget_villa,
    INFLATED_ROI: _inflated_roi,
    OPTIMISTIC_ROI: _optimistic_roi,
    RATE_PRICE_GAP: _rate_price_gap,
    MISSING_DATA: _missing_data,
    RATE_ADJUSTED: _rate_adjusted,
}


def derive_flags(
    listing: Listing,
    result: YieldResult,
    price_usd: float,
    estimate: Optional[RateEstimate] = None,
    policy: Policy = DEFAULT_POLICY,
) -> List[Flag]:
    """All flags for a listing, most severe first. Nothing is dropped."""
    flags = []
    for code in flag_codes(listing, result, price_usd, estimate, policy):
        rule = RULES.get(code)
        if rule is None:
            logger.warning("Unknown flag code %r on listing %s", code, listing.listing_id)
            continue
        flags.append(rule(listing, result, price_usd, estimate, policy))
    return sorted(flags, key=lambda f: -f.level.rank)


def highest_level(flags: List[Flag]) -> Optional[FlagLevel]:
    if not flags:
        return None
    return max((f.level for f in flags), key=lambda level: level.rank)


def is_flagged(flags: List[Flag]) -> bool:
    return len(flags) > 0
