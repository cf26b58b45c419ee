import logging
from dataclasses import replace
from typing import Iterable, List, Mapping, Sequence, Union

from config import AREA_RATES, AREA_MEDIAN_PRICES, FALLBACK_CURRENCY_RATES
from models import (
    Assumptions,
    ComparisonSession,
    Evaluation,
    Listing,
    Policy,
    BVT_ASSUMPTIONS,
    DEFAULT_POLICY,
)
from finance.currency import normalize_price
from finance.rates import estimate_nightly_rate
from finance.yields import compute_yield
from analytics.flags import derive_flags

logger = logging.getLogger(__name__)

ListingLike = Union[Listing, dict]


def _as_listing(listing: ListingLike) -> Listing:
    if listing is None:
        raise ValueError("listing is required")
    if isinstance(listing, Listing):
        return listing
    return Listing.from_record(listing)


def evaluate_listing(
    listing: ListingLike,
    assumptions: Assumptions = BVT_ASSUMPTIONS,
    currency_rates: Mapping[str, float] = FALLBACK_CURRENCY_RATES,
    area_rates: Mapping[str, Sequence[float]] = AREA_RATES,
    median_prices: Mapping[str, Sequence[float]] = AREA_MEDIAN_PRICES,
    policy: Policy = DEFAULT_POLICY,
    use_listing_occupancy: bool = True,
) -> Evaluation:
    """
    Price -> nightly rate -> yields -> flags for one listing.
    The table, map popups and the compare panel all go through here; only the
    assumption set differs between them.

    Upstream occupancy on the listing wins unless use_listing_occupancy is False
    (compare-panel sliders).
    """
    item = _as_listing(listing)
    price_usd, currency = normalize_price(item, currency_rates)
    occupancy = assumptions.occupancy_pct
    if use_listing_occupancy and item.estimated_occupancy:
        occupancy = item.estimated_occupancy

    estimate = estimate_nightly_rate(
        item,
        price_usd,
        area_rates=area_rates,
        median_prices=median_prices,
        occupancy_pct=occupancy,
        policy=policy,
    )
    result = compute_yield(
        item, estimate.rate, assumptions, price_usd, policy=policy, occupancy_pct=occupancy
    )
    flags = derive_flags(item, result, price_usd, estimate, policy)
    return Evaluation(
        listing=item,
        price_usd=price_usd,
        currency=currency,
        estimate=estimate,
        result=replace(result, flags=flags),
    )


def evaluate_listings(listings: Iterable[ListingLike], **kwargs) -> List[Evaluation]:
    evaluations = [evaluate_listing(item, **kwargs) for item in listings]
    logger.debug("Evaluated %d listings", len(evaluations))
    return evaluations


def compare_listings(
    listings: Iterable[ListingLike],
    session: ComparisonSession,
    currency_rates: Mapping[str, float] = FALLBACK_CURRENCY_RATES,
    area_rates: Mapping[str, Sequence[float]] = AREA_RATES,
    median_prices: Mapping[str, Sequence[float]] = AREA_MEDIAN_PRICES,
    policy: Policy = DEFAULT_POLICY,
) -> List[Evaluation]:
    """Favorited listings evaluated under the session's slider assumptions."""
    assumptions = session.assumptions.clamped()
    chosen = [
        item for item in (_as_listing(x) for x in listings)
        if item.listing_id in session.favorites
    ]
    return evaluate_listings(
        chosen,
        assumptions=assumptions,
        currency_rates=currency_rates,
        area_rates=area_rates,
        median_prices=median_prices,
        policy=policy,
        use_listing_occupancy=False,
    )
