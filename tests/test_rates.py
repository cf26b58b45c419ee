"""Rate estimator: area lookup, dampened price adjustment and the yield cap."""

from __future__ import annotations

import pytest

from finance.rates import (
    bedroom_tier,
    dampened_multiplier,
    estimate_nightly_rate,
    match_area,
    price_cap,
)
from config import AREA_RATES
from models import Listing, Policy

FLAT_AREA = {"Testville": (200.0, 200.0, 200.0, 200.0, 200.0)}
FLAT_MEDIANS = {"Testville": (100_000.0,) * 5}


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "bedrooms, tier",
    [(1, 0), (2, 1), (3, 2), (4, 3), (5, 4), (9, 4), (None, 0), (0, 0)],
)
def test_bedroom_tier(bedrooms, tier):
    assert bedroom_tier(bedrooms) == tier


def test_match_area_prefers_sub_area():
    assert match_area("Canggu - Berawa", AREA_RATES) == "Berawa"
    assert match_area("Bingin, Uluwatu", AREA_RATES) == "Bingin"
    assert match_area("north canggu", AREA_RATES) == "Canggu"
    assert match_area("Amed", AREA_RATES) is None
    assert match_area("", AREA_RATES) is None


# ---------------------------------------------------------------------------
# Dampening curve
# ---------------------------------------------------------------------------


def test_double_price_gives_about_thirty_percent():
    assert dampened_multiplier(400_000, 200_000) == pytest.approx(1.3, abs=1e-6)


def test_multiplier_clamped():
    assert dampened_multiplier(100_000_000, 100_000) == 1.6
    assert dampened_multiplier(1_000, 100_000) == 0.6


def test_multiplier_neutral_without_price():
    assert dampened_multiplier(0, 100_000) == 1.0


def test_dampening_exponent_is_tunable():
    linear = Policy(dampening_exponent=1.0, max_rate_multiplier=5.0)
    assert dampened_multiplier(300_000, 100_000, linear) == pytest.approx(3.0)


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------


def test_pipeline_rate_is_authoritative():
    """Upstream enrichment wins, even above the cap."""
    listing = Listing(location="Testville", estimated_nightly_rate=900)
    est = estimate_nightly_rate(listing, 100_000, FLAT_AREA, FLAT_MEDIANS)

    assert est.rate == 900
    assert est.source == "pipeline"
    assert not est.capped


def test_price_cap_binds():
    """$100k villa at a $200/night area rate would imply ~42% gross; capped to ~$118."""
    listing = Listing(location="Testville", bedrooms=3)
    est = estimate_nightly_rate(listing, 100_000, FLAT_AREA, FLAT_MEDIANS, occupancy_pct=58)

    assert est.capped
    assert est.rate == est.cap
    assert est.rate == price_cap(100_000, 58)
    assert est.rate == pytest.approx(100_000 * 0.25 / (365 * 0.58))
    assert est.rounded == 118
    assert any("Capped" in f for f in est.factors)


def test_cap_not_binding_for_expensive_villa():
    medians = {"Testville": (400_000.0,) * 5}
    listing = Listing(location="Testville", bedrooms=2)
    est = estimate_nightly_rate(listing, 800_000, FLAT_AREA, medians, occupancy_pct=58)

    assert not est.capped
    assert est.multiplier == pytest.approx(1.3, abs=1e-6)
    assert est.rate == pytest.approx(260, abs=1e-3)


def test_unlisted_area_uses_generic_baseline():
    listing = Listing(location="Amed", bedrooms=3)
    # At the generic 3BR median the price adjustment is neutral
    est = estimate_nightly_rate(listing, 350_000)

    assert est.source == "baseline"
    assert est.base_rate == 100 + 35 * 3
    assert est.rate == pytest.approx(205)


def test_missing_bedrooms_use_lowest_tier():
    listing = Listing(location="Ubud")
    est = estimate_nightly_rate(listing, 120_000)
    assert est.base_rate == AREA_RATES["Ubud"][0]


def test_zero_price_skips_cap():
    est = estimate_nightly_rate(Listing(location="Testville"), 0, FLAT_AREA, FLAT_MEDIANS)
    assert est.cap is None
    assert est.rate == 200


def test_listing_occupancy_feeds_cap():
    """Higher upstream occupancy means a lower cap."""
    high = Listing(location="Testville", estimated_occupancy=80)
    est = estimate_nightly_rate(high, 100_000, FLAT_AREA, FLAT_MEDIANS)
    assert est.rate == pytest.approx(100_000 * 0.25 / (365 * 0.80))
