"""Whole-listing evaluation and the compare panel."""

from __future__ import annotations

import json
import math

import pytest

from analytics.analysis import compare_listings, evaluate_listing, evaluate_listings
from models import Assumptions, ComparisonSession, FlagLevel, Listing

TEST_AREA = {"Testville": (200.0, 200.0, 200.0, 200.0, 200.0)}
TEST_MEDIANS = {"Testville": (100_000.0,) * 5}

ENRICHED = {
    "id": 1,
    "villa_name": "Villa Sawah",
    "location": "Pererenan",
    "price_description": "USD 300,000",
    "bedrooms": 3,
    "lease_years": 20,
    "est_nightly_rate": 150,
    "est_occupancy": 58,
    "flags": "",
}


# ---------------------------------------------------------------------------
# evaluate_listing
# ---------------------------------------------------------------------------


def test_enriched_record_end_to_end():
    ev = evaluate_listing(ENRICHED)

    assert ev.price_usd == 300_000
    assert ev.estimate.source == "pipeline"
    assert ev.result.cash_flow_yield == pytest.approx(6.351, abs=1e-3)
    assert ev.result.net_yield == pytest.approx(1.351, abs=1e-3)
    assert ev.flags == []


def test_short_lease_record_flagged():
    record = dict(ENRICHED, lease_years=10, flags="SHORT_LEASE")
    ev = evaluate_listing(record)

    assert ev.result.net_yield == pytest.approx(-3.649, abs=1e-3)
    assert ev.flags[0].level == FlagLevel.DANGER
    assert "$30,000/yr" in ev.flags[0].detail


def test_price_cap_flows_into_flags():
    """Unenriched $100k listing: rate capped to ~$118 and marked as adjusted."""
    listing = Listing(
        listing_id=2, location="Testville", bedrooms=3, lease_years=999,
        price_description="USD 100,000",
    )
    ev = evaluate_listing(listing, area_rates=TEST_AREA, median_prices=TEST_MEDIANS)

    assert ev.estimate.capped
    assert ev.result.nightly_rate == pytest.approx(100_000 * 0.25 / (365 * 0.58))
    assert ev.result.gross_yield == pytest.approx(25.0)
    adjusted = [f for f in ev.flags if f.code == "RATE_ADJUSTED"]
    assert adjusted and "capped" in adjusted[0].detail


def test_unparseable_price_degrades_to_zero():
    ev = evaluate_listing({"price_description": "Price on request", "location": "Canggu"})

    assert ev.price_usd == 0
    for value in (ev.result.gross_yield, ev.result.cash_flow_yield, ev.result.net_yield):
        assert value == 0
        assert math.isfinite(value)


@pytest.mark.parametrize("field", ["lease_years", "bedrooms", "beds_baths"])
@pytest.mark.parametrize("missing", [float("nan"), float("inf")])
def test_non_finite_cells_degrade(field, missing):
    """Exported tables carry NaN for empty cells; the row still evaluates."""
    ev = evaluate_listing(dict(ENRICHED, **{field: missing}))

    assert math.isfinite(ev.result.net_yield)
    ev.result.display()
    assert not any("nan" in f.detail or "inf" in f.detail for f in ev.flags)


def test_nan_price_treated_as_unpriced():
    record = {"location": "Canggu", "bedrooms": 3, "last_price": float("nan"),
              "price_description": float("nan")}
    ev = evaluate_listing(record)

    assert ev.price_usd == 0
    assert ev.result.net_yield == 0
    assert ev.result.display()["gross_yield"] == 0
    assert not any("$nan" in f.detail for f in ev.flags)


def test_missing_listing_raises():
    with pytest.raises(ValueError):
        evaluate_listing(None)


def test_evaluation_is_json_ready():
    payload = evaluate_listing(dict(ENRICHED, flags="SHORT_LEASE", lease_years=10)).to_dict()
    decoded = json.loads(json.dumps(payload))

    for key in (
        "nightly_rate", "gross_yield", "net_revenue", "net_yield", "cash_flow_yield",
        "lease_depreciation_pct", "lease_depreciation_abs", "is_freehold", "flags",
    ):
        assert key in decoded
    assert decoded["tenure"] == "leasehold"
    assert decoded["flags"][0]["level"] == "danger"


def test_evaluate_listings_maps_all():
    evs = evaluate_listings([ENRICHED, dict(ENRICHED, id=2)])
    assert [ev.listing.listing_id for ev in evs] == [1, 2]


# ---------------------------------------------------------------------------
# Compare panel
# ---------------------------------------------------------------------------


def test_compare_only_favorites():
    records = [ENRICHED, dict(ENRICHED, id=2, villa_name="Villa Dua")]
    session = ComparisonSession().toggle_favorite(2)

    evs = compare_listings(records, session)
    assert [ev.listing.listing_id for ev in evs] == [2]


def test_compare_uses_same_math_as_table():
    """Default sliders reproduce the table figures exactly."""
    session = ComparisonSession(Assumptions(), frozenset({1}))
    listing = Listing.from_record(dict(ENRICHED, est_occupancy=None))

    compared = compare_listings([listing], session)[0]
    table = evaluate_listing(listing)
    assert compared.result == table.result


def test_compare_sliders_override_upstream_occupancy():
    session = ComparisonSession(Assumptions(occupancy_pct=80), frozenset({1}))
    ev = compare_listings([ENRICHED], session)[0]
    assert ev.result.gross_revenue == pytest.approx(150 * 365 * 0.80)


def test_compare_higher_expenses_lower_net():
    base = compare_listings([ENRICHED], ComparisonSession(favorites=frozenset({1})))[0]
    costly = compare_listings(
        [ENRICHED], ComparisonSession(Assumptions(expense_pct=60), frozenset({1}))
    )[0]
    assert costly.result.net_yield < base.result.net_yield


def test_compare_clamps_out_of_bounds_sliders():
    session = ComparisonSession(Assumptions(nightly_multiplier=5.0), frozenset({1}))
    ev = compare_listings([ENRICHED], session)[0]
    assert ev.result.nightly_rate == pytest.approx(300)
