import pandas as pd
from typing import Iterable, List

from models import Evaluation, FlagLevel, DEFAULT_POLICY, Policy
from analytics.flags import highest_level, is_flagged

COLUMNS = [
    "listing_id",
    "name",
    "location",
    "price_usd",
    "bedrooms",
    "land_size",
    "tenure",
    "lease_years",
    "nightly_rate",
    "rate_factors",
    "gross_yield",
    "cash_flow_yield",
    "net_yield",
    "flag_level",
    "flag_count",
    "flags",
]

NO_PRICE_FILTER = 10_000_000


def listings_dataframe(evaluations: Iterable[Evaluation]) -> pd.DataFrame:
    """
    One row per listing with display-rounded figures, highest net yield first.
    Flag details are joined into one string for tooltips.
    """
    rows = []
    for ev in evaluations:
        res = ev.result
        level = highest_level(res.flags)
        rows.append(
            {
                "listing_id": ev.listing.listing_id,
                "name": ev.listing.name or "Luxury Villa",
                "location": ev.listing.location or "Bali",
                "price_usd": round(ev.price_usd),
                "bedrooms": ev.listing.bedrooms,
                "land_size": ev.listing.land_size,
                "tenure": res.tenure.value,
                "lease_years": res.lease_years,
                "nightly_rate": int(round(res.nightly_rate)),
                "rate_factors": "; ".join(ev.estimate.factors),
                "gross_yield": round(res.gross_yield, 1),
                "cash_flow_yield": round(res.cash_flow_yield, 1),
                "net_yield": round(res.net_yield, 1),
                "flag_level": level.value if level else "",
                "flag_count": len(res.flags),
                "flags": " | ".join(f"{f.label}: {f.detail}" for f in res.flags),
            }
        )
    df = pd.DataFrame(rows, columns=COLUMNS)
    return df.sort_values("net_yield", ascending=False, kind="stable").reset_index(drop=True)


def filter_listings(
    df: pd.DataFrame,
    location: str = "All",
    max_price_usd: float = NO_PRICE_FILTER,
    min_yield: float = 0.0,
    min_land_size: float = 0.0,
) -> pd.DataFrame:
    """Filter bar: location substring, price under the max, yield and land size over the min."""
    mask = pd.Series(True, index=df.index)
    if location and location != "All":
        mask &= df["location"].fillna("").str.contains(location, case=False, regex=False)
    mask &= df["price_usd"] <= max_price_usd
    mask &= df["net_yield"] >= min_yield
    mask &= df["land_size"].fillna(0) >= min_land_size
    return df[mask].reset_index(drop=True)


def summarize(evaluations: List[Evaluation], policy: Policy = DEFAULT_POLICY) -> dict:
    """Header badge counts"""
    flagged = [ev for ev in evaluations if is_flagged(ev.flags)]
    by_level = {level.value: 0 for level in FlagLevel}
    for ev in flagged:
        by_level[highest_level(ev.flags).value] += 1
    return {
        "total": len(evaluations),
        "flagged": len(flagged),
        "by_level": by_level,
        "hot_deals": sum(1 for ev in evaluations if ev.result.net_yield > policy.hot_deal_yield),
    }
