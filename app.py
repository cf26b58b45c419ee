import json
import logging
import os

import altair as alt
import pandas as pd
import streamlit as st

from config import ASSUMPTION_BOUNDS, BVT_DEFAULTS, FALLBACK_CURRENCY_RATES, AREA_RATES
from models import Assumptions, ComparisonSession, FlagLevel
from finance.currency import convert_from_usd, format_money
from analytics.analysis import evaluate_listings, compare_listings
from analytics.flags import highest_level
from analytics.table import listings_dataframe, filter_listings, summarize, NO_PRICE_FILTER

logging.basicConfig(level=os.environ.get("BVT_LOG_LEVEL", "INFO"))
logger = logging.getLogger("bali_villa_truth")

st.set_page_config(page_title="Bali Villa Truth", page_icon="🏝️", layout="wide")

SAMPLE_LISTINGS = [
    {"id": 1, "villa_name": "Villa Sawah", "location": "Pererenan", "price_description": "USD 385,000",
     "bedrooms": 3, "lease_years": 25, "land_size": 300, "agent_claimed_rate": 450},
    {"id": 2, "villa_name": "Casa Bingin", "location": "Bingin, Uluwatu", "price_description": "IDR 9.500.000.000",
     "beds_baths": "4/4", "lease_years": 999, "features": "Freehold (Hak Milik)", "land_size": 520},
    {"id": 3, "villa_name": "Ubud Jungle Hut", "location": "Ubud", "last_price": 95000,
     "bedrooms": 2, "lease_years": 12, "land_size": 150},
    {"id": 4, "villa_name": "Berawa Loft", "location": "Canggu - Berawa", "last_price": 4200000000,
     "features": "Leasehold (Hak Sewa)", "land_size": 180},
]

BADGE = {FlagLevel.DANGER: "🔴", FlagLevel.WARNING: "🟠", FlagLevel.ASSUMED: "⚪"}


@st.cache_data
def load_records():
    path = os.environ.get("BVT_LISTINGS_PATH")
    if not path:
        return SAMPLE_LISTINGS
    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)
    # Only audited rows make it to the site
    return [r for r in records if r.get("status", "audited") == "audited"]


records = load_records()
evaluations = evaluate_listings(records)
logger.info("Evaluated %d listings", len(evaluations))
stats = summarize(evaluations)

st.title("🏝️ Bali Villa Truth")
st.caption("Independent ROI auditing for villa investors. Net yield includes expenses and lease depreciation.")

b1, b2, b3 = st.columns(3)
b1.metric("Villas audited", stats["total"], border=True)
b2.metric("Flagged listings", stats["flagged"], border=True,
          help=f"{stats['by_level']['danger']} danger, {stats['by_level']['warning']} warning, "
               f"{stats['by_level']['assumed']} assumed")
b3.metric("Net yield above 20%", stats["hot_deals"], border=True)

# ------------------------- Listings table -------------------------

left, right = st.columns([1, 3], gap="large")

with left:
    st.markdown("### Filters")
    location = st.selectbox("Location", ["All"] + list(AREA_RATES))
    max_price = st.selectbox(
        "Max price (USD)", [NO_PRICE_FILTER, 200000, 350000, 500000, 1000000],
        format_func=lambda v: "Any" if v == NO_PRICE_FILTER else f"< {format_money(v)}",
    )
    min_yield = st.selectbox("Min net yield", [0, 5, 10, 15, 20], format_func=lambda v: f"{v}%+")
    min_land = st.number_input("Min land size (m²)", min_value=0.0, value=0.0, step=50.0)
    display_currency = st.radio("Show prices in", list(FALLBACK_CURRENCY_RATES), horizontal=True)

with right:
    df = filter_listings(listings_dataframe(evaluations), location, max_price, min_yield, min_land)
    st.markdown(f"### Showing {len(df)} properties")
    if df.empty:
        st.info("No properties match your filters. Try adjusting the criteria.")
    else:
        shown = df.copy()
        shown["price"] = [
            format_money(convert_from_usd(p, display_currency, FALLBACK_CURRENCY_RATES), display_currency)
            for p in shown["price_usd"]
        ]
        st.dataframe(
            shown[["name", "location", "price", "bedrooms", "tenure", "lease_years", "nightly_rate",
                   "gross_yield", "net_yield", "flag_level", "flags"]],
            use_container_width=True,
            hide_index=True,
        )

# ------------------------- Compare panel -------------------------

st.markdown("### Compare")
names = {ev.listing.listing_id: ev.listing.name or "Luxury Villa" for ev in evaluations}
chosen = st.multiselect("Villas to compare", list(names), format_func=lambda i: names[i])

s1, s2, s3 = st.columns(3)
lo, hi, step = ASSUMPTION_BOUNDS["nightly_multiplier"]
mult = s1.slider("Nightly rate multiplier", lo, hi, BVT_DEFAULTS["nightly_multiplier"], step,
                 help="Scale the modelled nightly rate up or down")
lo, hi, step = ASSUMPTION_BOUNDS["occupancy_pct"]
occ = s2.slider("Occupancy (%)", lo, hi, BVT_DEFAULTS["occupancy_pct"], step,
                help="Agents assume 85%. Realistic Bali occupancy is 55-75%.")
lo, hi, step = ASSUMPTION_BOUNDS["expense_pct"]
exp = s3.slider("Expenses (% of revenue)", lo, hi, BVT_DEFAULTS["expense_pct"], step,
                help="Management, maintenance, taxes and furnishing, as a share of gross revenue")

session = ComparisonSession(
    Assumptions(nightly_multiplier=mult, occupancy_pct=occ, expense_pct=exp).clamped(),
    frozenset(chosen),
)

compared = compare_listings(records, session)
if compared:
    cols = st.columns(len(compared))
    for col, ev in zip(cols, compared):
        res = ev.result
        level = highest_level(res.flags)
        with col:
            st.markdown(f"**{BADGE.get(level, '')} {ev.listing.name or 'Luxury Villa'}**")
            st.metric("Net yield", f"{res.net_yield:.1f}%", border=True)
            st.caption(
                f"Cash flow {res.cash_flow_yield:.1f}% • Gross {res.gross_yield:.1f}% • "
                f"${res.nightly_rate:,.0f}/night"
            )
            if res.lease_depreciation_abs > 0:
                st.caption(f"Lease depreciation {format_money(res.lease_depreciation_abs)}/yr")
            for flag in res.flags:
                st.markdown(f"{BADGE[flag.level]} **{flag.label}**: {flag.detail}")

    chart_data = pd.DataFrame({
        "Villa": [ev.listing.name or str(ev.listing.listing_id) for ev in compared],
        "Cash flow yield": [ev.result.cash_flow_yield for ev in compared],
        "Net yield": [ev.result.net_yield for ev in compared],
    })
    melted = pd.melt(chart_data, id_vars=["Villa"], var_name="Measure", value_name="Yield")
    bar_chart = alt.Chart(melted).mark_bar().encode(
        x=alt.X("Villa:N", title=None, axis=alt.Axis(labelAngle=0)),
        xOffset="Measure:N",
        y=alt.Y("Yield:Q", title="Yield (%)", axis=alt.Axis(format=".1f")),
        color=alt.Color("Measure:N", scale=alt.Scale(range=["#4ECDC4", "#FF6B6B"]),
                        legend=alt.Legend(orient="bottom")),
        tooltip=[alt.Tooltip("Villa:N"), alt.Tooltip("Measure:N"), alt.Tooltip("Yield:Q", format=".1f")],
    ).properties(height=300)
    st.altair_chart(bar_chart, use_container_width=True)
else:
    st.caption("Pick villas above to compare them under your own assumptions.")

# ------------------------- Methodology -------------------------

with st.expander("📐 How are the yields calculated?"):
    st.markdown("""
    - **Annual revenue** = nightly rate × 365 × occupancy
    - **Cash-flow yield** = (revenue − expenses) / price
    - **Net yield** = cash-flow yield − lease depreciation (100 / lease years for leasehold)
    - Nightly rates come from area comparables by bedroom count, adjusted for price with a
      dampened curve and capped so no villa implies more than 25% gross yield.
    """)

with st.expander("🚩 What do the flags mean?"):
    st.markdown("""
    - 🔴 **Danger**: short lease or wildly inflated ROI claims
    - 🟠 **Warning**: budget build, optimistic ROI, or a nightly rate out of line with the price
    - ⚪ **Assumed**: the listing left something out and we filled it with a conservative default

    A flag does not mean do not buy. It means verify before you commit.
    """)
