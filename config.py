from math import log

# Assumption set used by the main table and map ("BVT defaults")
BVT_DEFAULTS = {
    "nightly_multiplier": 1.0,
    "occupancy_pct": 58.0,  # percentage
    "expense_pct": 40.0,  # percentage of gross revenue
}

# Slider bounds for the compare panel: (min, max, step)
ASSUMPTION_BOUNDS = {
    "nightly_multiplier": (0.5, 2.0, 0.05),
    "occupancy_pct": (20.0, 95.0, 1.0),
    "expense_pct": (20.0, 60.0, 1.0),
}

# Units of currency per 1 USD, used when the live rate fetch fails
FALLBACK_CURRENCY_RATES = {
    "USD": 1.0,
    "IDR": 16782.0,
    "AUD": 1.53,
    "EUR": 0.92,
    "SGD": 1.34,
}

# Base nightly rate (USD) per bedroom tier: 1, 2, 3, 4, 5+.
# Lookup matches the first area whose name appears in the listing location,
# so sub-areas come before the broader area that contains them.
AREA_RATES = {
    "Pererenan": (120.0, 190.0, 260.0, 340.0, 430.0),
    "Berawa": (125.0, 195.0, 270.0, 350.0, 440.0),
    "Seseh": (105.0, 165.0, 225.0, 295.0, 370.0),
    "Umalas": (110.0, 170.0, 235.0, 305.0, 385.0),
    "Canggu": (120.0, 185.0, 255.0, 330.0, 420.0),
    "Seminyak": (135.0, 210.0, 290.0, 380.0, 480.0),
    "Bingin": (130.0, 200.0, 280.0, 365.0, 460.0),
    "Uluwatu": (125.0, 195.0, 270.0, 355.0, 450.0),
    "Jimbaran": (105.0, 165.0, 230.0, 300.0, 380.0),
    "Nusa Dua": (110.0, 175.0, 240.0, 315.0, 400.0),
    "Sanur": (90.0, 140.0, 195.0, 255.0, 320.0),
    "Ubud": (85.0, 130.0, 180.0, 235.0, 300.0),
}

# Median asking price (USD) per bedroom tier, same ordering as AREA_RATES
AREA_MEDIAN_PRICES = {
    "Pererenan": (190000.0, 290000.0, 400000.0, 540000.0, 720000.0),
    "Berawa": (200000.0, 300000.0, 420000.0, 560000.0, 750000.0),
    "Seseh": (160000.0, 250000.0, 340000.0, 460000.0, 610000.0),
    "Umalas": (170000.0, 260000.0, 360000.0, 480000.0, 640000.0),
    "Canggu": (190000.0, 285000.0, 390000.0, 520000.0, 700000.0),
    "Seminyak": (210000.0, 320000.0, 450000.0, 600000.0, 800000.0),
    "Bingin": (200000.0, 310000.0, 430000.0, 580000.0, 770000.0),
    "Uluwatu": (190000.0, 295000.0, 410000.0, 550000.0, 730000.0),
    "Jimbaran": (160000.0, 250000.0, 350000.0, 470000.0, 630000.0),
    "Nusa Dua": (175000.0, 270000.0, 375000.0, 500000.0, 670000.0),
    "Sanur": (140000.0, 215000.0, 300000.0, 400000.0, 540000.0),
    "Ubud": (120000.0, 190000.0, 265000.0, 355000.0, 470000.0),
}

# Used when the listing's area is not in AREA_MEDIAN_PRICES
DEFAULT_MEDIAN_PRICES = (150000.0, 250000.0, 350000.0, 480000.0, 650000.0)

POLICY = {
    # ratio ** exponent; 2x the median price -> ~1.3x the base rate
    "dampening_exponent": log(1.3) / log(2),
    "min_rate_multiplier": 0.6,
    "max_rate_multiplier": 1.6,
    "max_implied_gross_yield": 0.25,  # fraction
    "baseline_rate": 100.0,
    "baseline_rate_per_bedroom": 35.0,
    "default_bedrooms": 1,
    "gross_yield_cap": 80.0,  # percentage
    "net_yield_floor": -20.0,  # percentage
    "short_lease_years": 15,
    "budget_price_per_bedroom": 50000.0,
    "optimistic_yield": 15.0,  # percentage
    "inflated_yield": 25.0,  # percentage
    "inflated_danger_yield": 50.0,  # percentage
    "agent_occupancy_pct": 85.0,  # what listing agents typically assume
    "rate_adjusted_deviation": 0.25,  # fraction of the area baseline
    "gap_price_ceiling": 250000.0,
    "gap_rate_per_1k_price": 1.0,  # nightly USD per 1,000 USD of asking price
    "hot_deal_yield": 20.0,  # percentage
}

# Price bands used for display and the RATE_PRICE_GAP commentary: (upper bound, label)
PRICE_TIERS = [
    (200000.0, "under $200k"),
    (350000.0, "$200k-$350k"),
    (500000.0, "$350k-$500k"),
    (1000000.0, "$500k-$1M"),
    (float("inf"), "$1M+"),
]

FREEHOLD_SENTINEL = 999
FREEHOLD_MARKERS = ("freehold", "hak milik")
LEASEHOLD_MARKERS = ("leasehold", "hak sewa")
