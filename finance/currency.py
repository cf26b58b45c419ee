import logging
import math
import re
from typing import Mapping, Tuple

from config import FALLBACK_CURRENCY_RATES
from models import Listing

logger = logging.getLogger(__name__)

PRICE_PATTERN = re.compile(
    r"(IDR|USD|AUD|EUR|SGD)\s*(\d{1,3}(?:[.,\s]\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_DOTTED_THOUSANDS = re.compile(r"^\d{1,3}(\.\d{3})+$")

# Bare numbers at or above this are assumed to be Rupiah
IDR_MAGNITUDE = 1_000_000


def parse_amount(text: str) -> float:
    """
    Parse a numeric literal such as '5.500.000.000', '320,000' or '1 250 000.50'.
    Dotted groups of three digits are thousands separators (Indonesian style).
    Returns 0.0 when nothing usable is found.
    """
    s = re.sub(r"\s+", "", text or "").rstrip(".,")
    if not s:
        return 0.0
    if _DOTTED_THOUSANDS.match(s):
        s = s.replace(".", "")
    else:
        s = s.replace(",", "")
        if s.count(".") > 1:
            s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return 0.0


def parse_price_description(text: str) -> Tuple[float, str]:
    """Leading currency code + amount out of free text; (0.0, '') when absent."""
    m = PRICE_PATTERN.search(text or "")
    if not m:
        return 0.0, ""
    return parse_amount(m.group(2)), m.group(1).upper()


def convert_to_usd(amount: float, currency: str, rates: Mapping[str, float]) -> float:
    rate = rates.get(currency.upper()) if currency else None
    if not rate or rate <= 0:
        # A missing rate is a data problem; leave the amount as-is
        logger.warning("No usable %s rate, price left unconverted", currency)
        return float(amount)
    return float(amount) / rate


def convert_from_usd(amount_usd: float, currency: str, rates: Mapping[str, float]) -> float:
    rate = rates.get(currency.upper()) if currency else None
    if not rate or rate <= 0:
        logger.warning("No usable %s rate, showing USD amount", currency)
        return float(amount_usd)
    return float(amount_usd) * rate


def normalize_price(
    listing: Listing, rates: Mapping[str, float] = FALLBACK_CURRENCY_RATES
) -> Tuple[float, str]:
    """
    Returns (amount_usd, source_currency) for a listing.

    1) Currency code + amount parsed from the price description
    2) Otherwise the raw numeric price; >= 1,000,000 is taken as IDR, else USD
    3) Converted with the injected units-per-USD table

    Never raises: an unparseable price comes back as (0.0, 'USD').
    """
    amount, currency = parse_price_description(listing.price_description)
    if amount <= 0:
        raw = listing.raw_price or 0.0
        if not math.isfinite(raw) or raw <= 0:
            logger.debug("Listing %s has no usable price", listing.listing_id)
            return 0.0, "USD"
        amount = raw
        currency = "IDR" if raw >= IDR_MAGNITUDE else "USD"
    return convert_to_usd(amount, currency, rates), currency


def format_money(x, currency: str = "USD") -> str:
    try:
        if currency == "USD":
            return f"${x:,.0f}"
        return f"{currency} {x:,.0f}"
    except (TypeError, ValueError):
        return "-"
