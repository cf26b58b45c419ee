import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, List, Optional, Tuple

from config import BVT_DEFAULTS, ASSUMPTION_BOUNDS, POLICY


class Tenure(str, Enum):
    FREEHOLD = "freehold"
    LEASEHOLD = "leasehold"
    UNKNOWN = "unknown"  # no lease term listed; assumed leasehold


class FlagLevel(str, Enum):
    DANGER = "danger"
    WARNING = "warning"
    ASSUMED = "assumed"

    @property
    def rank(self) -> int:
        """Badge priority, higher wins."""
        return {"danger": 3, "warning": 2, "assumed": 1}[self.value]


def _to_float(value: Any) -> Optional[float]:
    """Loose numeric cell to float. Blanks, junk, NaN and inf become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    return result if math.isfinite(result) else None


def _is_missing(value: Any) -> bool:
    # pandas exports write NaN into empty cells of any column
    return value is None or (isinstance(value, float) and not math.isfinite(value))


def _first(record: dict, *keys: str) -> Any:
    """Value of the first key that is present and not missing."""
    for key in keys:
        value = record.get(key)
        if not _is_missing(value):
            return value
    return None


def _text(record: dict, *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if not _is_missing(value) and str(value).strip():
            return str(value)
    return ""


def _to_count(value: Any) -> Optional[int]:
    """Bedroom/bathroom counts: anything non-positive or unparseable is unknown."""
    num = _to_float(value)
    if num is None or num <= 0:
        return None
    return int(num)


def _split_codes(value: Any) -> Optional[Tuple[str, ...]]:
    if _is_missing(value):
        return None
    parts = value if isinstance(value, (list, tuple)) else str(value).split(",")
    codes = []
    for part in parts:
        code = str(part).strip().upper()
        if code and code not in codes:
            codes.append(code)
    return tuple(codes)


def _split_factors(value: Any) -> Tuple[str, ...]:
    if _is_missing(value) or not value:
        return ()
    parts = value if isinstance(value, (list, tuple)) else str(value).split(" | ")
    return tuple(p.strip() for p in parts if str(p).strip())


@dataclass(frozen=True)
class Listing:
    listing_id: Any = None
    name: str = ""
    url: str = ""
    price_description: str = ""
    raw_price: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    land_size: float = 0.0
    building_size: float = 0.0
    location: str = ""
    lease_years: Optional[int] = None
    features_text: str = ""
    estimated_nightly_rate: Optional[float] = None
    estimated_occupancy: Optional[float] = None  # percentage
    agent_claimed_rate: Optional[float] = None
    pipeline_flags: Optional[Tuple[str, ...]] = None
    rate_factors: Tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: dict) -> "Listing":
        """Build a Listing from an upstream listings_tracker row.

        Upstream rows are loosely typed; blanks and junk become None and the
        defaulting rules of the yield model take over from there.
        """
        bedrooms = _to_count(record.get("bedrooms"))
        bathrooms = _to_count(record.get("bathrooms"))
        beds_baths = _text(record, "beds_baths")
        if beds_baths and (bedrooms is None or bathrooms is None):
            parts = str(beds_baths).split("/")
            if bedrooms is None:
                bedrooms = _to_count(parts[0])
            if bathrooms is None and len(parts) > 1:
                bathrooms = _to_count(parts[1])

        lease = _to_float(record.get("lease_years"))
        occupancy = _to_float(_first(record, "est_occupancy", "estimated_occupancy"))
        if occupancy is not None and 0 < occupancy <= 1:
            occupancy *= 100.0

        flags = _first(record, "pipeline_flags", "flags")

        return cls(
            listing_id=_first(record, "id", "listing_id"),
            name=_text(record, "villa_name", "name"),
            url=_text(record, "url"),
            price_description=_text(record, "price_description"),
            raw_price=_to_float(_first(record, "last_price", "raw_price")),
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            land_size=_to_float(record.get("land_size")) or 0.0,
            building_size=_to_float(record.get("building_size")) or 0.0,
            location=_text(record, "location"),
            lease_years=int(lease) if lease is not None else None,
            features_text=_text(record, "features", "features_text"),
            estimated_nightly_rate=_to_float(
                _first(record, "est_nightly_rate", "estimated_nightly_rate")
            ),
            estimated_occupancy=occupancy if occupancy and occupancy > 0 else None,
            agent_claimed_rate=_to_float(record.get("agent_claimed_rate")),
            pipeline_flags=_split_codes(flags),
            rate_factors=_split_factors(record.get("rate_factors")),
        )


@dataclass(frozen=True)
class Assumptions:
    nightly_multiplier: float = BVT_DEFAULTS["nightly_multiplier"]
    occupancy_pct: float = BVT_DEFAULTS["occupancy_pct"]
    expense_pct: float = BVT_DEFAULTS["expense_pct"]

    def clamped(self) -> "Assumptions":
        """Copy pinned to the compare-panel slider bounds."""
        def pin(name, value):
            lo, hi, _ = ASSUMPTION_BOUNDS[name]
            return min(hi, max(lo, float(value)))

        return Assumptions(
            nightly_multiplier=pin("nightly_multiplier", self.nightly_multiplier),
            occupancy_pct=pin("occupancy_pct", self.occupancy_pct),
            expense_pct=pin("expense_pct", self.expense_pct),
        )


@dataclass(frozen=True)
class Policy:
    dampening_exponent: float = POLICY["dampening_exponent"]
    min_rate_multiplier: float = POLICY["min_rate_multiplier"]
    max_rate_multiplier: float = POLICY["max_rate_multiplier"]
    max_implied_gross_yield: float = POLICY["max_implied_gross_yield"]
    baseline_rate: float = POLICY["baseline_rate"]
    baseline_rate_per_bedroom: float = POLICY["baseline_rate_per_bedroom"]
    default_bedrooms: int = POLICY["default_bedrooms"]
    gross_yield_cap: float = POLICY["gross_yield_cap"]
    net_yield_floor: float = POLICY["net_yield_floor"]
    short_lease_years: int = POLICY["short_lease_years"]
    budget_price_per_bedroom: float = POLICY["budget_price_per_bedroom"]
    optimistic_yield: float = POLICY["optimistic_yield"]
    inflated_yield: float = POLICY["inflated_yield"]
    inflated_danger_yield: float = POLICY["inflated_danger_yield"]
    agent_occupancy_pct: float = POLICY["agent_occupancy_pct"]
    rate_adjusted_deviation: float = POLICY["rate_adjusted_deviation"]
    gap_price_ceiling: float = POLICY["gap_price_ceiling"]
    gap_rate_per_1k_price: float = POLICY["gap_rate_per_1k_price"]
    hot_deal_yield: float = POLICY["hot_deal_yield"]


BVT_ASSUMPTIONS = Assumptions()
DEFAULT_POLICY = Policy()


@dataclass(frozen=True)
class RateEstimate:
    rate: float
    base_rate: float
    multiplier: float = 1.0
    cap: Optional[float] = None
    capped: bool = False
    source: str = "area"  # 'pipeline', 'area' or 'baseline'
    factors: Tuple[str, ...] = ()

    @property
    def rounded(self) -> int:
        """Whole-dollar nightly rate for display"""
        return int(round(self.rate))

    @property
    def deviation(self) -> float:
        """Relative change from the area baseline (0.3 == +30%)"""
        if self.base_rate <= 0:
            return 0.0
        return self.rate / self.base_rate - 1.0


@dataclass(frozen=True)
class Flag:
    level: FlagLevel
    code: str
    label: str
    detail: str


@dataclass(frozen=True)
class YieldResult:
    nightly_rate: float
    gross_revenue: float
    expenses: float
    net_revenue: float
    gross_yield: float
    cash_flow_yield: float
    net_yield: float
    lease_depreciation_pct: float
    lease_depreciation_abs: float
    is_freehold: bool
    tenure: Tenure
    lease_years: Optional[int]
    price_usd: float
    flags: List[Flag] = field(default_factory=list)

    def to_dict(self) -> dict:
        out = asdict(self)
        out["tenure"] = self.tenure.value
        out["flags"] = [
            {"level": f.level.value, "code": f.code, "label": f.label, "detail": f.detail}
            for f in self.flags
        ]
        return out

    def display(self) -> dict:
        """Rounded figures for table cells and popups"""
        return {
            "nightly_rate": int(round(self.nightly_rate)),
            "gross_yield": round(self.gross_yield, 1),
            "cash_flow_yield": round(self.cash_flow_yield, 1),
            "net_yield": round(self.net_yield, 1),
            "net_revenue": int(round(self.net_revenue)),
            "lease_depreciation_abs": int(round(self.lease_depreciation_abs)),
        }


@dataclass(frozen=True)
class Evaluation:
    """One listing run through the whole pipeline: what every view renders."""

    listing: Listing
    price_usd: float
    currency: str
    estimate: RateEstimate
    result: YieldResult

    @property
    def flags(self) -> List[Flag]:
        return self.result.flags

    def to_dict(self) -> dict:
        out = {
            "listing_id": self.listing.listing_id,
            "name": self.listing.name,
            "location": self.listing.location,
            "currency": self.currency,
            "rate_source": self.estimate.source,
            "rate_capped": self.estimate.capped,
            "rate_factors": list(self.estimate.factors),
        }
        out.update(self.result.to_dict())
        return out


@dataclass(frozen=True)
class ComparisonSession:
    """Slider assumptions and favorited listing ids for one compare-panel session."""

    assumptions: Assumptions = field(default_factory=Assumptions)
    favorites: frozenset = frozenset()

    def with_assumptions(self, **changes) -> "ComparisonSession":
        current = asdict(self.assumptions)
        current.update(changes)
        return ComparisonSession(Assumptions(**current).clamped(), self.favorites)

    def toggle_favorite(self, listing_id) -> "ComparisonSession":
        if listing_id in self.favorites:
            return ComparisonSession(self.assumptions, self.favorites - {listing_id})
        return ComparisonSession(self.assumptions, self.favorites | {listing_id})
