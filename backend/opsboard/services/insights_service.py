"""
Insights Service — Converts raw Meta insights payloads into InsightRecords and
sums them into summary rows. Also owns the minor/major currency-unit boundary.

All amounts are Decimal internally and quantized to cents at normalization
time, so a summary is the exact sum of the per-entity values it is built from.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

PURCHASE_ACTION = "purchase"
INSIGHT_FIELDS = [
    "spend", "impressions", "clicks", "cpc", "cpm", "ctr",
    "actions", "action_values", "cost_per_action_type",
]


# ── Parsing / formatting helpers ──────────────────────────────────────

def to_decimal(value) -> Decimal:
    """Parse a numeric-as-string Graph value; missing or malformed → 0."""
    if value is None or value == "":
        return ZERO
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def to_int(value) -> int:
    return int(to_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Two-decimal string, e.g. Decimal('25.5') → '25.50'."""
    return f"{quantize(value):.2f}"


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator rounded to cents; 0.00 when the denominator is 0."""
    if denominator <= 0:
        return ZERO.quantize(CENT)
    return quantize(numerator / denominator)


def to_minor_units(amount) -> int:
    """Major currency units → integer cents for the wire (25.50 → 2550)."""
    return int((to_decimal(amount) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(cents) -> Optional[Decimal]:
    """Integer cents from the wire → major units (2550 → Decimal('25.50')). None stays None."""
    if cents is None or cents == "":
        return None
    return quantize(to_decimal(cents) / HUNDRED)


def action_value(entries, action_type: str = PURCHASE_ACTION) -> Decimal:
    """Pick one action type out of a sparse [{action_type, value}] list."""
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("action_type") == action_type:
            return to_decimal(entry.get("value"))
    return ZERO


# ── Records ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class InsightRecord:
    spend: Decimal
    revenue: Decimal
    impressions: int
    clicks: int
    purchases: int
    ctr: Decimal
    cpc: Decimal
    cpm: Decimal
    cpa: Decimal
    roas: Decimal

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.spend

    def as_dict(self) -> dict:
        return {
            "spend": format_money(self.spend),
            "revenue": format_money(self.revenue),
            "impressions": self.impressions,
            "clicks": self.clicks,
            "purchases": self.purchases,
            "ctr": format_money(self.ctr),
            "cpc": format_money(self.cpc),
            "cpm": format_money(self.cpm),
            "cpa": format_money(self.cpa),
            "roas": format_money(self.roas),
            "profit": format_money(self.profit),
        }


def normalize_insights(raw: Optional[dict]) -> InsightRecord:
    """
    Map one raw insights row into an InsightRecord.

    `raw` is the first element of the insights edge's `data` list; an empty or
    missing row means the entity did not deliver and yields all zeros.
    cpa is the upstream cost-per-purchase, passed through as reported.
    """
    raw = raw or {}
    spend = quantize(to_decimal(raw.get("spend")))
    revenue = quantize(action_value(raw.get("action_values")))
    return InsightRecord(
        spend=spend,
        revenue=revenue,
        impressions=max(to_int(raw.get("impressions")), 0),
        clicks=max(to_int(raw.get("clicks")), 0),
        purchases=max(to_int(action_value(raw.get("actions"))), 0),
        ctr=quantize(to_decimal(raw.get("ctr"))),
        cpc=quantize(to_decimal(raw.get("cpc"))),
        cpm=quantize(to_decimal(raw.get("cpm"))),
        cpa=quantize(action_value(raw.get("cost_per_action_type"))),
        roas=ratio(revenue, spend),
    )


def first_row(body) -> Optional[dict]:
    """The single insights row of an insights edge response, if any."""
    if isinstance(body, dict):
        rows = body.get("data") or []
        if rows and isinstance(rows[0], dict):
            return rows[0]
    return None


@dataclass(frozen=True)
class InsightSummary:
    """Totals across many entities. Ratios are derived from the sums, never averaged."""
    spend: Decimal
    revenue: Decimal
    impressions: int
    clicks: int
    purchases: int
    count: int
    with_insights: int

    @property
    def roas(self) -> Decimal:
        return ratio(self.revenue, self.spend)

    @property
    def cpa(self) -> Decimal:
        return ratio(self.spend, Decimal(self.purchases))

    @property
    def ctr(self) -> Decimal:
        return ratio(Decimal(self.clicks) * HUNDRED, Decimal(self.impressions))

    @property
    def cpc(self) -> Decimal:
        return ratio(self.spend, Decimal(self.clicks))

    @property
    def cpm(self) -> Decimal:
        return ratio(self.spend * Decimal(1000), Decimal(self.impressions))

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.spend

    def as_record(self) -> InsightRecord:
        return InsightRecord(
            spend=self.spend, revenue=self.revenue,
            impressions=self.impressions, clicks=self.clicks, purchases=self.purchases,
            ctr=self.ctr, cpc=self.cpc, cpm=self.cpm, cpa=self.cpa, roas=self.roas,
        )

    def as_dict(self) -> dict:
        return {
            **self.as_record().as_dict(),
            "count": self.count,
            "withInsights": self.with_insights,
        }


def summarize(records: Iterable[Optional[InsightRecord]]) -> InsightSummary:
    """
    Sum a sequence of per-entity records. A None record (failed insights
    call) counts towards `count` and contributes zero to every total.
    """
    spend = revenue = ZERO
    impressions = clicks = purchases = count = with_insights = 0
    for rec in records:
        count += 1
        if rec is None:
            continue
        with_insights += 1
        spend += rec.spend
        revenue += rec.revenue
        impressions += rec.impressions
        clicks += rec.clicks
        purchases += rec.purchases
    return InsightSummary(
        spend=spend, revenue=revenue, impressions=impressions, clicks=clicks,
        purchases=purchases, count=count, with_insights=with_insights,
    )
