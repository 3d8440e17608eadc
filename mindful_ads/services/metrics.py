"""Campaign performance ratios and counter merging.

All ratio helpers return ``0`` for a zero denominator and round half-up to two
decimal places.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

COUNTER_FIELDS = ("impressions", "clicks", "conversions", "cost", "leads")
INTEGER_COUNTERS = ("impressions", "clicks", "conversions", "leads")


def round_2(value: float | int) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _ratio(numerator: float | int, denominator: float | int, scale: float | int = 1) -> float:
    if not denominator:
        return 0
    return round_2(Decimal(str(numerator)) / Decimal(str(denominator)) * Decimal(str(scale)))


def calculate_percentage(numerator: float | int, denominator: float | int) -> float:
    return _ratio(numerator, denominator, 100)


def calculate_ctr(clicks: int, impressions: int) -> float:
    return calculate_percentage(clicks, impressions)


def calculate_cpc(cost: float, clicks: int) -> float:
    return _ratio(cost, clicks)


def calculate_cpl(cost: float, leads: int) -> float:
    return _ratio(cost, leads)


def calculate_cpm(cost: float, impressions: int) -> float:
    return _ratio(cost, impressions, 1000)


def calculate_conversion_rate(conversions: int, clicks: int) -> float:
    return calculate_percentage(conversions, clicks)


def calculate_cost_per_conversion(cost: float, conversions: int) -> float:
    return _ratio(cost, conversions)


def counters_from_campaign(campaign: Any) -> dict[str, float]:
    return {field: getattr(campaign, field) or 0 for field in COUNTER_FIELDS}


def calculate_campaign_metrics(counters: Mapping[str, float]) -> dict[str, float]:
    impressions = counters.get("impressions") or 0
    clicks = counters.get("clicks") or 0
    conversions = counters.get("conversions") or 0
    cost = counters.get("cost") or 0
    leads = counters.get("leads") or 0
    return {
        "ctr": calculate_ctr(clicks, impressions),
        "cpc": calculate_cpc(cost, clicks),
        "cpl": calculate_cpl(cost, leads),
        "cpm": calculate_cpm(cost, impressions),
        "conversionRate": calculate_conversion_rate(conversions, clicks),
        "costPerConversion": calculate_cost_per_conversion(cost, conversions),
    }


def sum_platform_metrics(fetched: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    totals: dict[str, float] = {"impressions": 0, "clicks": 0, "conversions": 0, "cost": 0.0}
    for metrics in fetched:
        for field in totals:
            totals[field] += metrics.get(field) or 0
    return totals


def merge_platform_metrics(
    current: Mapping[str, float],
    fetched: Iterable[Mapping[str, Any]],
) -> dict[str, float]:
    """Fold per-platform lifetime totals into the stored counters.

    Platforms report lifetime totals, so each stored counter becomes the larger
    of its current value and the summed platform value. Counters never go down
    here; ``leads`` is tracked locally and passes through unchanged.
    """
    totals = sum_platform_metrics(fetched)
    merged = dict(current)
    for field, value in totals.items():
        existing = current.get(field) or 0
        best = max(existing, value)
        merged[field] = int(best) if field in INTEGER_COUNTERS else round_2(best)
    return merged


def reset_counters() -> dict[str, float]:
    return {"impressions": 0, "clicks": 0, "conversions": 0, "cost": 0.0, "leads": 0}
