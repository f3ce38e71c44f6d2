# Overview: Service-layer operations for partner settlement; carry-forward profit split and the dashboard series.

"""
Partner settlement

Periods are folded oldest -> newest with one running value, the carry:

    balance = carry + net_result
    balance <= 0: nothing is distributed, carry = balance
    balance  > 0: divisible = balance
                  partner   = divisible * fraction (half-up, cents)
                  owner     = divisible - partner
                  carry     = 0

Losses roll forward until profit absorbs them. A positive balance is always
distributed in full, so carry never stays positive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import PartnerShareConfig
from ..time_utils import to_iso_date, today
from ..validation import CENTS, ValidationError, format_amount
from . import aggregation_service
from .calendar_service import trailing_periods
from .concurrency import run_with_retry

ZERO = Decimal("0")
HUNDRED = Decimal("100")
FRACTION_PLACES = Decimal("0.0001")


@dataclass(frozen=True)
class SettlementRow:
    start: date
    end: date  # exclusive
    total_entries: Decimal
    total_exits: Decimal
    net_result: Decimal
    movement_count: int
    carry_before: Decimal
    carry_after: Decimal
    divisible: Decimal
    partner_share_fraction: Decimal
    partner_part: Decimal
    owner_part: Decimal

    def to_dict(self) -> dict:
        return {
            "start": to_iso_date(self.start),
            "end": to_iso_date(self.end),
            "total_entries": format_amount(self.total_entries),
            "total_exits": format_amount(self.total_exits),
            "net_result": format_amount(self.net_result),
            "movement_count": self.movement_count,
            "carry_before": format_amount(self.carry_before),
            "carry_after": format_amount(self.carry_after),
            "divisible": format_amount(self.divisible),
            "partner_share_fraction": str(self.partner_share_fraction),
            "partner_part": format_amount(self.partner_part),
            "owner_part": format_amount(self.owner_part),
        }


def _check_fraction(fraction: Any) -> Decimal:
    if isinstance(fraction, (bool, float)) or not isinstance(fraction, (int, Decimal)):
        raise ValidationError("FRACTION_INVALID", "partner share fraction must be a Decimal")
    value = Decimal(fraction)
    if value < 0 or value > 1:
        raise ValidationError("FRACTION_INVALID", "partner share fraction must be within 0..1")
    return value


def settle(periods: Iterable, partner_share_fraction: Any) -> list[SettlementRow]:
    """
    Fold period aggregates into settlement rows, in the given order. Pure.

    Each period needs `start_date`, `end_date`, `total_entries`,
    `total_exits`, `net_result` and `movement_count`.
    """
    fraction = _check_fraction(partner_share_fraction)

    rows: list[SettlementRow] = []
    carry = ZERO
    for period in periods:
        net = Decimal(period.net_result)
        balance = carry + net

        if balance <= 0:
            divisible = partner = owner = ZERO
            carry_after = balance
        else:
            divisible = balance
            partner = (divisible * fraction).quantize(CENTS, rounding=ROUND_HALF_UP)
            owner = divisible - partner
            carry_after = ZERO

        rows.append(SettlementRow(
            start=period.start_date,
            end=period.end_date,
            total_entries=Decimal(period.total_entries),
            total_exits=Decimal(period.total_exits),
            net_result=net,
            movement_count=period.movement_count,
            carry_before=carry,
            carry_after=carry_after,
            divisible=divisible,
            partner_share_fraction=fraction,
            partner_part=partner,
            owner_part=owner,
        ))
        carry = carry_after
    return rows


# =============================================================================
# PARTNER CONFIG
# =============================================================================

def _config_row(location_id: int) -> PartnerShareConfig | None:
    return db.session.query(PartnerShareConfig).filter_by(location_id=location_id).first()


def effective_fraction(location_id: int) -> Decimal:
    """Configured fraction, or zero when sharing is disabled or unconfigured."""
    row = _config_row(location_id)
    if not row or not row.is_enabled:
        return ZERO
    return Decimal(row.share_fraction)


def get_partner_config(location_id: int) -> dict:
    row = _config_row(location_id)
    if not row:
        return {"is_enabled": False, "percentage": "0.00"}
    percentage = (Decimal(row.share_fraction) * HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)
    return {"is_enabled": bool(row.is_enabled), "percentage": str(percentage)}


def _parse_percentage(raw: Any) -> Decimal:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("PERCENTAGE_INVALID", "percentage is required")
    try:
        value = Decimal(str(raw).strip())
    except ArithmeticError:
        raise ValidationError("PERCENTAGE_INVALID", f"Invalid percentage: {raw!r}")
    if not value.is_finite() or value < 0 or value > HUNDRED:
        raise ValidationError("PERCENTAGE_INVALID", "percentage must be within 0..100")
    return value


def set_partner_config(location_id: int, is_enabled: bool, percentage: Any) -> dict:
    """Upsert the location's partner share; percentage 0..100 is stored as 0..1."""
    if not isinstance(is_enabled, bool):
        raise ValidationError("BAD_REQUEST", "is_enabled must be a boolean")
    fraction = (_parse_percentage(percentage) / HUNDRED).quantize(FRACTION_PLACES, rounding=ROUND_HALF_UP)

    def _op():
        row = _config_row(location_id)
        if row is None:
            row = PartnerShareConfig(location_id=location_id)
            db.session.add(row)
        row.is_enabled = is_enabled
        row.share_fraction = fraction
        db.session.commit()
        return get_partner_config(location_id)

    return run_with_retry(_op)


# =============================================================================
# DASHBOARD
# =============================================================================

def clamp_count(count: int | None) -> int:
    maximum = current_app.config["DASHBOARD_MAX_PERIODS"]
    if count is None:
        count = current_app.config["DASHBOARD_DEFAULT_PERIODS"]
    return max(1, min(count, maximum))


def dashboard(location_id: int, mode: str, count: int | None = None) -> dict:
    """
    Settlement series for the `count` periods ending at the latest movement.

    The anchor is the most recent movement date, or today in BUSINESS_TIMEZONE
    when the location has no movements yet. Rows are oldest -> newest.
    """
    count = clamp_count(count)
    anchor = aggregation_service.last_movement_date(location_id)
    if anchor is None:
        anchor = today(current_app.config.get("BUSINESS_TIMEZONE"))
    periods = trailing_periods(mode, anchor, count)

    movements = aggregation_service.load_movements(location_id, periods[0].start, periods[-1].end)
    summaries = [
        aggregation_service.summarize(location_id, movements, p.start, p.end)
        for p in periods
    ]

    fraction = effective_fraction(location_id)
    rows = settle(summaries, fraction)

    return {
        "mode": mode,
        "count": count,
        "anchor": to_iso_date(anchor),
        "partner": get_partner_config(location_id),
        "rows": [r.to_dict() for r in rows],
    }
