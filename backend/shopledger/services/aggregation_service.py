# Overview: Service-layer operations for ledger reads and the day editor; sums movements per day and per period.

"""
Movement aggregation

INVARIANTS:
- net_result == total_entries - total_exits, for every day and every summary
- total_impacted adds +amount for impacting ENTRY and -amount for impacting EXIT
- impacting is read from the location override row; an action without a row
  uses its catalog default
- days are returned most-recent-first; movements inside a day by id
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from ..extensions import db
from ..models import ActionDefinition, Movement
from ..models.actions import TYPE_ENTRY
from ..time_utils import to_iso_date
from ..validation import ValidationError, format_amount, parse_amount
from . import action_config_service
from .calendar_service import SCOPE_ALL, SCOPE_DAY, PERIOD_SCOPES, bounds_for, group_into_weeks
from .concurrency import lock_for_update, run_with_retry

ZERO = Decimal("0")

LEDGER_SCOPES = PERIOD_SCOPES + (SCOPE_ALL,)


@dataclass
class DaySummary:
    date: date
    movements: list = field(default_factory=list)
    total_entries: Decimal = ZERO
    total_exits: Decimal = ZERO
    total_impacted: Decimal = ZERO

    @property
    def net_result(self) -> Decimal:
        return self.total_entries - self.total_exits

    @property
    def movement_count(self) -> int:
        return len(self.movements)

    def summary_dict(self) -> dict:
        return {
            "total_entries": format_amount(self.total_entries),
            "total_exits": format_amount(self.total_exits),
            "net_result": format_amount(self.net_result),
            "total_impacted": format_amount(self.total_impacted),
            "movement_count": self.movement_count,
        }


@dataclass
class LedgerSummary:
    """Totals over a (possibly open) date range plus the per-day breakdown."""
    start_date: date | None
    end_date: date | None  # exclusive
    days: list[DaySummary] = field(default_factory=list)
    total_entries: Decimal = ZERO
    total_exits: Decimal = ZERO
    total_impacted: Decimal = ZERO
    movement_count: int = 0

    @property
    def net_result(self) -> Decimal:
        return self.total_entries - self.total_exits

    def summary_dict(self) -> dict:
        return {
            "start_date": to_iso_date(self.start_date) if self.start_date else None,
            "end_date": to_iso_date(self.end_date) if self.end_date else None,
            "total_entries": format_amount(self.total_entries),
            "total_exits": format_amount(self.total_exits),
            "net_result": format_amount(self.net_result),
            "total_impacted": format_amount(self.total_impacted),
            "movement_count": self.movement_count,
        }


def aggregate(
    movements: Iterable,
    impacts_by_action_id: dict[int, bool],
    catalog_impacts_by_action_id: dict[int, bool] | None = None,
    start: date | None = None,
    end: date | None = None,
) -> LedgerSummary:
    """
    Partition movements by business day and sum them.

    Movements need `id`, `date`, `action_id`, `type` and `amount`. Movements
    outside [start, end) are ignored when bounds are given. Pure.
    """
    catalog_impacts_by_action_id = catalog_impacts_by_action_id or {}
    summary = LedgerSummary(start_date=start, end_date=end)
    by_day: dict[date, DaySummary] = {}

    for mv in sorted(movements, key=lambda m: m.id):
        if start is not None and mv.date < start:
            continue
        if end is not None and mv.date >= end:
            continue

        day = by_day.get(mv.date)
        if day is None:
            day = DaySummary(date=mv.date)
            by_day[mv.date] = day

        amount = Decimal(mv.amount)
        impacting = impacts_by_action_id.get(mv.action_id)
        if impacting is None:
            impacting = catalog_impacts_by_action_id.get(mv.action_id, True)

        day.movements.append(mv)
        if mv.type == TYPE_ENTRY:
            day.total_entries += amount
            if impacting:
                day.total_impacted += amount
        else:
            day.total_exits += amount
            if impacting:
                day.total_impacted -= amount

    summary.days = sorted(by_day.values(), key=lambda d: d.date, reverse=True)
    for day in summary.days:
        summary.total_entries += day.total_entries
        summary.total_exits += day.total_exits
        summary.total_impacted += day.total_impacted
        summary.movement_count += day.movement_count
    return summary


def _catalog_impacts(action_ids: list[int]) -> dict[int, bool]:
    if not action_ids:
        return {}
    rows = db.session.query(ActionDefinition.id, ActionDefinition.impacts_total_default).filter(
        ActionDefinition.id.in_(action_ids)
    ).all()
    return {row[0]: bool(row[1]) for row in rows}


def load_movements(location_id: int, start: date | None = None, end: date | None = None) -> list[Movement]:
    query = db.session.query(Movement).filter(Movement.location_id == location_id)
    if start is not None:
        query = query.filter(Movement.date >= start)
    if end is not None:
        query = query.filter(Movement.date < end)
    return query.order_by(Movement.date.desc(), Movement.id.asc()).all()


def summarize(location_id: int, movements: list, start: date | None = None, end: date | None = None) -> LedgerSummary:
    """aggregate() with the location's impacting flags loaded from the database."""
    action_ids = sorted({m.action_id for m in movements})
    return aggregate(
        movements,
        action_config_service.impacts_total_by_action(location_id, action_ids),
        _catalog_impacts(action_ids),
        start=start,
        end=end,
    )


def last_movement_date(location_id: int) -> date | None:
    return db.session.query(db.func.max(Movement.date)).filter(
        Movement.location_id == location_id
    ).scalar()


def _day_dict(day: DaySummary) -> dict:
    return {
        "date": to_iso_date(day.date),
        "movements": [m.to_dict() for m in day.movements],
        "summary": day.summary_dict(),
    }


def _week_dict(block) -> dict:
    return {
        "start": to_iso_date(block.start),
        "end": to_iso_date(block.end),
        "days": [to_iso_date(d.date) for d in block.days],
        "total_entries": format_amount(block.total_entries),
        "total_exits": format_amount(block.total_exits),
        "net_result": format_amount(block.net_result),
        "total_impacted": format_amount(block.total_impacted),
    }


def ledger_view(location_id: int, scope: str, reference: date | None) -> dict:
    """
    Read model behind the ledger screen.

    scope=all ignores the date; every other scope requires it.
    """
    if scope not in LEDGER_SCOPES:
        raise ValidationError("SCOPE_INVALID", f"scope must be one of {', '.join(LEDGER_SCOPES)}")

    if scope == SCOPE_ALL:
        start = end = None
    else:
        if reference is None:
            raise ValidationError("DATE_REQUIRED", "date is required unless scope=all")
        period = bounds_for(scope, reference)
        start, end = period.start, period.end

    movements = load_movements(location_id, start, end)
    summary = summarize(location_id, movements, start, end)
    last_date = last_movement_date(location_id)

    return {
        "scope": scope,
        "date": to_iso_date(reference) if reference and scope != SCOPE_ALL else None,
        "days": [_day_dict(d) for d in summary.days],
        "summary": summary.summary_dict(),
        "weeks": [] if scope == SCOPE_DAY else [_week_dict(w) for w in group_into_weeks(summary.days)],
        "meta": {"last_movement_date": to_iso_date(last_date) if last_date else None},
    }


# =============================================================================
# DAY EDITOR
# =============================================================================

def _slot_movements(location_id: int, day: date, *, lock: bool = False) -> dict[int, Movement]:
    """
    One slot per action: the oldest movement without shift and without name.

    Tagged movements (shift or person name) belong to the detailed entry form
    and are never edited from here. With lock=True the rows are read
    FOR UPDATE so a concurrent save waits instead of overwriting mid-batch.
    """
    query = (
        db.session.query(Movement)
        .filter(
            Movement.location_id == location_id,
            Movement.date == day,
            Movement.shift.is_(None),
            Movement.person_name.is_(None),
        )
        .order_by(Movement.id.asc())
    )
    if lock:
        query = lock_for_update(query)
    rows = query.all()
    slots: dict[int, Movement] = {}
    for mv in rows:
        slots.setdefault(mv.action_id, mv)
    return slots


def get_day_slots(location_id: int, day: date) -> dict[int, Decimal]:
    return {action_id: Decimal(mv.amount) for action_id, mv in _slot_movements(location_id, day).items()}


def _parse_slot_values(values: Any) -> dict[int, Decimal]:
    if not isinstance(values, dict):
        raise ValidationError("BAD_REQUEST", "values must be an object of action_id -> amount")

    parsed: dict[int, Decimal] = {}
    for raw_key, raw_amount in values.items():
        try:
            action_id = int(raw_key)
        except (TypeError, ValueError):
            raise ValidationError("BAD_REQUEST", f"Invalid action id: {raw_key!r}")
        parsed[action_id] = parse_amount(raw_amount, allow_zero=True, field=f"values[{action_id}]")
    return parsed


def save_day_slots(location_id: int, day: date, values: Any, user_id: int) -> dict:
    """
    Save the quick day editor in one transaction.

    - existing slot: amount replaced, type re-captured from current config
    - no slot, non-zero amount: new untagged movement
    - no slot, zero: nothing written
    Concurrent saves are last-write-wins.
    """
    parsed = _parse_slot_values(values)

    def _op():
        effective = {
            action_id: action_config_service.require_enabled_action(location_id, action_id)
            for action_id in parsed
        }
        slots = _slot_movements(location_id, day, lock=True)

        created = updated = 0
        for action_id, amount in parsed.items():
            eff = effective[action_id]
            existing = slots.get(action_id)
            if existing is not None:
                existing.amount = amount
                existing.type = eff.type
                updated += 1
            elif amount > 0:
                db.session.add(Movement(
                    location_id=location_id,
                    date=day,
                    action_id=action_id,
                    type=eff.type,
                    amount=amount,
                    created_by_user_id=user_id,
                ))
                created += 1

        db.session.commit()
        return {"created": created, "updated": updated}

    return run_with_retry(_op)
