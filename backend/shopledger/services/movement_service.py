# Overview: Service-layer operations for movement creation; validates shift/name rules against the effective action config.

from __future__ import annotations

from datetime import date
from typing import Any

from ..extensions import db
from ..models import Movement
from ..models.ledger import SHIFTS
from ..validation import ValidationError, parse_amount
from . import action_config_service
from .concurrency import run_with_retry


def _normalize_shift(raw: Any) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("SHIFT_INVALID", "shift must be a string")
    value = raw.strip().upper()
    return value or None


def _normalize_name(raw: Any) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("NAME_REQUIRED", "person_name must be a string")
    value = raw.strip()
    return value or None


def create_movement(
    location_id: int,
    user_id: int,
    day: date,
    action_id: int,
    amount: Any,
    shift: Any = None,
    person_name: Any = None,
) -> Movement:
    """
    Record one movement from the detailed entry form.

    RULES:
    - amount > 0 (AMOUNT_INVALID)
    - action enabled at the location and never PARTNER, whatever the role
    - uses_shift: shift required and known; otherwise shift refused
    - uses_name: non-blank name required; otherwise the name is dropped
    - type is captured from the effective config now and never recomputed
    """
    value = parse_amount(amount)
    shift_value = _normalize_shift(shift)
    name_value = _normalize_name(person_name)

    effective = action_config_service.require_enabled_action(location_id, action_id)

    if effective.uses_shift:
        if shift_value is None:
            raise ValidationError("SHIFT_REQUIRED", f"{effective.name} requires a shift")
        if shift_value not in SHIFTS:
            raise ValidationError("SHIFT_INVALID", f"shift must be one of {', '.join(SHIFTS)}")
    elif shift_value is not None:
        raise ValidationError("SHIFT_NOT_ALLOWED", f"{effective.name} does not take a shift")

    if effective.uses_name:
        if name_value is None:
            raise ValidationError("NAME_REQUIRED", f"{effective.name} requires a person name")
    else:
        name_value = None

    def _op():
        movement = Movement(
            location_id=location_id,
            date=day,
            action_id=action_id,
            type=effective.type,
            amount=value,
            shift=shift_value,
            person_name=name_value,
            created_by_user_id=user_id,
        )
        db.session.add(movement)
        db.session.commit()
        return movement

    return run_with_retry(_op)
