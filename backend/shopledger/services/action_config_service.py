# Overview: Service-layer operations for action configuration; catalog defaults merged with per-location overrides.

"""
Action configuration resolution

Effective value per attribute = override field if set, else catalog default.

- No override row at all: every field uses the catalog default and the
  action counts as enabled.
- Override row present with a NULL field: that single field uses the
  default; the other fields keep their explicit overrides.
- impacts_total is NOT NULL on the row, so once a row exists it always wins.

Override rows are provisioned by ensure_location_overrides(), an idempotent
INSERT ... ON CONFLICT DO NOTHING keyed by (location_id, action_id). Reads
never write; a missing row resolves to the same values ensure would insert.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..extensions import db
from ..models import ActionDefinition, Location, LocationActionOverride
from ..models.actions import (
    CATEGORY_DEPOSIT,
    CATEGORY_ELECTRONIC,
    CATEGORY_OTHER,
    CATEGORY_PARTNER,
    CATEGORY_SHIFT,
    MOVEMENT_TYPES,
    TYPE_ENTRY,
    TYPE_EXIT,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import insert_ignore_conflicts, run_with_retry


ACTION_CATALOG = [
    {"name": "Night shift", "category": CATEGORY_SHIFT, "default_type": TYPE_ENTRY},
    {"name": "Morning shift", "category": CATEGORY_SHIFT, "default_type": TYPE_ENTRY},
    {"name": "Afternoon shift", "category": CATEGORY_SHIFT, "default_type": TYPE_ENTRY},
    {"name": "Electronic payments", "category": CATEGORY_ELECTRONIC, "default_type": TYPE_ENTRY},
    {"name": "Deposit payment", "category": CATEGORY_DEPOSIT, "default_type": TYPE_EXIT},
    {"name": "Virtual payments", "category": CATEGORY_OTHER, "default_type": TYPE_EXIT},
    {"name": "Owner withdrawal", "category": CATEGORY_OTHER, "default_type": TYPE_EXIT},
    {"name": "Partner", "category": CATEGORY_PARTNER, "default_type": TYPE_EXIT},
]

_NULLABLE_OVERRIDES = ("type_override", "uses_shift_override", "uses_name_override")


@dataclass(frozen=True)
class EffectiveAction:
    action_id: int
    name: str
    category: str
    type: str
    uses_shift: bool
    uses_name: bool
    impacts_total: bool
    is_enabled: bool
    display_order: int
    has_override: bool

    @property
    def is_partner(self) -> bool:
        return self.category == CATEGORY_PARTNER

    def to_dict(self) -> dict:
        return {
            "action_id": self.action_id,
            "name": self.name,
            "category": self.category,
            "type": self.type,
            "uses_shift": self.uses_shift,
            "uses_name": self.uses_name,
            "impacts_total": self.impacts_total,
        }


def _pick(override_value, default_value):
    return default_value if override_value is None else override_value


def resolve_effective(action: ActionDefinition, override: LocationActionOverride | None) -> EffectiveAction:
    """Merge catalog defaults with a (possibly absent) override row. Pure."""
    if override is None:
        return EffectiveAction(
            action_id=action.id,
            name=action.name,
            category=action.category,
            type=action.default_type,
            uses_shift=bool(action.uses_shift),
            uses_name=bool(action.uses_name),
            impacts_total=bool(action.impacts_total_default),
            is_enabled=True,
            display_order=0,
            has_override=False,
        )

    return EffectiveAction(
        action_id=action.id,
        name=action.name,
        category=action.category,
        type=_pick(override.type_override, action.default_type),
        uses_shift=bool(_pick(override.uses_shift_override, action.uses_shift)),
        uses_name=bool(_pick(override.uses_name_override, action.uses_name)),
        impacts_total=bool(override.impacts_total),
        is_enabled=bool(override.is_enabled),
        display_order=override.display_order or 0,
        has_override=True,
    )


# =============================================================================
# CATALOG
# =============================================================================

def seed_action_catalog() -> int:
    """
    Insert missing built-in catalog actions by unique name.

    Existing rows are left exactly as they are. Safe to call repeatedly.
    Does not commit.
    """
    rows = [
        {
            "name": entry["name"],
            "description": None,
            "category": entry["category"],
            "default_type": entry["default_type"],
            "impacts_total_default": True,
            "uses_shift": False,
            "uses_name": False,
            "is_active": True,
        }
        for entry in ACTION_CATALOG
    ]
    return insert_ignore_conflicts(ActionDefinition, rows, conflict_columns=["name"])


def _active_actions() -> list[ActionDefinition]:
    return (
        db.session.query(ActionDefinition)
        .filter(ActionDefinition.is_active.is_(True))
        .order_by(ActionDefinition.name.asc())
        .all()
    )


def _overrides_by_action(location_id: int, action_ids: list[int] | None = None) -> dict[int, LocationActionOverride]:
    query = db.session.query(LocationActionOverride).filter(
        LocationActionOverride.location_id == location_id
    )
    if action_ids is not None:
        if not action_ids:
            return {}
        query = query.filter(LocationActionOverride.action_id.in_(action_ids))
    return {row.action_id: row for row in query.all()}


def _require_location(location_id: int) -> Location:
    location = db.session.query(Location).filter_by(id=location_id, is_active=True).first()
    if not location:
        raise NotFoundError("LOCATION_NOT_FOUND", "Location not found")
    return location


# =============================================================================
# ENSURE
# =============================================================================

def ensure_location_overrides(location_id: int) -> int:
    """
    Make sure every active catalog action has an override row at the location.

    New rows: enabled, order 0, impacts_total = catalog default. Existing
    rows are never touched. Concurrent callers are safe: the unique
    (location_id, action_id) key turns duplicates into no-ops.
    Does not commit; returns the number of rows inserted.
    """
    _require_location(location_id)
    rows = [
        {
            "location_id": location_id,
            "action_id": action.id,
            "is_enabled": True,
            "display_order": 0,
            "type_override": None,
            "uses_shift_override": None,
            "uses_name_override": None,
            "impacts_total": bool(action.impacts_total_default),
            "impacts_total_since": None,
        }
        for action in _active_actions()
    ]
    return insert_ignore_conflicts(
        LocationActionOverride,
        rows,
        conflict_columns=["location_id", "action_id"],
    )


# =============================================================================
# RESOLUTION
# =============================================================================

def effective_actions_by_id(location_id: int) -> dict[int, EffectiveAction]:
    """Every active catalog action (PARTNER included) resolved for the location."""
    actions = _active_actions()
    overrides = _overrides_by_action(location_id)
    return {a.id: resolve_effective(a, overrides.get(a.id)) for a in actions}


def list_effective_actions(location_id: int, *, enabled_only: bool = True) -> list[EffectiveAction]:
    """User-facing actions for a location; PARTNER is never listed."""
    resolved = [
        eff for eff in effective_actions_by_id(location_id).values()
        if not eff.is_partner and (eff.is_enabled or not enabled_only)
    ]
    resolved.sort(key=lambda e: (e.display_order, e.name))
    return resolved


def get_effective_action(location_id: int, action_id: int) -> EffectiveAction:
    action = db.session.query(ActionDefinition).filter_by(id=action_id, is_active=True).first()
    if not action:
        raise NotFoundError("ACTION_NOT_FOUND", f"Action {action_id} not found")
    override = db.session.query(LocationActionOverride).filter_by(
        location_id=location_id, action_id=action_id
    ).first()
    return resolve_effective(action, override)


def require_enabled_action(location_id: int, action_id: int) -> EffectiveAction:
    """Resolve an action that is about to be written against; disabled or PARTNER is a conflict."""
    effective = get_effective_action(location_id, action_id)
    if effective.is_partner:
        raise ConflictError("PARTNER_DISABLED", "Partner actions cannot be used")
    if not effective.is_enabled:
        raise ConflictError("ACTION_NOT_ENABLED", f"Action {action_id} is not enabled at this location")
    return effective


def impacts_total_by_action(location_id: int, action_ids: list[int]) -> dict[int, bool]:
    """
    impacts_total from override rows only, for the given actions.

    Actions without a row are absent from the result; callers fall back to
    the catalog default of the action.
    """
    return {
        action_id: bool(row.impacts_total)
        for action_id, row in _overrides_by_action(location_id, action_ids).items()
    }


# =============================================================================
# CONFIG SCREEN
# =============================================================================

def list_override_config(location_id: int) -> list[dict]:
    _require_location(location_id)
    overrides = _overrides_by_action(location_id)
    out = []
    for action in _active_actions():
        if action.category == CATEGORY_PARTNER:
            continue
        override = overrides.get(action.id)
        effective = resolve_effective(action, override)
        out.append({
            "action_id": action.id,
            "name": action.name,
            "category": action.category,
            "is_enabled": effective.is_enabled,
            "display_order": effective.display_order,
            "effective": {
                "type": effective.type,
                "uses_shift": effective.uses_shift,
                "uses_name": effective.uses_name,
                "impacts_total": effective.impacts_total,
            },
            "defaults": action.defaults_dict(),
            "overrides": {
                "type_override": override.type_override if override else None,
                "uses_shift_override": override.uses_shift_override if override else None,
                "uses_name_override": override.uses_name_override if override else None,
            },
            "impacts_total_since": (
                to_utc_z(override.impacts_total_since) if override and override.impacts_total_since else None
            ),
        })
    out.sort(key=lambda r: (r["display_order"], r["name"]))
    return out


def _validate_override_row(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("BAD_REQUEST", "Each override must be an object")

    action_id = raw.get("action_id")
    if isinstance(action_id, bool) or not isinstance(action_id, int):
        raise ValidationError("BAD_REQUEST", "action_id must be an integer")

    patch: dict = {"action_id": action_id}

    for key in ("is_enabled", "impacts_total"):
        if key in raw:
            if not isinstance(raw[key], bool):
                raise ValidationError("BAD_REQUEST", f"{key} must be a boolean")
            patch[key] = raw[key]

    if "display_order" in raw:
        order = raw["display_order"]
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            raise ValidationError("BAD_REQUEST", "display_order must be an integer >= 0")
        patch["display_order"] = order

    if "type_override" in raw:
        value = raw["type_override"]
        if value is not None and value not in MOVEMENT_TYPES:
            raise ValidationError("BAD_REQUEST", f"type_override must be one of {', '.join(MOVEMENT_TYPES)} or null")
        patch["type_override"] = value

    for key in ("uses_shift_override", "uses_name_override"):
        if key in raw:
            value = raw[key]
            if value is not None and not isinstance(value, bool):
                raise ValidationError("BAD_REQUEST", f"{key} must be a boolean or null")
            patch[key] = value

    return patch


def _apply_patch(row: LocationActionOverride, patch: dict, now: datetime) -> None:
    if "is_enabled" in patch:
        row.is_enabled = patch["is_enabled"]
    if "display_order" in patch:
        row.display_order = patch["display_order"]
    for key in _NULLABLE_OVERRIDES:
        if key in patch:
            setattr(row, key, patch[key])
    if "impacts_total" in patch and bool(row.impacts_total) != patch["impacts_total"]:
        row.impacts_total = patch["impacts_total"]
        row.impacts_total_since = now


def save_overrides(location_id: int, rows: Any) -> list[LocationActionOverride]:
    """
    Batch upsert of override rows for the config screen.

    All-or-nothing: one invalid row (bad value, unknown or inactive action,
    PARTNER action) aborts the batch before anything is committed.
    impacts_total_since moves only for rows whose impacts_total changed.
    """
    if not isinstance(rows, list):
        raise ValidationError("BAD_REQUEST", "overrides must be a list")

    patches = [_validate_override_row(raw) for raw in rows]

    def _op():
        _require_location(location_id)
        action_ids = [p["action_id"] for p in patches]
        actions = {
            a.id: a
            for a in db.session.query(ActionDefinition).filter(
                ActionDefinition.id.in_(action_ids),
                ActionDefinition.is_active.is_(True),
            ).all()
        } if action_ids else {}

        for action_id in action_ids:
            action = actions.get(action_id)
            if action is None:
                raise NotFoundError("ACTION_NOT_FOUND", f"Action {action_id} not found")
            if action.category == CATEGORY_PARTNER:
                raise ConflictError("PARTNER_DISABLED", "Partner actions cannot be configured")

        ensure_location_overrides(location_id)
        existing = _overrides_by_action(location_id, action_ids)

        now = utcnow()
        saved = []
        for patch in patches:
            row = existing[patch["action_id"]]
            _apply_patch(row, patch, now)
            saved.append(row)

        db.session.commit()
        return saved

    return run_with_retry(_op)
