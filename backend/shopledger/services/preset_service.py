# Overview: Service-layer operations for presets; expands templates into placeholder movements and manages LOCAL presets.

"""
Preset expansion

A preset is a list of items, each either a direct action or a category.
Applying it to a day creates one zero-amount placeholder movement per
target action that the day does not already have.

INVARIANTS:
- targets are deduplicated by action id, first-seen order
- only actions enabled at the location are targets; PARTNER never is
- re-applying the same preset to the same day creates nothing
- all placeholders of one apply are written in a single transaction

SECURITY: a LOCAL preset of another location is reported as not found.
GLOBAL presets are visible everywhere and never editable from a location.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from ..extensions import db
from ..models import ActionDefinition, Movement, Preset, PresetItem
from ..models.actions import CATEGORY_PARTNER, USER_CATEGORIES
from ..models.presets import ITEM_ACTION, ITEM_CATEGORY, ITEM_KINDS, SCOPE_GLOBAL, SCOPE_LOCAL
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, optional_int
from . import action_config_service
from .concurrency import run_with_retry

NOTE_NO_TARGETS = "NO_TARGETS"


@dataclass
class ApplyResult:
    created: int
    skipped: int
    note: str | None = None

    def to_dict(self) -> dict:
        out = {"created": self.created, "skipped": self.skipped}
        if self.note:
            out["note"] = self.note
        return out


def resolve_targets(items: Iterable, enabled_actions: Iterable) -> list[int]:
    """
    Expand preset items into target action ids. Pure.

    `items` need `kind`, `action_id` and `category`, in display order.
    `enabled_actions` are the actions enabled at the location (`action_id`,
    `category`), in the order categories should expand.
    """
    enabled = [a for a in enabled_actions if a.category != CATEGORY_PARTNER]
    enabled_ids = {a.action_id for a in enabled}

    seen: set[int] = set()
    targets: list[int] = []

    def _add(action_id: int) -> None:
        if action_id not in seen:
            seen.add(action_id)
            targets.append(action_id)

    for item in items:
        if item.kind == ITEM_ACTION:
            if item.action_id in enabled_ids:
                _add(item.action_id)
        elif item.kind == ITEM_CATEGORY:
            if item.category == CATEGORY_PARTNER:
                continue
            for action in enabled:
                if action.category == item.category:
                    _add(action.action_id)
    return targets


# =============================================================================
# LOOKUP
# =============================================================================

def _visible_preset(location_id: int, preset_id: int) -> Preset:
    preset = db.session.query(Preset).filter(
        Preset.id == preset_id,
        Preset.is_active.is_(True),
        db.or_(
            db.and_(Preset.scope == SCOPE_GLOBAL, Preset.location_id.is_(None)),
            db.and_(Preset.scope == SCOPE_LOCAL, Preset.location_id == location_id),
        ),
    ).first()
    if not preset:
        raise NotFoundError("PRESET_NOT_FOUND", "Preset not found")
    return preset


def _editable_preset(location_id: int, preset_id: int) -> Preset:
    preset = db.session.query(Preset).filter_by(
        id=preset_id,
        scope=SCOPE_LOCAL,
        location_id=location_id,
        is_active=True,
    ).first()
    if not preset:
        raise NotFoundError("PRESET_NOT_FOUND", "Preset not found")
    return preset


def _sorted_items(preset: Preset) -> list[PresetItem]:
    return sorted(preset.items, key=lambda i: (i.display_order, i.id))


def list_presets(location_id: int) -> list[Preset]:
    """Active LOCAL presets of the location first, then active GLOBAL presets."""
    presets = db.session.query(Preset).filter(
        Preset.is_active.is_(True),
        db.or_(
            db.and_(Preset.scope == SCOPE_LOCAL, Preset.location_id == location_id),
            db.and_(Preset.scope == SCOPE_GLOBAL, Preset.location_id.is_(None)),
        ),
    ).all()
    return sorted(presets, key=lambda p: (p.scope != SCOPE_LOCAL, p.display_order, p.name))


def get_preset_items(location_id: int, preset_id: int) -> list[PresetItem]:
    return _sorted_items(_visible_preset(location_id, preset_id))


# =============================================================================
# APPLY
# =============================================================================

def apply_preset(location_id: int, preset_id: int, day: date, user_id: int) -> ApplyResult:
    """
    Create zero-amount placeholders for every target missing on `day`.

    Any movement of the target action on that day (tagged or not) counts as
    present. The placeholder type is the currently effective one.
    """
    def _op():
        preset = _visible_preset(location_id, preset_id)
        enabled = action_config_service.list_effective_actions(location_id, enabled_only=True)
        targets = resolve_targets(_sorted_items(preset), enabled)
        if not targets:
            return ApplyResult(created=0, skipped=0, note=NOTE_NO_TARGETS)

        existing = {
            row[0]
            for row in db.session.query(Movement.action_id).filter(
                Movement.location_id == location_id,
                Movement.date == day,
                Movement.action_id.in_(targets),
            ).distinct().all()
        }
        types = {a.action_id: a.type for a in enabled}

        created = 0
        for action_id in targets:
            if action_id in existing:
                continue
            db.session.add(Movement(
                location_id=location_id,
                date=day,
                action_id=action_id,
                type=types[action_id],
                amount=Decimal("0.00"),
                created_by_user_id=user_id,
            ))
            created += 1

        db.session.commit()
        return ApplyResult(created=created, skipped=len(targets) - created)

    return run_with_retry(_op)


# =============================================================================
# LOCAL PRESET MANAGEMENT
# =============================================================================

def _require_name(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("NAME_REQUIRED", "name is required")
    name = raw.strip()
    if len(name) > 120:
        raise ValidationError("BAD_REQUEST", "name must be at most 120 characters")
    return name


def create_local_preset(location_id: int, payload: dict) -> Preset:
    name = _require_name(payload.get("name"))
    order = optional_int(payload, "display_order") or 0

    def _op():
        preset = Preset(scope=SCOPE_LOCAL, location_id=location_id, name=name, display_order=order)
        db.session.add(preset)
        db.session.commit()
        return preset

    return run_with_retry(_op)


def update_local_preset(location_id: int, preset_id: int, payload: dict) -> Preset:
    name = _require_name(payload["name"]) if "name" in payload else None
    order = optional_int(payload, "display_order")

    def _op():
        preset = _editable_preset(location_id, preset_id)
        if name is not None:
            preset.name = name
        if order is not None:
            preset.display_order = order
        preset.updated_at = utcnow()
        db.session.commit()
        return preset

    return run_with_retry(_op)


def deactivate_local_preset(location_id: int, preset_id: int) -> Preset:
    def _op():
        preset = _editable_preset(location_id, preset_id)
        preset.is_active = False
        preset.updated_at = utcnow()
        db.session.commit()
        return preset

    return run_with_retry(_op)


def add_preset_item(location_id: int, preset_id: int, payload: dict) -> PresetItem:
    """
    Append an ACTION or CATEGORY item to a LOCAL preset.

    PARTNER is refused either way (category or action of that category).
    """
    kind = payload.get("kind")
    if kind not in ITEM_KINDS:
        raise ValidationError("BAD_REQUEST", f"kind must be one of {', '.join(ITEM_KINDS)}")
    order = optional_int(payload, "display_order")

    action_id = None
    category = None
    if kind == ITEM_ACTION:
        action_id = payload.get("action_id")
        if isinstance(action_id, bool) or not isinstance(action_id, int):
            raise ValidationError("BAD_REQUEST", "action_id must be an integer")
    else:
        category = payload.get("category")
        if category == CATEGORY_PARTNER:
            raise ConflictError("PARTNER_DISABLED", "Partner category cannot be used in presets")
        if category not in USER_CATEGORIES:
            raise ValidationError("BAD_REQUEST", f"category must be one of {', '.join(USER_CATEGORIES)}")

    def _op():
        preset = _editable_preset(location_id, preset_id)
        if action_id is not None:
            action = db.session.query(ActionDefinition).filter_by(id=action_id, is_active=True).first()
            if not action:
                raise NotFoundError("ACTION_NOT_FOUND", f"Action {action_id} not found")
            if action.is_partner:
                raise ConflictError("PARTNER_DISABLED", "Partner actions cannot be used in presets")

        if order is None:
            next_order = max((i.display_order for i in preset.items), default=-1) + 1
        else:
            next_order = order

        item = PresetItem(
            preset_id=preset.id,
            kind=kind,
            action_id=action_id,
            category=category,
            display_order=next_order,
        )
        db.session.add(item)
        preset.updated_at = utcnow()
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_preset_item(location_id: int, preset_id: int, item_id: int) -> None:
    def _op():
        preset = _editable_preset(location_id, preset_id)
        item = db.session.query(PresetItem).filter_by(id=item_id, preset_id=preset.id).first()
        if not item:
            raise NotFoundError("PRESET_ITEM_NOT_FOUND", "Preset item not found")
        db.session.delete(item)
        preset.updated_at = utcnow()
        db.session.commit()

    run_with_retry(_op)
