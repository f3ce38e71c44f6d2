from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z

SCOPE_GLOBAL = "GLOBAL"
SCOPE_LOCAL = "LOCAL"

ITEM_ACTION = "ACTION"
ITEM_CATEGORY = "CATEGORY"
ITEM_KINDS = (ITEM_ACTION, ITEM_CATEGORY)


class Preset(db.Model):
    """
    Reusable template of target actions used to pre-fill a day.

    GLOBAL presets (location_id NULL) are visible everywhere and read-only
    here. LOCAL presets belong to one location and are editable by its
    admins. Deactivation is soft.
    """
    __tablename__ = "presets"
    __table_args__ = (
        db.Index("ix_presets_scope_location", "scope", "location_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(8), nullable=False, default=SCOPE_LOCAL)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "PresetItem",
        backref="preset",
        lazy=True,
        order_by="PresetItem.display_order",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "location_id": self.location_id,
            "name": self.name,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }


class PresetItem(db.Model):
    """Either a direct action reference or a category that expands at apply time."""
    __tablename__ = "preset_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    preset_id = db.Column(db.Integer, db.ForeignKey("presets.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)
    action_id = db.Column(db.Integer, db.ForeignKey("actions.id"), nullable=True)
    category = db.Column(db.String(16), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "action_id": self.action_id,
            "category": self.category,
            "display_order": self.display_order,
        }
