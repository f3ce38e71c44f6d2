from __future__ import annotations

from ..extensions import db

TYPE_ENTRY = "ENTRY"
TYPE_EXIT = "EXIT"
MOVEMENT_TYPES = (TYPE_ENTRY, TYPE_EXIT)

CATEGORY_SHIFT = "SHIFT"
CATEGORY_DEPOSIT = "DEPOSIT"
CATEGORY_ELECTRONIC = "ELECTRONIC"
CATEGORY_OTHER = "OTHER"
# Kept in the catalog for history; never offered or accepted in user flows
CATEGORY_PARTNER = "PARTNER"

USER_CATEGORIES = (CATEGORY_SHIFT, CATEGORY_DEPOSIT, CATEGORY_ELECTRONIC, CATEGORY_OTHER)


class ActionDefinition(db.Model):
    """
    Global catalog entry: a named kind of cash movement.

    Defaults here apply to every location unless a LocationActionOverride
    says otherwise. Rows are deactivated, never deleted.
    """
    __tablename__ = "actions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(16), nullable=False, index=True)

    default_type = db.Column(db.String(8), nullable=False)
    impacts_total_default = db.Column(db.Boolean, nullable=False, default=True)
    uses_shift = db.Column(db.Boolean, nullable=False, default=False)
    uses_name = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_partner(self) -> bool:
        return self.category == CATEGORY_PARTNER

    def __repr__(self) -> str:
        return f"<ActionDefinition id={self.id} name={self.name!r} category={self.category}>"

    def defaults_dict(self) -> dict:
        return {
            "type": self.default_type,
            "impacts_total": self.impacts_total_default,
            "uses_shift": self.uses_shift,
            "uses_name": self.uses_name,
        }


class LocationActionOverride(db.Model):
    """
    Per-location adjustment of a catalog action.

    Nullable *_override columns fall back to the catalog default one field at
    a time. impacts_total is NOT NULL: once the row exists it always wins.
    impacts_total_since records the last time impacts_total changed value.

    Rows are created by ensure (INSERT ... ON CONFLICT DO NOTHING), so the
    (location_id, action_id) constraint is what keeps them unique.
    """
    __tablename__ = "location_action_overrides"
    __table_args__ = (
        db.UniqueConstraint("location_id", "action_id", name="uq_location_action_overrides_location_action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    action_id = db.Column(db.Integer, db.ForeignKey("actions.id"), nullable=False, index=True)

    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    type_override = db.Column(db.String(8), nullable=True)
    uses_shift_override = db.Column(db.Boolean, nullable=True)
    uses_name_override = db.Column(db.Boolean, nullable=True)

    impacts_total = db.Column(db.Boolean, nullable=False, default=True)
    impacts_total_since = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    action = db.relationship("ActionDefinition", backref=db.backref("location_overrides", lazy=True))
