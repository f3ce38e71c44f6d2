from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, to_iso_date
from shopledger.validation import format_amount

SHIFT_MORNING = "MORNING"
SHIFT_AFTERNOON = "AFTERNOON"
SHIFT_NIGHT = "NIGHT"
SHIFTS = (SHIFT_MORNING, SHIFT_AFTERNOON, SHIFT_NIGHT)


class Movement(db.Model):
    """
    One recorded cash entry or exit.

    INVARIANTS:
    - type is captured from the effective action config at creation time
      and is not recomputed when the config changes later
    - amount is non-negative with two fraction digits; zero only appears
      as a preset placeholder or a cleared day-editor slot
    - date is the business day, independent of created_at
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.Index("ix_movements_location_date", "location_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    action_id = db.Column(db.Integer, db.ForeignKey("actions.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)

    shift = db.Column(db.String(16), nullable=True)
    person_name = db.Column(db.String(120), nullable=True)
    partner_id = db.Column(db.Integer, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    action = db.relationship("ActionDefinition")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "date": to_iso_date(self.date),
            "action_id": self.action_id,
            "action_name": self.action.name if self.action else None,
            "type": self.type,
            "amount": format_amount(self.amount),
            "shift": self.shift,
            "person_name": self.person_name,
            "partner_id": self.partner_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
