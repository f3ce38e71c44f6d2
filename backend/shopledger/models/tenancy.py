from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from shopledger.time_utils import to_utc_z

ROLE_ADMIN = "ADMIN"
ROLE_OPERATOR = "OPERATOR"
ROLE_READER = "READER"
ALL_ROLES = (ROLE_ADMIN, ROLE_OPERATOR, ROLE_READER)


class Location(db.Model):
    """
    Retail location: the tenant boundary.

    Every movement, override, local preset and partner config belongs to
    exactly one location. Data of one location is never visible from another.
    """
    __tablename__ = "locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class UserLocation(db.Model):
    """
    Role of a user at one location.

    ROLES:
    - ADMIN: configuration + ledger writes
    - OPERATOR: ledger writes
    - READER: read-only
    """
    __tablename__ = "user_locations"
    __table_args__ = (
        db.UniqueConstraint("user_id", "location_id", name="uq_user_locations_user_location"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_READER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("location_roles", lazy=True))
    location = db.relationship("Location", backref=db.backref("user_roles", lazy=True))

    def to_dict(self) -> dict:
        return {
            "location_id": self.location_id,
            "location_name": self.location.name if self.location else None,
            "role": self.role,
            "is_active": self.is_active,
        }


class PartnerShareConfig(db.Model):
    """
    Partner profit share for a location.

    share_fraction is stored as 0..1; clients see a 0..100 percentage.
    A missing row means sharing is disabled with a zero share.
    """
    __tablename__ = "partner_share_configs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, unique=True)
    is_enabled = db.Column(db.Boolean, nullable=False, default=False)
    share_fraction = db.Column(db.Numeric(5, 4), nullable=False, default=Decimal("0"))

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    location = db.relationship("Location", backref=db.backref("partner_config", uselist=False, lazy=True))
