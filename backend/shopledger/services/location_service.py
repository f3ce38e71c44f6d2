# Overview: Service-layer operations for locations; onboarding, role assignments and the role -> permission map.

"""
Location access

WHY: the location is the tenant boundary. A user acts at a location only
through an active UserLocation row, and the role on that row decides what
the user may do there.

PERMISSIONS:
- CONFIG_READ / CONFIG_WRITE: ADMIN
- MOV_READ: ADMIN, OPERATOR, READER
- MOV_WRITE: ADMIN, OPERATOR
"""

from __future__ import annotations

from ..extensions import db
from ..models import Location, User, UserLocation
from ..models.tenancy import ALL_ROLES, ROLE_ADMIN, ROLE_OPERATOR, ROLE_READER
from ..validation import ConflictError, NotFoundError, ValidationError
from . import action_config_service
from .concurrency import run_with_retry

CONFIG_READ = "CONFIG_READ"
CONFIG_WRITE = "CONFIG_WRITE"
MOV_READ = "MOV_READ"
MOV_WRITE = "MOV_WRITE"

PERMISSIONS = {
    CONFIG_READ: frozenset({ROLE_ADMIN}),
    CONFIG_WRITE: frozenset({ROLE_ADMIN}),
    MOV_READ: frozenset({ROLE_ADMIN, ROLE_OPERATOR, ROLE_READER}),
    MOV_WRITE: frozenset({ROLE_ADMIN, ROLE_OPERATOR}),
}


def role_allows(role: str | None, permission_code: str) -> bool:
    if role is None:
        return False
    return role in PERMISSIONS.get(permission_code, frozenset())


def _require_role(role: str) -> str:
    if role not in ALL_ROLES:
        raise ValidationError("ROLE_INVALID", f"role must be one of {', '.join(ALL_ROLES)}")
    return role


def _require_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id, is_active=True).first()
    if not user:
        raise NotFoundError("USER_NOT_FOUND", "User not found")
    return user


def create_location(name: str, admin_user_id: int) -> Location:
    """
    Create a location, its first ADMIN and its override rows together.

    One commit: a failure at any step leaves no location behind.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("NAME_REQUIRED", "Location name is required")

    def _op():
        _require_user(admin_user_id)
        if db.session.query(Location).filter_by(name=name).first():
            raise ConflictError("LOCATION_EXISTS", f"Location {name!r} already exists")

        location = Location(name=name, is_active=True)
        db.session.add(location)
        db.session.flush()

        db.session.add(UserLocation(
            user_id=admin_user_id,
            location_id=location.id,
            role=ROLE_ADMIN,
            is_active=True,
        ))
        action_config_service.ensure_location_overrides(location.id)
        db.session.commit()
        return location

    return run_with_retry(_op)


def assign_user(location_id: int, user_id: int, role: str) -> UserLocation:
    """Grant or change a user's role at a location (reactivates a revoked one)."""
    role = _require_role(role)

    def _op():
        location = db.session.query(Location).filter_by(id=location_id, is_active=True).first()
        if not location:
            raise NotFoundError("LOCATION_NOT_FOUND", "Location not found")
        _require_user(user_id)

        assignment = db.session.query(UserLocation).filter_by(
            user_id=user_id, location_id=location_id
        ).first()
        if assignment is None:
            assignment = UserLocation(user_id=user_id, location_id=location_id)
            db.session.add(assignment)
        assignment.role = role
        assignment.is_active = True
        db.session.commit()
        return assignment

    return run_with_retry(_op)


def get_role(user_id: int, location_id: int) -> str | None:
    """Role of an active assignment on an active location, else None."""
    row = (
        db.session.query(UserLocation.role)
        .join(Location, Location.id == UserLocation.location_id)
        .filter(
            UserLocation.user_id == user_id,
            UserLocation.location_id == location_id,
            UserLocation.is_active.is_(True),
            Location.is_active.is_(True),
        )
        .first()
    )
    return row[0] if row else None


def list_user_locations(user_id: int) -> list[UserLocation]:
    return (
        db.session.query(UserLocation)
        .join(Location, Location.id == UserLocation.location_id)
        .filter(
            UserLocation.user_id == user_id,
            UserLocation.is_active.is_(True),
            Location.is_active.is_(True),
        )
        .order_by(Location.name.asc())
        .all()
    )
