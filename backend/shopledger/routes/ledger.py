# Overview: Flask API routes for ledger operations; parses input and returns JSON responses.

"""
Date semantics:
- API accepts business dates as YYYY-MM-DD; movement dates are never
  derived from created_at.
- Amounts are returned as decimal strings with two fraction digits.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_location_permission
from ..services import aggregation_service, movement_service
from ..services.calendar_service import SCOPE_ALL, SCOPE_DAY
from ..services.location_service import MOV_READ, MOV_WRITE
from ..time_utils import to_iso_date
from ..validation import (
    LedgerError,
    ValidationError,
    error_response,
    format_amount,
    internal_error_response,
    optional_int,
    require_date,
)


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/locations")


@ledger_bp.get("/<int:location_id>/ledger")
@require_auth
@require_location_permission(MOV_READ)
def ledger_route(location_id: int):
    """
    Movements grouped by day with totals.

    Query: scope=day|week|month|all (default day), date=YYYY-MM-DD
    (required unless scope=all).
    """
    try:
        scope = request.args.get("scope", SCOPE_DAY)
        raw_date = request.args.get("date")
        reference = require_date(raw_date) if raw_date and scope != SCOPE_ALL else None

        view = aggregation_service.ledger_view(location_id, scope, reference)
        return jsonify({"ok": True, **view}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load ledger")
        return internal_error_response()


@ledger_bp.post("/<int:location_id>/movements")
@require_auth
@require_location_permission(MOV_WRITE)
def create_movement_route(location_id: int):
    try:
        data = request.get_json(silent=True) or {}
        day = require_date(data.get("date"))
        action_id = optional_int(data, "action_id", minimum=1)
        if action_id is None:
            raise ValidationError("BAD_REQUEST", "action_id required")

        movement = movement_service.create_movement(
            location_id=location_id,
            user_id=g.current_user.id,
            day=day,
            action_id=action_id,
            amount=data.get("amount"),
            shift=data.get("shift"),
            person_name=data.get("person_name"),
        )
        return jsonify({"ok": True, "movement": movement.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create movement")
        return internal_error_response()


@ledger_bp.get("/<int:location_id>/day-slots")
@require_auth
@require_location_permission(MOV_READ)
def get_day_slots_route(location_id: int):
    try:
        day = require_date(request.args.get("date"))
        slots = aggregation_service.get_day_slots(location_id, day)
        return jsonify({
            "ok": True,
            "date": to_iso_date(day),
            "values": {str(action_id): format_amount(amount) for action_id, amount in slots.items()},
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load day slots")
        return internal_error_response()


@ledger_bp.put("/<int:location_id>/day-slots")
@require_auth
@require_location_permission(MOV_WRITE)
def save_day_slots_route(location_id: int):
    """
    Quick day editor save.

    Body: {"date": "YYYY-MM-DD", "values": {"<action_id>": "1500,00", ...}}
    """
    try:
        data = request.get_json(silent=True) or {}
        day = require_date(data.get("date"))
        result = aggregation_service.save_day_slots(location_id, day, data.get("values"), g.current_user.id)
        current_app.logger.info(
            "Day slots saved for location %s on %s: %s created, %s updated",
            location_id, day.isoformat(), result["created"], result["updated"],
        )
        return jsonify({"ok": True, **result}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save day slots")
        return internal_error_response()
