# Overview: Flask API routes for the settlement dashboard and partner config; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_location_permission
from ..services import settlement_service
from ..services.calendar_service import SCOPE_WEEK
from ..services.location_service import CONFIG_WRITE, MOV_READ
from ..validation import LedgerError, error_response, internal_error_response, require_bool


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/locations")


@dashboard_bp.get("/<int:location_id>/dashboard")
@require_auth
@require_location_permission(MOV_READ)
def dashboard_route(location_id: int):
    """
    Settlement series.

    Query: mode=week|month (default week), count=1..52 (default 12, clamped).
    """
    try:
        mode = request.args.get("mode", SCOPE_WEEK)
        count = request.args.get("count", type=int)
        data = settlement_service.dashboard(location_id, mode, count)
        return jsonify({"ok": True, **data}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return internal_error_response()


@dashboard_bp.get("/<int:location_id>/partner-config")
@require_auth
@require_location_permission(MOV_READ)
def get_partner_config_route(location_id: int):
    try:
        config = settlement_service.get_partner_config(location_id)
        return jsonify({"ok": True, **config}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load partner config")
        return internal_error_response()


@dashboard_bp.put("/<int:location_id>/partner-config")
@require_auth
@require_location_permission(CONFIG_WRITE)
def set_partner_config_route(location_id: int):
    """Body: {"is_enabled": true, "percentage": "40"}"""
    try:
        data = request.get_json(silent=True) or {}
        is_enabled = require_bool(data, "is_enabled")
        config = settlement_service.set_partner_config(location_id, is_enabled, data.get("percentage"))
        current_app.logger.info(
            "Partner config for location %s set: enabled=%s percentage=%s",
            location_id, config["is_enabled"], config["percentage"],
        )
        return jsonify({"ok": True, **config}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save partner config")
        return internal_error_response()
