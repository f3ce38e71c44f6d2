# Overview: Flask API routes for action configuration; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_location_permission
from ..extensions import db
from ..services import action_config_service
from ..services.location_service import CONFIG_READ, CONFIG_WRITE, MOV_READ
from ..validation import LedgerError, error_response, internal_error_response


actions_bp = Blueprint("actions", __name__, url_prefix="/api/locations")


@actions_bp.get("/<int:location_id>/actions")
@require_auth
@require_location_permission(MOV_READ)
def list_actions_route(location_id: int):
    """Enabled actions at the location with their effective behavior. Never writes."""
    try:
        actions = action_config_service.list_effective_actions(location_id)
        return jsonify({"ok": True, "actions": [a.to_dict() for a in actions]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list actions")
        return internal_error_response()


@actions_bp.post("/<int:location_id>/actions/ensure")
@require_auth
@require_location_permission(CONFIG_WRITE)
def ensure_actions_route(location_id: int):
    """Provision override rows for catalog actions the location does not have yet."""
    try:
        inserted = action_config_service.ensure_location_overrides(location_id)
        db.session.commit()
        current_app.logger.info("Ensured action overrides for location %s: %s inserted", location_id, inserted)
        return jsonify({"ok": True, "inserted": inserted}), 200

    except LedgerError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to ensure action overrides")
        return internal_error_response()


@actions_bp.get("/<int:location_id>/action-config")
@require_auth
@require_location_permission(CONFIG_READ)
def get_action_config_route(location_id: int):
    try:
        rows = action_config_service.list_override_config(location_id)
        return jsonify({"ok": True, "actions": rows}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load action config")
        return internal_error_response()


@actions_bp.put("/<int:location_id>/action-config")
@require_auth
@require_location_permission(CONFIG_WRITE)
def save_action_config_route(location_id: int):
    """
    Batch save of override rows.

    Body: {"overrides": [{"action_id": 1, "is_enabled": false, ...}, ...]}
    One invalid row rejects the whole batch.
    """
    try:
        data = request.get_json(silent=True) or {}
        saved = action_config_service.save_overrides(location_id, data.get("overrides"))
        current_app.logger.info("Saved %s action overrides for location %s", len(saved), location_id)
        return jsonify({
            "ok": True,
            "saved": len(saved),
            "actions": action_config_service.list_override_config(location_id),
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save action config")
        return internal_error_response()
