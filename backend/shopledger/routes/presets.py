# Overview: Flask API routes for presets; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_location_permission
from ..services import preset_service
from ..services.location_service import CONFIG_WRITE, MOV_READ, MOV_WRITE
from ..validation import LedgerError, error_response, internal_error_response, require_date


presets_bp = Blueprint("presets", __name__, url_prefix="/api/locations")


@presets_bp.get("/<int:location_id>/presets")
@require_auth
@require_location_permission(MOV_READ)
def list_presets_route(location_id: int):
    try:
        presets = preset_service.list_presets(location_id)
        return jsonify({"ok": True, "presets": [p.to_dict() for p in presets]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list presets")
        return internal_error_response()


@presets_bp.post("/<int:location_id>/presets")
@require_auth
@require_location_permission(CONFIG_WRITE)
def create_preset_route(location_id: int):
    try:
        data = request.get_json(silent=True) or {}
        preset = preset_service.create_local_preset(location_id, data)
        return jsonify({"ok": True, "preset": preset.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create preset")
        return internal_error_response()


@presets_bp.patch("/<int:location_id>/presets/<int:preset_id>")
@require_auth
@require_location_permission(CONFIG_WRITE)
def update_preset_route(location_id: int, preset_id: int):
    try:
        data = request.get_json(silent=True) or {}
        preset = preset_service.update_local_preset(location_id, preset_id, data)
        return jsonify({"ok": True, "preset": preset.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update preset")
        return internal_error_response()


@presets_bp.delete("/<int:location_id>/presets/<int:preset_id>")
@require_auth
@require_location_permission(CONFIG_WRITE)
def deactivate_preset_route(location_id: int, preset_id: int):
    """Soft delete: the preset stops being listed or applicable."""
    try:
        preset = preset_service.deactivate_local_preset(location_id, preset_id)
        return jsonify({"ok": True, "preset": preset.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate preset")
        return internal_error_response()


@presets_bp.get("/<int:location_id>/presets/<int:preset_id>/items")
@require_auth
@require_location_permission(MOV_READ)
def list_preset_items_route(location_id: int, preset_id: int):
    try:
        items = preset_service.get_preset_items(location_id, preset_id)
        return jsonify({"ok": True, "items": [i.to_dict() for i in items]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list preset items")
        return internal_error_response()


@presets_bp.post("/<int:location_id>/presets/<int:preset_id>/items")
@require_auth
@require_location_permission(CONFIG_WRITE)
def add_preset_item_route(location_id: int, preset_id: int):
    try:
        data = request.get_json(silent=True) or {}
        item = preset_service.add_preset_item(location_id, preset_id, data)
        return jsonify({"ok": True, "item": item.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add preset item")
        return internal_error_response()


@presets_bp.delete("/<int:location_id>/presets/<int:preset_id>/items/<int:item_id>")
@require_auth
@require_location_permission(CONFIG_WRITE)
def remove_preset_item_route(location_id: int, preset_id: int, item_id: int):
    try:
        preset_service.remove_preset_item(location_id, preset_id, item_id)
        return jsonify({"ok": True}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove preset item")
        return internal_error_response()


@presets_bp.post("/<int:location_id>/presets/<int:preset_id>/apply")
@require_auth
@require_location_permission(MOV_WRITE)
def apply_preset_route(location_id: int, preset_id: int):
    """
    Fill a day with zero-amount placeholders from a preset.

    Body: {"date": "YYYY-MM-DD"}. Safe to repeat; existing actions are skipped.
    """
    try:
        data = request.get_json(silent=True) or {}
        day = require_date(data.get("date"))
        result = preset_service.apply_preset(location_id, preset_id, day, g.current_user.id)
        current_app.logger.info(
            "Preset %s applied to location %s on %s: %s created, %s skipped",
            preset_id, location_id, day.isoformat(), result.created, result.skipped,
        )
        return jsonify({"ok": True, **result.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply preset")
        return internal_error_response()
