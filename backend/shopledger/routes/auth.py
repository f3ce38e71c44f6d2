# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Bearer session tokens; only the SHA-256 hash is stored
- A new session has no location; POST /location selects one of the
  user's assigned locations
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, location_service, session_service
from ..validation import LedgerError, ValidationError, error_response, internal_error_response, optional_int


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return error_response(ValidationError("BAD_REQUEST", "email and password required"))

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"ok": False, "error": "INVALID_CREDENTIALS", "message": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        locations = location_service.list_user_locations(user.id)

        return jsonify({
            "ok": True,
            "token": token,
            "user": user.to_dict(),
            "session": session.to_dict(),
            "locations": [a.to_dict() for a in locations],
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return internal_error_response()


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        token = request.headers["Authorization"].split(" ", 1)[1]
        session_service.revoke_session(token, reason="User logout")
        return jsonify({"ok": True}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return internal_error_response()


@auth_bp.get("/me")
@require_auth
def me_route():
    locations = location_service.list_user_locations(g.current_user.id)
    return jsonify({
        "ok": True,
        "user": g.current_user.to_dict(),
        "location_id": g.location_id,
        "locations": [a.to_dict() for a in locations],
    }), 200


@auth_bp.post("/location")
@require_auth
def select_location_route():
    """Bind the session to one of the user's assigned locations."""
    try:
        data = request.get_json(silent=True) or {}
        location_id = optional_int(data, "location_id", minimum=1)
        if location_id is None:
            return error_response(ValidationError("BAD_REQUEST", "location_id required"))

        role = session_service.select_location(g.session_context.session, location_id)
        return jsonify({"ok": True, "location_id": location_id, "role": role}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to select session location")
        return internal_error_response()
