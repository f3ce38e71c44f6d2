# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .services import location_service, session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def _error(code: str, message: str, status: int):
    return jsonify({"ok": False, "error": code, "message": message}), status


def require_auth(f):
    """
    Require authentication and establish session context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.location_id: The location selected for this session (may be None)
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _error("UNAUTHENTICATED", "Authentication required", 401)

        context = session_service.validate_session(token)
        if not context:
            return _error("UNAUTHENTICATED", "Invalid or expired token", 401)

        g.current_user = context.user
        g.location_id = context.location_id
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_location_permission(permission_code: str):
    """
    Guard a /locations/<location_id>/... route.

    Checks, in order, before the view touches any data:
    1. the session's selected location is the path location (LOCATION_CONTEXT_MISMATCH)
    2. the user holds an active role there (FORBIDDEN)
    3. the role grants permission_code (FORBIDDEN_ROLE)

    Sets g.role for the view.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return _error("UNAUTHENTICATED", "Authentication required", 401)

            location_id = kwargs.get("location_id")
            if g.location_id is None or g.location_id != location_id:
                return _error("LOCATION_CONTEXT_MISMATCH", "Select this location for the session first", 403)

            role = location_service.get_role(g.current_user.id, location_id)
            if role is None:
                return _error("FORBIDDEN", "No access to this location", 403)

            if not location_service.role_allows(role, permission_code):
                return _error("FORBIDDEN_ROLE", f"Role {role} lacks {permission_code}", 403)

            g.role = role
            return f(*args, **kwargs)

        return decorated_function
    return decorator
