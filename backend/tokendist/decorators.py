# Overview: Request and authorization decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import ValidationError
from .services import permission_service
from .validation import normalize_address


CALLER_HEADER = "X-Caller-Address"


def _has_caller() -> bool:
    return hasattr(g, 'caller')


def require_caller(f):
    """
    Require a caller identity.

    Sets g.caller to the normalized address from the X-Caller-Address header.
    Identity is asserted by the host (gateway/wallet layer); this service does
    not verify signatures.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(CALLER_HEADER)
        if not raw or not raw.strip():
            return jsonify({"error": "Caller identity required"}), 401

        try:
            g.caller = normalize_address(raw, "caller")
        except ValidationError as e:
            return jsonify({"error": str(e)}), 401

        return f(*args, **kwargs)

    return decorated_function


def require_owner(f):
    """
    Require the single owner identity.

    Denials are written to security_events before returning 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Ensure @require_caller was called first
        if not _has_caller():
            return jsonify({"error": "Caller identity required"}), 401

        if not permission_service.is_authorized(g.caller):
            permission_service.log_security_event(
                caller=g.caller,
                event_type="OWNER_CHECK_DENIED",
                success=False,
                resource=request.path,
                action=request.method,
                reason="Caller is not the owner",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return jsonify({
                "error": "Permission denied",
                "error_code": "UNAUTHORIZED",
                "message": "Owner only",
            }), 403

        return f(*args, **kwargs)

    return decorated_function
