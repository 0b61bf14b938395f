# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

PRINCIPAL_HEADER = "X-Principal-Id"


def require_principal(f):
    """
    Require an acting principal (cashier/admin id) on the request.

    The id is opaque here: authentication happens upstream, which forwards
    the authenticated principal in the X-Principal-Id header.

    Sets g.principal_id. Returns 401 when the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal_id = (request.headers.get(PRINCIPAL_HEADER) or "").strip()

        if not principal_id:
            return jsonify({
                "success": False,
                "error": "UNAUTHENTICATED",
                "message": f"{PRINCIPAL_HEADER} header required",
            }), 401

        g.principal_id = principal_id
        return f(*args, **kwargs)

    return decorated_function
