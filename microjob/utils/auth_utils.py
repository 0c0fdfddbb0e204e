import hmac

from flask import current_app, request
from flask_jwt_extended import get_jwt, get_jwt_identity

from microjob.utils.response_formatter import error_response


def require_admin():
    uid = get_jwt_identity()
    if get_jwt().get("role") != "admin":
        return None, error_response("FORBIDDEN", "Admin access required", status=403)
    return uid, None


def check_cron_secret():
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        current_app.logger.error("CRON_SECRET is not configured")
        return error_response("SERVER_ERROR", "Server configuration error", status=500)

    supplied = request.headers.get("Authorization", "")
    if not hmac.compare_digest(supplied, f"Bearer {secret}"):
        return error_response("UNAUTHORIZED", "Unauthorized", status=401)
    return None
