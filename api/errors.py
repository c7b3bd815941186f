from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from services.cookies import clear_cookies
from services.errors import Expired, InvalidToken, ResetTokenInvalid, ReuseDetected, StoreUnavailable, UnknownUser

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 1
# Same answer for every token failure: the client must not learn which one it hit.
SESSION_INVALID_MESSAGE = "Session is no longer valid, please log in again"


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def session_invalid_response():
    """401 that also clears both auth cookies."""
    response, status = error_response("SESSION_INVALID", SESSION_INVALID_MESSAGE, 401)
    for cookie in clear_cookies():
        response.set_cookie(**cookie.as_kwargs())
    return response, status


def register_error_handlers(app):
    # Token failures: invalid, expired and reused tokens look identical to the client
    @app.errorhandler(InvalidToken)
    @app.errorhandler(Expired)
    def handle_stale_token(err):
        logger.info("refresh rejected: %s", err.code)
        return session_invalid_response()

    @app.errorhandler(ReuseDetected)
    def handle_reuse(err: ReuseDetected):
        # contain_reuse already logged the incident with user and family
        logger.info("refresh rejected: %s user=%s", err.code, err.user_id)
        return session_invalid_response()

    @app.errorhandler(UnknownUser)
    def handle_unknown_user(err: UnknownUser):
        return session_invalid_response()

    # Reset links: the client is told why, so the user knows to request a new one
    @app.errorhandler(ResetTokenInvalid)
    def handle_reset_token(err: ResetTokenInvalid):
        return error_response(err.code, str(err), 400)

    # Transient store outage: retryable, never a security event
    @app.errorhandler(StoreUnavailable)
    def handle_store_unavailable(err: StoreUnavailable):
        response, status = error_response("STORE_UNAVAILABLE", "Service temporarily unavailable, retry shortly", 503)
        response.headers["Retry-After"] = str(STORE_RETRY_AFTER_SECONDS)
        return response, status

    # 401 Unauthorized
    @app.errorhandler(401)
    def unauthorized(e):
        message = getattr(e, "description", "Unauthorized")
        return error_response("UNAUTHORIZED", message, 401)

    # 403 Forbidden
    @app.errorhandler(403)
    def forbidden(e):
        message = getattr(e, "description", "Forbidden")
        return error_response("FORBIDDEN", message, 403)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # 409 Conflict
    @app.errorhandler(409)
    def conflict(e):
        message = getattr(e, "description", "Conflict")
        return error_response("CONFLICT", message, 409)

    # 422 Unprocessable Entity (validation)
    @app.errorhandler(422)
    def unprocessable(e):
        message = getattr(e, "description", "Unprocessable entity")
        return error_response("VALIDATION_ERROR", message, 422)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        if current_app and current_app.debug:
            logging.exception("Integrity error", exc_info=err)
        if "unique" in message.lower():
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST", err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
