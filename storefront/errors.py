# --- storefront/errors.py ---
import logging

from werkzeug.exceptions import HTTPException

from .extensions import db
from .utils.api import err

log = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, data=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class CouponRejected(ValidationError):
    """A coupon failed one of its eligibility checks."""

    def __init__(self, reason, code=None):
        super().__init__(reason.value, data={"reason": reason.name.lower(), "code": code})
        self.reason = reason


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return err(e.message, e.status_code, e.data)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return err(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        log.exception("unhandled error: %s", e)
        return err("Internal server error", 500)


def register_jwt_handlers(jwt):
    """Send flask-jwt-extended failures through the standard envelope."""

    @jwt.unauthorized_loader
    def missing_token(reason):
        return err(reason, 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return err(reason, 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return err("Token has expired", 401)
