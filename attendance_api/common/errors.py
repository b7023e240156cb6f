# attendance_api/common/errors.py
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from attendance_api.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        # 409 for unique/FK violations
        return fail(
            "Conflict / integrity error",
            status=409,
            code="CONSTRAINT_ERROR",
            detail=str(e.orig) if getattr(e, "orig", None) else str(e),
        )

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
