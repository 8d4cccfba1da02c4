from flask import jsonify, current_app


class AppError(Exception):
    """
    Base error for failures that map directly onto an HTTP response.

    Raised from services and helpers; the handler registered by
    `register_error_handlers` renders it as ``{"error": message}`` with
    ``status_code``.
    """
    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_response(self):
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return jsonify(body), self.status_code


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class FormValidationError(BadRequestError):
    """Form validation failed; `details` holds the WTForms errors per field."""

    def __init__(self, form, message="Validation failed"):
        super().__init__(message, details=form.errors)


class SyncError(AppError):
    """An ad platform returned an error or an unusable payload during sync."""
    status_code = 502


def register_error_handlers(app):
    """Attaches JSON handlers for AppError and the common HTTP errors."""

    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.__class__.__name__}: {error.message}")
        else:
            current_app.logger.warning(f"{error.__class__.__name__} ({error.status_code}): {error.message}")
        return error.to_response()

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({"error": "Uploaded file is too large"}), 413
