"""Application error taxonomy and the HTTP handlers that translate it."""
from flask import redirect, render_template, request, url_for
from flask_babel import gettext as _


class AppError(Exception):
    """Base class for failures raised by the service layer."""

    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(AppError):
    status_code = 404


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class Conflict(AppError):
    status_code = 409


class StoreError(AppError):
    """Persistence failure. Never swallowed."""

    status_code = 500


def register_error_handlers(app):
    """Map the taxonomy onto redirects and error pages."""

    @app.errorhandler(Unauthorized)
    def handle_unauthorized(error):
        return redirect(url_for('auth.login', next=request.path))

    @app.errorhandler(Forbidden)
    def handle_forbidden(error):
        return access_denied()

    @app.errorhandler(NotFound)
    def handle_not_found(error):
        return render_template('errors/error.html', title=_('Not found'),
                               message=error.message), 404

    @app.errorhandler(ValidationError)
    def handle_validation(error):
        return render_template('errors/error.html', title=_('Invalid input'),
                               message=error.message), 400

    @app.errorhandler(Conflict)
    def handle_conflict(error):
        return render_template('errors/error.html', title=_('Conflict'),
                               message=error.message), 409

    @app.errorhandler(StoreError)
    def handle_store_error(error):
        app.logger.error('Store error: %s', error.message)
        return render_template('errors/error.html', title=_('Server error'),
                               message=_('Something went wrong. Please try again later.')), 500

    @app.errorhandler(403)
    def handle_http_forbidden(error):
        return access_denied()


def access_denied():
    """The 403 page. Never names the missing role or permission."""
    return render_template('errors/403.html'), 403
