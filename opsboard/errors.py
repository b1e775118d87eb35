"""
Error taxonomy shared by services and route handlers.

Route handlers may still return inline 400/404 responses for simple
parameter checks; services raise these and the application-level handlers
in ``opsboard.register_error_handlers`` render the ``{message, error?}`` shape.
"""


class OpsError(Exception):
    """Base class for errors with a defined HTTP rendering"""
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'message': self.message}


class InputError(OpsError):
    """Missing or invalid request parameter"""
    status_code = 400


class NotFoundError(OpsError):
    """Referenced entity does not exist"""
    status_code = 404


class PreconditionError(OpsError):
    """Stored data cannot support the requested computation.

    Rendered as a generic server error, with the reason in ``error``.
    """
    status_code = 500

    def to_dict(self):
        return {'message': 'Server error', 'error': self.message}


class UpstreamError(OpsError):
    """External enrichment service failure; caught inside the insight engine"""
    status_code = 502
