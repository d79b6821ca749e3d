"""
API error types for the Campus Portal

Services raise these; the handlers registered in app.py turn them into
JSON error envelopes with the matching HTTP status.
"""


class APIError(Exception):
    """Base class for errors reported to the client"""
    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'error': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(APIError):
    status_code = 400


class UnauthorizedError(APIError):
    status_code = 401

    def __init__(self, message='Unauthorized', details=None):
        super().__init__(message, details=details)


class ForbiddenError(APIError):
    status_code = 403

    def __init__(self, message='Forbidden', details=None):
        super().__init__(message, details=details)


class NotFoundError(APIError):
    status_code = 404


class ConflictError(APIError):
    status_code = 409


class ServiceUnavailableError(APIError):
    status_code = 503
