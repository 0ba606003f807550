"""
errors.py - Record Store Errors
Distinguishable failures raised by the persistence layer.
Routes flash them (HTML) or return them as JSON (API); app.py maps
uncaught ones to HTTP status codes.
"""


class RecordError(Exception):
    """Base class for failures while reading or writing academic records"""
    kind = 'store_error'
    status_code = 500
    default_message = 'The record store failed to complete the request.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'kind': self.kind
        }


class StoreUnavailable(RecordError):
    """Database could not be reached or the transaction failed"""
    kind = 'store_unavailable'
    status_code = 503
    default_message = 'The record store is unavailable. Please try again.'


class ValidationFailed(RecordError):
    """Input rejected by validation or by a database constraint"""
    kind = 'validation_failed'
    status_code = 400
    default_message = 'The submitted data is invalid.'


class Unauthorized(RecordError):
    """Requested row belongs to another user"""
    kind = 'unauthorized'
    status_code = 403
    default_message = 'You do not have access to this record.'
