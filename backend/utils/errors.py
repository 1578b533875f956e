"""
Error taxonomy for the disaster response API.

Services raise these; `app.create_app` maps them to HTTP responses:

    ValidationError       -> 400
    ForbiddenError        -> 403
    NotFoundError         -> 404
    UpstreamServiceError  -> 500 (message logged, not returned)
    StoreError            -> 500 (message logged, not returned)
"""
from typing import Optional


class DisasterResponseError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500
    public_message = 'Internal server error'

    def to_dict(self) -> dict:
        return {'error': self.public_message}


class ValidationError(DisasterResponseError, ValueError):
    """A required field is missing or a value is malformed."""

    status_code = 400

    def to_dict(self) -> dict:
        return {'error': str(self)}


class ForbiddenError(DisasterResponseError):
    """The caller's role does not allow the operation."""

    status_code = 403

    def to_dict(self) -> dict:
        return {'error': str(self)}


class NotFoundError(DisasterResponseError):
    """A disaster, report, or image reference does not exist."""

    status_code = 404

    def to_dict(self) -> dict:
        return {'error': str(self)}


class LocationNotFoundError(NotFoundError):
    """The maps service returned no coordinates for an extracted location."""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message)
        self.location = location

    def to_dict(self) -> dict:
        return {'error': str(self), 'location': self.location}


class UpstreamServiceError(DisasterResponseError):
    """Gemini, Google Maps, or an image host failed."""

    def __init__(self, message: str, public_message: Optional[str] = None):
        super().__init__(message)
        if public_message:
            self.public_message = public_message


class StoreError(DisasterResponseError):
    """The database returned an error other than "no matching row"."""
