"""
Domain errors raised by services and their translation to HTTP responses.
"""
import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('harvest.core')


class ServiceError(Exception):
    """Error with an HTTP status attached, raised from service code"""
    status_code = 400

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_payload(self):
        payload = {'error': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class BadRequest(ServiceError):
    status_code = 400


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


def api_exception_handler(exc, context):
    """DRF exception handler that understands ServiceError"""
    if isinstance(exc, ServiceError):
        if exc.status_code >= 500:
            logger.error(f"Service error in {context.get('view')}: {exc.message}")
        return Response(exc.to_payload(), status=exc.status_code)
    return exception_handler(exc, context)
