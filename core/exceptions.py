import logging

from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

from .paths import PathError

logger = logging.getLogger(__name__)


class CalendarError(Exception):
    """Raised when the calendar provider rejects or cannot serve a request."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NoteGenerationError(Exception):
    """Raised when the note drafting service fails or returns nothing usable."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class Conflict(APIException):
    status_code = 409
    default_detail = 'Resource already exists'
    default_code = 'conflict'


def api_exception_handler(exc, context):
    if isinstance(exc, PathError):
        return Response({'ok': False, 'error': {'code': 'invalid_path', 'message': str(exc)}}, status=400)
    if isinstance(exc, CalendarError):
        logger.warning("calendar request failed: %s", exc.message)
        return Response({'ok': False, 'error': {'code': 'calendar_error', 'message': exc.message}}, status=502)
    if isinstance(exc, NoteGenerationError):
        logger.warning("note generation failed: %s", exc.message)
        return Response({'ok': False, 'error': {'code': 'note_generation_error', 'message': exc.message}},
                        status=502)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("unhandled error in %s", context.get('view'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    detail = resp.data
    if isinstance(detail, dict) and 'detail' in detail:
        detail = detail['detail']
    elif isinstance(detail, list) and len(detail) == 1:
        detail = detail[0]
    code = exc.default_code if isinstance(exc, APIException) else 'api_error'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}},
                    status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp):
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After')}
