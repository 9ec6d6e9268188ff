import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from identity.errors import PendingApproval

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = 'No token, authorization denied'


def _error_code(exc) -> str:
    codes = exc.get_codes() if isinstance(exc, exceptions.APIException) else None
    if isinstance(codes, str):
        return codes
    return getattr(exc, 'default_code', 'api_error')


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception("unhandled error in %s", getattr(view, '__class__', type(view)).__name__, exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'Server error'}}, status=500)

    # normalize response
    if isinstance(exc, exceptions.NotAuthenticated):
        message = NO_TOKEN_MESSAGE
    elif isinstance(exc, exceptions.ValidationError):
        message = resp.data
    elif isinstance(resp.data, dict):
        message = resp.data.get('detail') or resp.data
    else:
        message = str(resp.data)

    body = {'ok': False, 'error': {'code': _error_code(exc), 'message': message}}
    if isinstance(exc, PendingApproval):
        body['needsApproval'] = True
    resp.data = body
    return resp
