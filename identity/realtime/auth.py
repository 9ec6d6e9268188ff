"""
WebSocket authentication.

Browsers cannot set an Authorization header on a WebSocket handshake, so
the bearer token travels as ``?token=<jwt>``.  The scope gets a
``TokenPrincipal`` when it verifies and ``AnonymousUser`` otherwise;
consumers decide whether to accept the connection.
"""
from urllib.parse import parse_qs

from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from identity.errors import InvalidToken
from identity.services.tokens import verify_token


def principal_from_scope(scope):
    query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
    raw = (query.get("token") or [""])[0]
    if not raw:
        return AnonymousUser()
    try:
        return verify_token(raw)
    except InvalidToken:
        return AnonymousUser()


class BearerTokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        scope["user"] = principal_from_scope(scope)
        return await super().__call__(scope, receive, send)
