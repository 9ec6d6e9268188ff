"""
Bearer token authentication for the REST API.

Requests carry ``Authorization: Bearer <token>``.  A verified token
yields a :class:`~identity.services.tokens.TokenPrincipal` built from its
claims alone; the database is not consulted here.  Views that need the
live approval state add :class:`identity.permissions.IsApproved`.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions

from identity.errors import InvalidToken
from identity.services.tokens import INVALID_SESSION_MESSAGE, verify_token


class BearerTokenAuthentication(authentication.BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()
        if not auth:
            return None
        if len(auth) != 2 or auth[0].lower() != self.keyword.lower().encode():
            raise exceptions.AuthenticationFailed(INVALID_SESSION_MESSAGE)
        try:
            raw = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed(INVALID_SESSION_MESSAGE)
        try:
            principal = verify_token(raw)
        except InvalidToken:
            raise exceptions.AuthenticationFailed(INVALID_SESSION_MESSAGE)
        return principal, raw

    def authenticate_header(self, request):
        return f'{self.keyword} realm="api"'
