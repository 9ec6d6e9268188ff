"""
Session token issuing and verification.

Tokens are stateless HS256 JWTs minted with ``rest_framework_simplejwt``.
There is no revocation list: expiry (``SIMPLE_JWT['ACCESS_TOKEN_LIFETIME']``)
is the only bound on validity.  The claims carried by a token are trusted
as of issuance; role changes made afterwards are only seen once the holder
obtains a new token.
"""
from __future__ import annotations

from dataclasses import dataclass

from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from identity.errors import InvalidToken

INVALID_SESSION_MESSAGE = 'Token is not valid'


@dataclass(frozen=True)
class TokenPrincipal:
    """Identity resolved from a verified bearer token."""
    id: int
    email: str
    role: str
    unique_id: str

    is_authenticated = True
    is_anonymous = False

    @property
    def pk(self) -> int:
        return self.id

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def is_patient(self) -> bool:
        return self.role == 'patient'


def issue_token(account) -> str:
    """Return a signed bearer token for ``account``."""
    token = AccessToken.for_user(account)
    token['email'] = account.email
    token['role'] = account.role
    token['uniqueId'] = account.unique_id
    return str(token)


def verify_token(raw: str) -> TokenPrincipal:
    """Decode ``raw`` or raise :class:`InvalidToken`.

    Bad signatures, expired tokens and malformed payloads all fail the
    same way.
    """
    try:
        token = AccessToken(raw)
        return TokenPrincipal(
            id=int(token['id']),
            email=token.get('email', ''),
            role=token['role'],
            unique_id=token.get('uniqueId', ''),
        )
    except (TokenError, KeyError, TypeError, ValueError) as exc:
        raise InvalidToken(INVALID_SESSION_MESSAGE) from exc
