"""Bearer token verification.

The API never issues tokens. It only needs something that turns a bearer
token into a Principal, so the verifier is a small protocol injected through
``dependencies.get_token_verifier``; deployments behind another identity
provider override that dependency.
"""

from dataclasses import dataclass, field
from typing import Protocol

from ..errors import AuthError
from ..utils.security import decode_access_token


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. ``subject`` is the caller's account email."""

    subject: str
    claims: dict = field(default_factory=dict)


class TokenVerifier(Protocol):
    def verify_token(self, token: str) -> Principal:
        """Return the principal for a valid token or raise AuthError."""
        ...


class JWTTokenVerifier:
    """Validates HMAC-signed JWTs with a shared secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify_token(self, token: str) -> Principal:
        payload = decode_access_token(token, self.secret_key, self.algorithm)
        if payload is None:
            raise AuthError("Invalid or expired token")
        subject = payload.get("sub")
        if not subject:
            raise AuthError("Token has no subject")
        return Principal(subject=str(subject), claims=payload)
