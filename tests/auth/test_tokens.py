"""Tests for bearer token verification."""

import pytest

from userhub.auth.tokens import JWTTokenVerifier, Principal
from userhub.errors import AuthError
from userhub.utils.security import create_access_token

SECRET = "unit-test-secret"


class TestJWTTokenVerifier:
    def test_valid_token_yields_principal(self):
        token = create_access_token({"sub": "ada@example.com", "scope": "ops"}, SECRET)

        principal = JWTTokenVerifier(SECRET).verify_token(token)

        assert isinstance(principal, Principal)
        assert principal.subject == "ada@example.com"
        assert principal.claims["scope"] == "ops"

    def test_wrong_secret_rejected(self):
        token = create_access_token({"sub": "ada@example.com"}, "another-secret")
        with pytest.raises(AuthError):
            JWTTokenVerifier(SECRET).verify_token(token)

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "ada@example.com"}, SECRET, expires_minutes=-1)
        with pytest.raises(AuthError):
            JWTTokenVerifier(SECRET).verify_token(token)

    def test_token_without_subject_rejected(self):
        token = create_access_token({"scope": "ops"}, SECRET)
        with pytest.raises(AuthError, match="no subject"):
            JWTTokenVerifier(SECRET).verify_token(token)

    def test_algorithm_mismatch_rejected(self):
        token = create_access_token({"sub": "ada@example.com"}, SECRET, algorithm="HS512")
        with pytest.raises(AuthError):
            JWTTokenVerifier(SECRET, algorithm="HS256").verify_token(token)
