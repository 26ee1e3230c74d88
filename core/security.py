"""
Security Utilities
==================

Password hashing (passlib/bcrypt) and JWT signing/verification (python-jose).
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from exceptions import InvalidTokenError


class PasswordHasher:
    """
    bcrypt password hashing.

    Both methods are CPU-bound; call them from a thread pool when on the
    event loop.
    """

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if ``password`` matches; malformed hashes never match."""
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            return False


class TokenCodec:
    """
    Signs and verifies JWTs with a single secret.

    Every token gets ``iat``, ``exp`` and a random ``jti``, so two tokens
    issued for the same claims in the same second still differ.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def sign(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        """
        Create a signed token.

        Args:
            claims: Payload data to encode in the token
            ttl: How long the token stays valid

        Returns:
            str: The encoded JWT
        """
        now = datetime.now(timezone.utc)
        to_encode = claims.copy()
        to_encode.update({
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        })
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode a token.

        Raises:
            InvalidTokenError: If the signature is wrong, the token is
                malformed, or it has expired
        """
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except JWTError as e:
            raise InvalidTokenError() from e
