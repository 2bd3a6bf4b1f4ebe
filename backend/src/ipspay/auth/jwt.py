"""JWT authentication with RS256 signing.

Access tokens identify the payer (``sub``) and carry their ``role``; payment
routes turn them into an explicit caller context.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.backends import default_backend

from ipspay.config import settings


class JWTAuth:
    """JWT authentication handler with RS256 signing."""

    def __init__(self):
        """Initialize JWT auth with RSA key pair."""
        self.algorithm = "RS256"
        self.access_token_expire_minutes = settings.access_token_expire_minutes

        # Ephemeral keys: tokens do not survive a restart
        self._private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=2048,
            backend=default_backend()
        )
        self._public_key = self._private_key.public_key()
        self._private_pem = self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

    def create_access_token(
        self,
        user_id: str,
        role: str,
        additional_claims: Optional[Dict] = None,
    ) -> str:
        """
        Create JWT access token.

        Args:
            user_id: Payer account identifier
            role: User role (USER or ADMIN)
            additional_claims: Additional JWT claims

        Returns:
            Encoded JWT token
        """
        now = datetime.utcnow()
        claims = {
            "sub": str(user_id),
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "type": "access",
        }

        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self._private_pem, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict:
        """
        Verify and decode JWT token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid
        """
        return jwt.decode(
            token,
            self.get_public_key_pem(),
            algorithms=[self.algorithm],
            options={"verify_signature": True}
        )

    def verify_access_token(self, token: str) -> Dict:
        """
        Verify access token specifically.

        Raises:
            jwt.InvalidTokenError: If not an access token
        """
        payload = self.verify_token(token)

        if payload.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token")

        return payload

    def get_public_key_pem(self) -> bytes:
        """Public key in PEM format for external verification."""
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )


# Global JWT auth instance
jwt_auth = JWTAuth()
