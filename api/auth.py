"""
Token-based authentication for the FastAPI API.

Tokens are stateless HS256 JWTs carrying the username and user id. They
expire after a fixed lifetime; there is no refresh and no revocation.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from bookstore.errors import InvalidTokenError, UnauthenticatedError
from bookstore.models import Identity, User
from utilities.config import BookstoreConfig

logger = structlog.get_logger(__name__)

# Missing credentials are reported by get_current_identity, not by HTTPBearer
security = HTTPBearer(auto_error=False)


class TokenService:
    """Issues and verifies signed identity tokens."""

    def __init__(self, config: BookstoreConfig):
        self.secret_key = config.secret_key
        self.algorithm = config.algorithm
        self.expires = timedelta(minutes=config.access_token_expire_minutes)

    def issue(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a signed token for a logged-in user.

        Args:
            user: Authenticated user
            expires_delta: Lifetime override; defaults to the configured expiry

        Returns:
            Encoded JWT string
        """
        expire = datetime.now(timezone.utc) + (expires_delta or self.expires)
        payload = {"username": user.username, "id": user.id, "exp": expire}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        """
        Decode a token and return the identity it asserts.

        Raises:
            InvalidTokenError: For a bad signature, malformed token, expired
                token or a payload without username and id
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning("Token rejected", error=str(e))
            raise InvalidTokenError("Invalid token")

        username = payload.get("username")
        user_id = payload.get("id")
        if not isinstance(username, str) or not isinstance(user_id, str):
            logger.warning("Token payload missing identity claims")
            raise InvalidTokenError("Invalid token")

        return Identity(username=username, id=user_id)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """
    Resolve the caller's identity from the Authorization header.

    Raises:
        UnauthenticatedError: If no bearer token was sent
        InvalidTokenError: If the token does not verify
    """
    if credentials is None:
        raise UnauthenticatedError("Token missing")

    return tokens.verify(credentials.credentials)
