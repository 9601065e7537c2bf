"""
Authentication service for Ritual.

This module implements the account lifecycle:
- Register: uniqueness check, password hash, user write, email index write
- Login: email lookup, password verify, token issuance
- Authorize: bearer token verification on protected routes
- Profile update: rename through Entity.mutate

Invariants:
    - Plaintext passwords are never stored, logged or returned
    - Login failures are indistinguishable ("Invalid credentials")
    - The email index record is written only after the user record
    - The signing secret is injected through TokenSigner, never read globally

How to change safely:
    - Changing the password scheme list is safe: passlib verifies old hashes
      with any listed scheme and hashes new ones with the first
    - Changing the token claims requires a coordinated frontend release
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import AuthConfig
from ..entity import USER, Entity, User, email_index
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..kv.base import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class PasswordHasher:
    """One-way password hashing backed by a passlib CryptContext."""

    def __init__(self, schemes: tuple[str, ...] = ("pbkdf2_sha256",)) -> None:
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except ValueError:
            # Stored value is not a hash any configured scheme recognises
            logger.warning("Unrecognised password hash format")
            return False


class TokenSigner:
    """Issues and verifies signed bearer tokens.

    Tokens carry {"sub": user id, "email": email, "exp": epoch seconds}.

    Example:
        >>> signer = TokenSigner("secret")
        >>> token = signer.issue(user)
        >>> signer.verify(token)["sub"] == user.id
        True
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @classmethod
    def from_config(cls, config: AuthConfig) -> TokenSigner:
        return cls(
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            ttl_seconds=config.token_ttl_days * 24 * 60 * 60,
        )

    def issue(self, user: User) -> str:
        claims = {
            "sub": user.id,
            "email": user.email,
            "exp": int(self._clock()) + self.ttl_seconds,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Verify signature and expiry and return the claims.

        Raises:
            AuthError: If the token is malformed, expired or badly signed
        """
        try:
            # Expiry is checked against our clock rather than jose's
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            raise AuthError("Unauthorized: Invalid token")

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self._clock():
            raise AuthError("Unauthorized: Invalid token")
        return claims


class AuthService:
    """Registration, login and token authorization.

    Attributes:
        store: Key-value store holding users and the email index
        hasher: Password hasher
        signer: Token signer configured with the process secret
    """

    def __init__(self, store: KeyValueStore, hasher: PasswordHasher, signer: TokenSigner) -> None:
        self.store = store
        self.hasher = hasher
        self.signer = signer

    async def register(self, name: str | None, email: str | None, password: str | None) -> User:
        """Create an account.

        The user record is written before the email index record. If the
        index write fails the user record is left in place, unreachable by
        email, and the failure propagates.

        Returns:
            The stored user (including the password hash)

        Raises:
            ValidationError: If name, email or password is missing
            ConflictError: If the email is already registered
        """
        if not name or not email or not password:
            raise ValidationError("Name, email, and password are required")

        emails = email_index(self.store)
        if await emails.exists(email):
            raise ConflictError("User with this email already exists", key=email)

        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password=self.hasher.hash(password),
        )
        await Entity.create(self.store, USER, user)

        try:
            await emails.claim(email, user.id)
        except StoreError:
            logger.error(
                "Email index write failed after user creation; user is orphaned",
                extra={"user_id": user.id},
                exc_info=True,
            )
            raise

        logger.info("Registered user", extra={"user_id": user.id})
        return user

    async def login(self, email: str | None, password: str | None) -> tuple[User, str]:
        """Verify credentials and issue a token.

        Returns:
            Tuple of (stored user, signed token)

        Raises:
            ValidationError: If email or password is missing
            AuthError: With status 404 for any credential failure
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        user_id = await email_index(self.store).lookup(email)
        if user_id is None:
            raise AuthError(INVALID_CREDENTIALS, status_code=404)

        entity = Entity(self.store, USER, user_id)
        if not await entity.exists():
            logger.warning("Email index points at a missing user", extra={"user_id": user_id})
            raise AuthError(INVALID_CREDENTIALS, status_code=404)

        user = await entity.get_state()
        if not self.hasher.verify(password, user.password):
            raise AuthError(INVALID_CREDENTIALS, status_code=404)

        token = self.signer.issue(user)
        logger.info("User logged in", extra={"user_id": user.id})
        return user, token

    def authorize(self, token: str | None) -> str:
        """Resolve a bearer token to the caller's user id.

        Raises:
            AuthError: If the token is missing, invalid, expired or has no subject
        """
        if not token:
            raise AuthError("Unauthorized: Missing token")
        claims = self.signer.verify(token)
        subject = claims.get("sub")
        if not subject or not isinstance(subject, str):
            raise AuthError("Unauthorized: Invalid token payload")
        return subject

    async def get_user(self, user_id: str) -> User:
        """Load a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        entity = Entity(self.store, USER, user_id)
        if not await entity.exists():
            raise NotFoundError("User not found", "user", user_id)
        return await entity.get_state()

    async def update_profile(self, user_id: str, name: str | None) -> User:
        """Change a user's display name.

        Raises:
            ValidationError: If name is missing
            NotFoundError: If the user does not exist
        """
        if not name:
            raise ValidationError("Name is required", "name")

        entity = Entity(self.store, USER, user_id)
        if not await entity.exists():
            raise NotFoundError("User not found", "user", user_id)
        return await entity.mutate(lambda current: replace(current, name=name))
