"""
Credential hashing and access token signing.

This module provides the two cryptographic ports the rest of the
application depends on:
- PasswordHasher: one-way hash + verify of passwords (Argon2id via passlib)
- TokenService: sign + verify of JWT access tokens (python-jose)

Nothing outside this module touches passlib or jose directly. Entities only
ever store the hash produced here.
"""

import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from errors import ExpiredToken, InvalidToken
from time_utils import utc_now

logger = logging.getLogger(__name__)


def is_production_like() -> bool:
    """
    Check if the current environment is production-like (production or staging).

    Returns:
        True if ENVIRONMENT is "production" or "staging", False otherwise
    """
    env = os.environ.get("ENVIRONMENT", "development").lower()
    return env in ("production", "staging")


# JWT configuration
# Load SECRET_KEY from environment variable (REQUIRED outside development)
SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
if not SECRET_KEY:
    if is_production_like():
        raise ValueError(
            "JWT_SECRET_KEY environment variable is required in production. "
            "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )
    else:
        SECRET_KEY = "dev-insecure-key-" + secrets.token_urlsafe(32)
        logger.warning(
            "JWT_SECRET_KEY not set! Using temporary development key. "
            "Tokens will not survive a restart. Set JWT_SECRET_KEY environment variable."
        )

ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
if ALGORITHM not in SUPPORTED_ALGORITHMS:
    logger.warning(
        f"Unsupported JWT_ALGORITHM={ALGORITHM}. Using HS256. "
        f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
    )
    ALGORITHM = "HS256"

try:
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    if ACCESS_TOKEN_EXPIRE_MINUTES < 1 or ACCESS_TOKEN_EXPIRE_MINUTES > 1440:  # 1 min to 24 hours
        logger.warning(
            f"ACCESS_TOKEN_EXPIRE_MINUTES={ACCESS_TOKEN_EXPIRE_MINUTES} is outside safe range (1-1440). "
            "Using default of 60 minutes."
        )
        ACCESS_TOKEN_EXPIRE_MINUTES = 60
except ValueError:
    logger.warning("Invalid ACCESS_TOKEN_EXPIRE_MINUTES value in environment. Using default of 60 minutes.")
    ACCESS_TOKEN_EXPIRE_MINUTES = 60

ACCESS_TOKEN_TYPE = "access"


class PasswordHasher:
    """
    Hash and verify passwords using Argon2id.

    Argon2id is memory-hard and GPU-resistant.
    """

    def __init__(self, context: Optional[CryptContext] = None):
        self.context = context or CryptContext(schemes=["argon2"], deprecated="auto")

    def hash(self, password: str) -> str:
        """
        Hash a password.

        Example:
            >>> hasher = PasswordHasher()
            >>> hasher.verify("S3cure!pass", hasher.hash("S3cure!pass"))
            True
        """
        logger.debug("Hashing password")
        return self.context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Return True if the password matches the hash."""
        logger.debug("Verifying password")
        try:
            return self.context.verify(plain_password, hashed_password)
        except ValueError:
            # Hash is not in a recognized format
            logger.info("Stored password hash could not be parsed")
            return False


@dataclass(frozen=True)
class TokenPayload:
    """Verified claims of an access token. Holds nothing sensitive."""

    subject_id: int
    email: Optional[str]
    role: Optional[str]
    issued_at: Optional[datetime]
    expires_at: datetime


class TokenService:
    """Sign and verify JWT access tokens."""

    def __init__(
        self,
        secret_key: str = SECRET_KEY,
        algorithm: str = ALGORITHM,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def sign(
        self,
        subject_id: int,
        email: Optional[str] = None,
        role: Optional[str] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a signed access token.

        Args:
            subject_id: ID of the user the token is issued to
            email: Included for display purposes only
            role: Included for display purposes only (authorization always
                re-reads the role from the database)
            expires_delta: Optional custom lifetime

        Returns:
            Encoded JWT string

        Example:
            >>> token = TokenService().sign(1, "ana@test.com", "MEMBER")
        """
        issued_at = utc_now()
        expire = issued_at + (expires_delta or timedelta(minutes=self.expire_minutes))
        claims: Dict[str, Any] = {
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expire.timestamp()),
            "type": ACCESS_TOKEN_TYPE,
        }
        if email is not None:
            claims["email"] = email
        if role is not None:
            claims["role"] = role

        token = jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Access token created for user {subject_id}, expires at: {expire}")
        return token

    def verify(self, token: str) -> TokenPayload:
        """
        Verify a token's signature, expiry and shape.

        Raises:
            ExpiredToken: if the token is past its expiry
            InvalidToken: for any other verification failure
        """
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.info("JWT verification failed: token expired")
            raise ExpiredToken()
        except JWTError as e:
            logger.info(f"JWT verification failed: {str(e)}")
            raise InvalidToken()

        if claims.get("type") != ACCESS_TOKEN_TYPE:
            logger.info(f"Invalid token type: {claims.get('type')}")
            raise InvalidToken("Invalid token type. Use an access token for API requests.")

        # Parse sub safely (malformed tokens should be 401, not 500)
        try:
            subject_id = int(claims.get("sub"))
        except (TypeError, ValueError):
            logger.info(f"Invalid subject format in token: {claims.get('sub')}")
            raise InvalidToken("Invalid token payload")

        if claims.get("exp") is None:
            raise InvalidToken("Token has no expiry")

        issued_at = claims.get("iat")
        return TokenPayload(
            subject_id=subject_id,
            email=claims.get("email"),
            role=claims.get("role"),
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc) if issued_at is not None else None,
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )


password_hasher = PasswordHasher()
token_service = TokenService()


def get_password_hasher() -> PasswordHasher:
    """FastAPI dependency for the password hashing port."""
    return password_hasher


def get_token_service() -> TokenService:
    """FastAPI dependency for the token signing port."""
    return token_service
