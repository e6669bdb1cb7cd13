"""
Credential store: user registration, password verification and session tokens.

Passwords are hashed with bcrypt (off the event loop) and sessions are
HS256-signed JWTs carrying the user's id and username, so a token's signature
can be checked without touching the database.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from catalog.database import to_object_id
from utilities.errors import ConflictError, InvalidTokenError, ValidationError
from utilities.logger import get_logger
from .models import User, UserData

logger = get_logger(__name__)

# bcrypt ignores (or rejects, depending on version) anything past 72 bytes
BCRYPT_MAX_PASSWORD_BYTES = 72


class CredentialStore:
    """Owns user records and the session tokens issued for them."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        secret_key: str,
        algorithm: str = "HS256",
        token_expire_minutes: Optional[int] = None,
        bcrypt_rounds: int = 10
    ):
        """
        Initialize the credential store.

        Args:
            database: Motor database holding the users collection
            secret_key: Key used to sign and verify session tokens
            algorithm: JWT signing algorithm
            token_expire_minutes: Token lifetime; None issues non-expiring tokens
            bcrypt_rounds: bcrypt cost factor
        """
        self.users = database["users"]
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_expire_minutes = token_expire_minutes
        self.bcrypt_rounds = bcrypt_rounds

    async def create_indexes(self) -> None:
        try:
            await self.users.create_index("username", unique=True)
            logger.info("Successfully created user indexes")
        except Exception as e:
            logger.error("Failed to create user indexes", error=str(e))
            raise

    async def _hash_password(self, password: str) -> str:
        hashed = await asyncio.to_thread(
            bcrypt.hashpw,
            password.encode("utf-8"),
            bcrypt.gensalt(rounds=self.bcrypt_rounds)
        )
        return hashed.decode("utf-8")

    async def _check_password(self, password: str, password_hash: str) -> bool:
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            return False
        return await asyncio.to_thread(
            bcrypt.checkpw,
            password.encode("utf-8"),
            password_hash.encode("utf-8")
        )

    async def register(self, username: str, favorite_genre: str, password: str) -> User:
        """
        Create a user whose password hash is derived from the supplied secret.

        Args:
            username: Login name
            favorite_genre: Preferred genre
            password: Plain-text secret

        Returns:
            The stored User

        Raises:
            ValidationError: If a field is missing or too short
            ConflictError: If the username is taken
        """
        try:
            user_data = UserData(
                username=username,
                favorite_genre=favorite_genre,
                password=password
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic("User creation failed", e) from e

        if len(user_data.password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(
                "User creation failed",
                [f"password: Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"]
            )

        document = {
            "username": user_data.username,
            "favorite_genre": user_data.favorite_genre,
            "password_hash": await self._hash_password(user_data.password),
        }
        try:
            result = await self.users.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("Username already taken", username=username)
            raise ConflictError("Username must be unique") from e

        logger.info("User registered", username=username, user_id=str(result.inserted_id))
        return User(
            id=str(result.inserted_id),
            username=user_data.username,
            favorite_genre=user_data.favorite_genre
        )

    async def verify(self, username: str, password: str) -> Optional[User]:
        """Return the user when the password matches, otherwise None."""
        document = await self.users.find_one({"username": username})
        if not document:
            return None
        if not await self._check_password(password, document["password_hash"]):
            return None
        return User.from_document(document)

    async def login(self, username: str, password: str) -> str:
        """
        Verify credentials and issue a session token.

        Unknown usernames and wrong passwords fail identically.

        Raises:
            ValidationError: If the credentials do not match
        """
        user = await self.verify(username, password)
        if user is None:
            logger.info("Login rejected")
            raise ValidationError("wrong credentials")

        logger.info("Login succeeded", user_id=user.id)
        return self.issue_session(user)

    def issue_session(self, user: User) -> str:
        """Sign a token embedding the user's id and username."""
        claims = {"username": user.username, "id": user.id}
        if self.token_expire_minutes:
            claims["exp"] = datetime.now(timezone.utc) + timedelta(minutes=self.token_expire_minutes)
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    async def resolve_session(self, token: str) -> Optional[User]:
        """
        Resolve a bearer token to its user.

        Args:
            token: Signed session token

        Returns:
            The referenced User, or None if the signature is invalid, the token
            has expired or the user no longer exists

        Raises:
            InvalidTokenError: If the token is not a well-formed session token
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise InvalidTokenError("Malformed bearer token") from e

        if not isinstance(unverified.get("id"), str) or to_object_id(unverified["id"]) is None:
            raise InvalidTokenError("Bearer token has no user id")

        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected bearer token", reason=str(e))
            return None

        return await self.get_user(claims["id"])

    async def get_user(self, user_id: str) -> Optional[User]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        document = await self.users.find_one({"_id": object_id})
        if document:
            return User.from_document(document)
        return None
