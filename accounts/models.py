"""
User account models.
"""

from typing import Any, Dict
from pydantic import BaseModel, Field, validator

MIN_USERNAME_LENGTH = 3


class UserData(BaseModel):
    """Registration input."""
    username: str = Field(..., description="Login name, unique")
    favorite_genre: str = Field(..., description="Preferred genre")
    password: str = Field(..., description="Plain-text secret, hashed before storage")

    @validator('username')
    def validate_username(cls, v):
        """Ensure the username meets the minimum length."""
        if len(v.strip()) < MIN_USERNAME_LENGTH:
            raise ValueError(f'Username must be at least {MIN_USERNAME_LENGTH} characters long')
        return v

    @validator('favorite_genre')
    def validate_favorite_genre(cls, v):
        """Ensure a favourite genre is given."""
        if not v.strip():
            raise ValueError('Favorite genre is required')
        return v

    @validator('password')
    def validate_password(cls, v):
        """Ensure a password is given."""
        if not v:
            raise ValueError('Password is required')
        return v


class User(BaseModel):
    """Stored user. The password hash never leaves the accounts package."""
    id: str = Field(..., description="User identifier")
    username: str = Field(..., description="Login name")
    favorite_genre: str = Field(..., description="Preferred genre")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "User":
        return cls(
            id=str(document["_id"]),
            username=document["username"],
            favorite_genre=document["favorite_genre"],
        )
