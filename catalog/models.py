"""
Pydantic models for author and book records.
Validation here mirrors the constraints enforced by the store's indexes.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, validator

MIN_NAME_LENGTH = 3
MIN_TITLE_LENGTH = 3


class AuthorData(BaseModel):
    """Author fields as written to the authors collection."""
    name: str = Field(..., description="Author name, unique")
    born: Optional[int] = Field(None, description="Year of birth")

    @validator('name')
    def validate_name(cls, v):
        """Ensure the name meets the minimum length."""
        if len(v) < MIN_NAME_LENGTH:
            raise ValueError(f'Author name must be at least {MIN_NAME_LENGTH} characters long')
        return v

    @validator('born')
    def validate_born(cls, v):
        """Ensure the birth year is non-negative."""
        if v is not None and v < 0:
            raise ValueError('Year of birth cannot be negative')
        return v


class Author(AuthorData):
    """Stored author."""
    id: str = Field(..., description="Author identifier")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Author":
        return cls(
            id=str(document["_id"]),
            name=document["name"],
            born=document.get("born"),
        )


class BookInput(BaseModel):
    """Book fields supplied by the caller, before the author is resolved."""
    title: str = Field(..., description="Book title, unique")
    published: int = Field(..., description="Publication year")
    genres: List[str] = Field(default_factory=list, description="Genres in submission order")

    @validator('title')
    def validate_title(cls, v):
        """Ensure the title meets the minimum length."""
        if len(v) < MIN_TITLE_LENGTH:
            raise ValueError(f'Book title must be at least {MIN_TITLE_LENGTH} characters long')
        return v


class BookData(BookInput):
    """Book fields as written to the books collection."""
    author_id: str = Field(..., description="Identifier of the referenced author")


class Book(BookData):
    """Stored book."""
    id: str = Field(..., description="Book identifier")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Book":
        return cls(
            id=str(document["_id"]),
            title=document["title"],
            author_id=str(document["author"]),
            published=document["published"],
            genres=list(document.get("genres", [])),
        )


class BookFilter(BaseModel):
    """Optional filters for book listings; combined with AND."""
    author_name: Optional[str] = Field(None, description="Only books by this author")
    genre: Optional[str] = Field(None, description="Only books tagged with this genre")
