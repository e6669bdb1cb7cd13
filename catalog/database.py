"""
MongoDB catalog store for authors and books.
Owns the uniqueness indexes and the author/book linkage.
"""

from typing import Dict, Iterable, List, Optional, Tuple
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from utilities.errors import ConflictError, NotFoundError, ValidationError
from utilities.logger import get_logger
from .models import Author, AuthorData, Book, BookData, BookFilter, BookInput

logger = get_logger(__name__)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a string identifier, returning None when it is not an ObjectId."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class CatalogStore:
    """
    Async store for Author and Book records.
    Uniqueness of author names and book titles is enforced by unique indexes,
    so concurrent creations of the same key yield exactly one record.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        """
        Initialize the catalog store.

        Args:
            database: Motor database holding the authors and books collections
        """
        self.database = database
        self.authors = database["authors"]
        self.books = database["books"]

    async def create_indexes(self) -> None:
        """Create the unique and lookup indexes the catalog relies on."""
        try:
            await self.authors.create_index("name", unique=True)
            await self.books.create_index("title", unique=True)

            # Lookups for allBooks filters and bookCount
            await self.books.create_index("author")
            await self.books.create_index("genres")

            logger.info("Successfully created catalog indexes")

        except Exception as e:
            logger.error("Failed to create catalog indexes", error=str(e))
            raise

    async def find_author_by_name(self, name: str) -> Optional[Author]:
        document = await self.authors.find_one({"name": name})
        if document:
            return Author.from_document(document)
        return None

    async def get_author(self, author_id: str) -> Optional[Author]:
        object_id = to_object_id(author_id)
        if object_id is None:
            return None
        document = await self.authors.find_one({"_id": object_id})
        if document:
            return Author.from_document(document)
        return None

    async def get_authors_by_ids(self, author_ids: Iterable[str]) -> Dict[str, Author]:
        """
        Load several authors in one query.

        Args:
            author_ids: Author identifiers, duplicates allowed

        Returns:
            Mapping of identifier to Author for every identifier found
        """
        object_ids = [oid for oid in {to_object_id(a) for a in author_ids} if oid is not None]
        if not object_ids:
            return {}

        authors = {}
        async for document in self.authors.find({"_id": {"$in": object_ids}}):
            author = Author.from_document(document)
            authors[author.id] = author
        return authors

    async def list_authors(self) -> List[Author]:
        """Return every author in storage order."""
        authors = []
        async for document in self.authors.find({}):
            authors.append(Author.from_document(document))
        return authors

    async def create_author(self, name: str) -> Author:
        """
        Insert a new author.

        Args:
            name: Author name

        Returns:
            The stored Author

        Raises:
            ValidationError: If the name is too short
            ConflictError: If an author with this name already exists
        """
        try:
            author_data = AuthorData(name=name)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic("Failed to create author", e) from e

        try:
            result = await self.authors.insert_one(author_data.dict(exclude_none=True))
        except DuplicateKeyError as e:
            logger.warning("Author already exists", name=name)
            raise ConflictError("Author name must be unique") from e

        logger.info("Author created", name=name, author_id=str(result.inserted_id))
        return Author(id=str(result.inserted_id), **author_data.dict())

    async def find_or_create_author(self, name: str) -> Author:
        """
        Return the author with this name, creating it if absent.

        A concurrent creator may win the insert between our lookup and our
        insert; in that case the winner's record is re-read and reused.

        Args:
            name: Author name

        Returns:
            The existing or newly created Author
        """
        author, _ = await self._find_or_create_author(name)
        return author

    async def _find_or_create_author(self, name: str) -> Tuple[Author, bool]:
        author = await self.find_author_by_name(name)
        if author:
            return author, False

        try:
            return await self.create_author(name), True
        except ConflictError:
            author = await self.find_author_by_name(name)
            if author is None:
                raise
            logger.debug("Reusing concurrently created author", name=name, author_id=author.id)
            return author, False

    async def delete_author(self, author_id: str) -> bool:
        """Remove an author that no book references. Returns whether one was removed."""
        object_id = to_object_id(author_id)
        if object_id is None:
            return False
        if await self.books.count_documents({"author": object_id}):
            logger.warning("Refusing to delete referenced author", author_id=author_id)
            return False
        result = await self.authors.delete_one({"_id": object_id})
        return result.deleted_count == 1

    async def update_author_born(self, author: Author, year: int) -> Author:
        """
        Set an author's year of birth.

        Args:
            author: Author to update
            year: New year of birth

        Returns:
            The updated Author

        Raises:
            ValidationError: If the year is negative
            NotFoundError: If the author no longer exists
        """
        try:
            updated = Author(id=author.id, name=author.name, born=year)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic("Failed to edit author", e) from e

        result = await self.authors.update_one(
            {"_id": ObjectId(author.id)},
            {"$set": {"born": year}}
        )
        if result.matched_count == 0:
            logger.warning("Author not found for update", author_id=author.id)
            raise NotFoundError("Author not found")

        logger.info("Author updated", author_id=author.id, born=year)
        return updated

    async def create_book(
        self,
        title: str,
        author_id: str,
        published: int,
        genres: List[str]
    ) -> Book:
        """
        Insert a new book referencing an existing author.

        Args:
            title: Book title
            author_id: Identifier of the book's author
            published: Publication year
            genres: Genres in submission order

        Returns:
            The stored Book

        Raises:
            ValidationError: If the title is too short
            ConflictError: If a book with this title already exists
            NotFoundError: If the author does not exist
        """
        try:
            book_data = BookData(
                title=title,
                author_id=author_id,
                published=published,
                genres=genres
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic("Failed to add book", e) from e

        if await self.get_author(author_id) is None:
            raise NotFoundError("Author not found")

        document = {
            "title": book_data.title,
            "author": ObjectId(book_data.author_id),
            "published": book_data.published,
            "genres": book_data.genres,
        }
        try:
            result = await self.books.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("Book already exists", title=title)
            raise ConflictError("Book title must be unique") from e

        logger.info("Book created", title=title, book_id=str(result.inserted_id), author_id=author_id)
        return Book(id=str(result.inserted_id), **book_data.dict())

    async def add_book(
        self,
        title: str,
        author_name: str,
        published: int,
        genres: List[str]
    ) -> Tuple[Book, Author]:
        """
        Add a book by author name, creating the author on first reference.

        The book fields and title uniqueness are checked before the author is
        written. If the book insert still fails, an author created by this
        call is removed again so the catalog is left as it was.

        Args:
            title: Book title
            author_name: Name of the book's author
            published: Publication year
            genres: Genres in submission order

        Returns:
            The stored Book and its Author

        Raises:
            ValidationError: If the title or author name is too short
            ConflictError: If a book with this title already exists
        """
        try:
            BookInput(title=title, published=published, genres=genres)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic("Failed to add book", e) from e

        if await self.books.find_one({"title": title}):
            logger.warning("Book already exists", title=title)
            raise ConflictError("Book title must be unique")

        author, created = await self._find_or_create_author(author_name)
        try:
            book = await self.create_book(title, author.id, published, genres)
        except Exception:
            if created:
                await self.delete_author(author.id)
                logger.info("Removed author after failed book insert", author_id=author.id)
            raise

        return book, author

    async def list_books(self, book_filter: Optional[BookFilter] = None) -> List[Book]:
        """
        Return books matching every given filter, in storage order.

        An author name that matches no author yields an empty list. Empty
        filters are treated as absent.

        Args:
            book_filter: Optional author name and genre filters

        Returns:
            Matching books
        """
        book_filter = book_filter or BookFilter()
        query = {}

        if book_filter.author_name:
            author = await self.find_author_by_name(book_filter.author_name)
            if author is None:
                logger.debug("Author filter matched nothing", author_name=book_filter.author_name)
                return []
            query["author"] = ObjectId(author.id)

        if book_filter.genre:
            query["genres"] = book_filter.genre

        books = []
        async for document in self.books.find(query):
            books.append(Book.from_document(document))
        return books

    async def count_books_by_author(self, author_id: str) -> int:
        object_id = to_object_id(author_id)
        if object_id is None:
            return 0
        return await self.books.count_documents({"author": object_id})

    async def count_books(self) -> int:
        return await self.books.count_documents({})

    async def count_authors(self) -> int:
        return await self.authors.count_documents({})

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "books_count": await self.count_books(),
                "authors_count": await self.count_authors()
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy"
            }
