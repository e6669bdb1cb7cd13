"""
GraphQL schema and resolvers for the library catalog.

Reads go straight to the catalog store. Writes pass the authentication gate
first, then touch the stores. Every resolver body runs inside error_boundary
so that only classified errors leave the API.
"""

from typing import List, Optional

import strawberry
from strawberry.types import Info

from accounts.models import User
from catalog.models import Author, Book, BookFilter
from library_api.context import require_current_user
from library_api.errors import error_boundary
from utilities.errors import NotFoundError
from utilities.logger import bind_operation


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID
    username: str
    favorite_genre: str

    @classmethod
    def from_model(cls, user: User) -> "UserType":
        return cls(id=strawberry.ID(user.id), username=user.username, favorite_genre=user.favorite_genre)


@strawberry.type(name="Token")
class TokenType:
    value: str


@strawberry.type(name="Author")
class AuthorType:
    id: strawberry.ID
    name: str
    born: Optional[int] = None

    @classmethod
    def from_model(cls, author: Author) -> "AuthorType":
        return cls(id=strawberry.ID(author.id), name=author.name, born=author.born)

    @strawberry.field
    async def book_count(self, info: Info) -> int:
        """Number of books referencing this author, computed on every read."""
        async with error_boundary("Author.bookCount"):
            return await info.context["catalog"].count_books_by_author(str(self.id))


@strawberry.type(name="Book")
class BookType:
    id: strawberry.ID
    title: str
    author: AuthorType
    published: int
    genres: List[str]

    @classmethod
    def from_model(cls, book: Book, author: Author) -> "BookType":
        return cls(
            id=strawberry.ID(book.id),
            title=book.title,
            author=AuthorType.from_model(author),
            published=book.published,
            genres=list(book.genres),
        )


def _track(info: Info, operation: str) -> None:
    bind_operation(operation, authenticated=info.context.get("current_user") is not None)


@strawberry.type
class Query:

    @strawberry.field
    def me(self, info: Info) -> Optional[UserType]:
        current_user = info.context.get("current_user")
        if current_user is None:
            return None
        return UserType.from_model(current_user)

    @strawberry.field
    async def book_count(self, info: Info) -> int:
        _track(info, "bookCount")
        async with error_boundary("bookCount"):
            return await info.context["catalog"].count_books()

    @strawberry.field
    async def author_count(self, info: Info) -> int:
        _track(info, "authorCount")
        async with error_boundary("authorCount"):
            return await info.context["catalog"].count_authors()

    @strawberry.field
    async def all_books(
        self,
        info: Info,
        author: Optional[str] = None,
        genre: Optional[str] = None
    ) -> List[BookType]:
        """Books filtered by author name and/or genre, in storage order."""
        _track(info, "allBooks")
        async with error_boundary("allBooks"):
            catalog = info.context["catalog"]
            books = await catalog.list_books(BookFilter(author_name=author, genre=genre))
            authors = await catalog.get_authors_by_ids(book.author_id for book in books)
            return [
                BookType.from_model(book, authors[book.author_id])
                for book in books
                if book.author_id in authors
            ]

    @strawberry.field
    async def all_authors(self, info: Info) -> List[AuthorType]:
        _track(info, "allAuthors")
        async with error_boundary("allAuthors"):
            authors = await info.context["catalog"].list_authors()
            return [AuthorType.from_model(author) for author in authors]


@strawberry.type
class Mutation:

    @strawberry.mutation
    async def create_user(
        self,
        info: Info,
        username: str,
        favorite_genre: str,
        password: str
    ) -> Optional[UserType]:
        _track(info, "createUser")
        async with error_boundary("createUser"):
            user = await info.context["credentials"].register(username, favorite_genre, password)
            return UserType.from_model(user)

    @strawberry.mutation
    async def login(self, info: Info, username: str, password: str) -> Optional[TokenType]:
        _track(info, "login")
        async with error_boundary("login"):
            token = await info.context["credentials"].login(username, password)
            return TokenType(value=token)

    @strawberry.mutation
    async def add_book(
        self,
        info: Info,
        title: str,
        author: str,
        published: int,
        genres: List[str]
    ) -> Optional[BookType]:
        """
        Add a book, creating its author on first reference.

        The gate runs before any lookup or write, so an anonymous call leaves
        the catalog untouched. A call that fails on the book leaves no new
        author behind.
        """
        _track(info, "addBook")
        async with error_boundary("addBook"):
            require_current_user(info.context)
            catalog = info.context["catalog"]
            book, book_author = await catalog.add_book(title, author, published, genres)
            return BookType.from_model(book, book_author)

    @strawberry.mutation
    async def edit_author(self, info: Info, name: str, set_born_to: int) -> Optional[AuthorType]:
        """Set an existing author's birth year. Unknown authors are never created here."""
        _track(info, "editAuthor")
        async with error_boundary("editAuthor"):
            require_current_user(info.context)
            catalog = info.context["catalog"]
            author = await catalog.find_author_by_name(name)
            if author is None:
                raise NotFoundError("Author not found")
            updated = await catalog.update_author_born(author, set_born_to)
            return AuthorType.from_model(updated)


schema = strawberry.Schema(query=Query, mutation=Mutation)
