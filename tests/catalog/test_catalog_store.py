"""
Tests for the MongoDB catalog store.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from catalog.database import CatalogStore
from catalog.models import BookFilter
from utilities.errors import ConflictError, NotFoundError, ValidationError


async def add_books(store, books):
    for title, author_name, published, genres in books:
        author = await store.find_or_create_author(author_name)
        await store.create_book(title, author.id, published, genres)


class TestAuthors:
    """Author creation, lookup and editing."""

    @pytest.mark.asyncio
    async def test_create_and_find_author(self, catalog_store):
        created = await catalog_store.create_author("Robert Martin")
        found = await catalog_store.find_author_by_name("Robert Martin")

        assert found == created
        assert found.born is None

    @pytest.mark.asyncio
    async def test_find_missing_author_returns_none(self, catalog_store):
        assert await catalog_store.find_author_by_name("Nobody Here") is None

    @pytest.mark.asyncio
    async def test_short_name_is_validation_error(self, catalog_store):
        with pytest.raises(ValidationError) as exc_info:
            await catalog_store.create_author("Al")

        assert exc_info.value.field_errors == ["name: Author name must be at least 3 characters long"]
        assert await catalog_store.count_authors() == 0

    @pytest.mark.asyncio
    async def test_duplicate_name_is_conflict(self, catalog_store):
        await catalog_store.create_author("Robert Martin")

        with pytest.raises(ConflictError):
            await catalog_store.create_author("Robert Martin")

        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_find_or_create_reuses_existing(self, catalog_store):
        first = await catalog_store.find_or_create_author("Martin Fowler")
        second = await catalog_store.find_or_create_author("Martin Fowler")

        assert first.id == second.id
        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_find_or_create_concurrent_callers(self, catalog_store):
        results = await asyncio.gather(*[
            catalog_store.find_or_create_author("Sandi Metz") for _ in range(5)
        ])

        assert len({author.id for author in results}) == 1
        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_find_or_create_lost_race_reuses_winner(self, catalog_store):
        winner = await catalog_store.create_author("Kent Beck")

        # The lookup misses, then another request inserts before we do
        with patch.object(
            catalog_store,
            "find_author_by_name",
            AsyncMock(side_effect=[None, winner])
        ):
            author = await catalog_store.find_or_create_author("Kent Beck")

        assert author == winner
        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_update_born_persists(self, catalog_store):
        author = await catalog_store.create_author("Reijo Maki")

        await catalog_store.update_author_born(author, 1892)
        updated = await catalog_store.update_author_born(author, 1900)

        assert updated.born == 1900
        assert (await catalog_store.find_author_by_name("Reijo Maki")).born == 1900

    @pytest.mark.asyncio
    async def test_negative_born_rejected_without_mutation(self, catalog_store):
        author = await catalog_store.create_author("Reijo Maki")
        await catalog_store.update_author_born(author, 1892)

        with pytest.raises(ValidationError) as exc_info:
            await catalog_store.update_author_born(author, -5)

        assert "born: Year of birth cannot be negative" in exc_info.value.field_errors
        assert (await catalog_store.find_author_by_name("Reijo Maki")).born == 1892

    @pytest.mark.asyncio
    async def test_list_authors_in_storage_order(self, catalog_store):
        for name in ["Robert Martin", "Martin Fowler", "Joshua Kerievsky"]:
            await catalog_store.create_author(name)

        authors = await catalog_store.list_authors()

        assert [a.name for a in authors] == ["Robert Martin", "Martin Fowler", "Joshua Kerievsky"]

    @pytest.mark.asyncio
    async def test_get_authors_by_ids(self, catalog_store):
        first = await catalog_store.create_author("Robert Martin")
        second = await catalog_store.create_author("Martin Fowler")

        authors = await catalog_store.get_authors_by_ids([first.id, second.id, first.id, "bogus"])

        assert authors == {first.id: first, second.id: second}

    @pytest.mark.asyncio
    async def test_get_author_with_invalid_id(self, catalog_store):
        assert await catalog_store.get_author("not-an-object-id") is None


class TestBooks:
    """Book creation, filtering and counting."""

    @pytest.mark.asyncio
    async def test_create_book(self, catalog_store):
        author = await catalog_store.create_author("Robert Martin")
        book = await catalog_store.create_book("Clean Code", author.id, 2008, ["refactoring"])

        assert book.author_id == author.id
        assert book.genres == ["refactoring"]
        assert await catalog_store.count_books() == 1

    @pytest.mark.asyncio
    async def test_duplicate_title_is_conflict(self, catalog_store):
        author = await catalog_store.create_author("Robert Martin")
        await catalog_store.create_book("Clean Code", author.id, 2008, [])

        with pytest.raises(ConflictError):
            await catalog_store.create_book("Clean Code", author.id, 2009, [])

        assert await catalog_store.count_books() == 1

    @pytest.mark.asyncio
    async def test_short_title_is_validation_error(self, catalog_store):
        author = await catalog_store.create_author("Robert Martin")

        with pytest.raises(ValidationError):
            await catalog_store.create_book("CC", author.id, 2008, [])

        assert await catalog_store.count_books() == 0

    @pytest.mark.asyncio
    async def test_unknown_author_rejected(self, catalog_store):
        with pytest.raises(NotFoundError):
            await catalog_store.create_book("Clean Code", "5f1d7f0e2b3c4a5d6e7f8091", 2008, [])

        assert await catalog_store.count_books() == 0

    @pytest.mark.asyncio
    async def test_add_book_by_author_name(self, catalog_store):
        book, author = await catalog_store.add_book("Clean Code", "Robert Martin", 2008, ["refactoring"])

        assert book.author_id == author.id
        assert author.name == "Robert Martin"
        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_add_book_validates_before_creating_author(self, catalog_store):
        with pytest.raises(ValidationError) as exc_info:
            await catalog_store.add_book("ab", "Brand New Author", 2008, [])

        assert exc_info.value.field_errors == ["title: Book title must be at least 3 characters long"]
        assert await catalog_store.count_authors() == 0

    @pytest.mark.asyncio
    async def test_add_book_removes_created_author_when_insert_fails(self, catalog_store):
        # The title check passes, then another request takes the title first
        with patch.object(
            catalog_store,
            "create_book",
            AsyncMock(side_effect=ConflictError("Book title must be unique"))
        ):
            with pytest.raises(ConflictError):
                await catalog_store.add_book("Clean Code", "Robert Martin", 2008, [])

        assert await catalog_store.count_authors() == 0

    @pytest.mark.asyncio
    async def test_add_book_keeps_existing_author_when_insert_fails(self, catalog_store):
        existing = await catalog_store.create_author("Robert Martin")

        with patch.object(
            catalog_store,
            "create_book",
            AsyncMock(side_effect=ConflictError("Book title must be unique"))
        ):
            with pytest.raises(ConflictError):
                await catalog_store.add_book("Clean Code", "Robert Martin", 2008, [])

        assert await catalog_store.find_author_by_name("Robert Martin") == existing

    @pytest.mark.asyncio
    async def test_delete_author_refuses_referenced_author(self, catalog_store):
        _, author = await catalog_store.add_book("Clean Code", "Robert Martin", 2008, [])
        unused = await catalog_store.create_author("Sandi Metz")

        assert await catalog_store.delete_author(author.id) is False
        assert await catalog_store.delete_author(unused.id) is True
        assert await catalog_store.count_authors() == 1

    @pytest.mark.asyncio
    async def test_empty_filters_are_ignored(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        books = await catalog_store.list_books(BookFilter(author_name="", genre=""))

        assert len(books) == len(sample_books)

    @pytest.mark.asyncio
    async def test_list_all_books_in_storage_order(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        books = await catalog_store.list_books()

        assert [b.title for b in books] == [b[0] for b in sample_books]

    @pytest.mark.asyncio
    async def test_filter_by_author(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        books = await catalog_store.list_books(BookFilter(author_name="Robert Martin"))

        assert [b.title for b in books] == ["Clean Code", "Agile software development"]

    @pytest.mark.asyncio
    async def test_unknown_author_filter_matches_nothing(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        assert await catalog_store.list_books(BookFilter(author_name="Nobody Here")) == []

    @pytest.mark.asyncio
    async def test_filter_by_genre(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        books = await catalog_store.list_books(BookFilter(genre="refactoring"))

        assert [b.title for b in books] == ["Clean Code", "Refactoring, edition 2"]

    @pytest.mark.asyncio
    async def test_filters_combine_with_and(self, catalog_store, sample_books):
        await add_books(catalog_store, sample_books)

        books = await catalog_store.list_books(
            BookFilter(author_name="Fyodor Dostoevsky", genre="crime")
        )
        none_match = await catalog_store.list_books(
            BookFilter(author_name="Robert Martin", genre="classic")
        )

        assert [b.title for b in books] == ["Crime and punishment"]
        assert none_match == []

    @pytest.mark.asyncio
    async def test_book_counts(self, catalog_store, sample_books):
        fresh = await catalog_store.create_author("Sandi Metz")
        assert await catalog_store.count_books_by_author(fresh.id) == 0

        await add_books(catalog_store, sample_books)
        martin = await catalog_store.find_author_by_name("Robert Martin")

        assert await catalog_store.count_books_by_author(martin.id) == 2
        assert await catalog_store.count_books() == 5
        assert await catalog_store.count_authors() == 4


class TestFailures:
    """Storage failures propagate to the caller."""

    @pytest.mark.asyncio
    async def test_insert_failure_propagates(self):
        collection = AsyncMock()
        collection.find_one.return_value = None
        collection.insert_one.side_effect = RuntimeError("connection reset")
        database = MagicMock()
        database.__getitem__.return_value = collection
        store = CatalogStore(database)

        with pytest.raises(RuntimeError):
            await store.find_or_create_author("Robert Martin")

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self):
        database = MagicMock()
        database.command = AsyncMock(side_effect=RuntimeError("no server"))
        store = CatalogStore(database)

        assert await store.health_check() == {"status": "unhealthy"}
