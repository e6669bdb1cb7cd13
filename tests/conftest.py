"""
Pytest configuration and shared fixtures.

Stores run against mongomock-motor, an in-memory motor-compatible database
that enforces unique indexes.
"""

import pytest
from mongomock_motor import AsyncMongoMockClient

from accounts.credentials import CredentialStore
from catalog.database import CatalogStore

TEST_SECRET_KEY = "test-secret-key"


@pytest.fixture
def database():
    """Fresh in-memory database for each test."""
    client = AsyncMongoMockClient()
    return client["library_test"]


@pytest.fixture
async def catalog_store(database):
    """Catalog store with its indexes in place."""
    store = CatalogStore(database)
    await store.create_indexes()
    return store


@pytest.fixture
async def credential_store(database):
    """Credential store with a cheap bcrypt cost for fast tests."""
    store = CredentialStore(database, secret_key=TEST_SECRET_KEY, bcrypt_rounds=4)
    await store.create_indexes()
    return store


@pytest.fixture
async def registered_user(credential_store):
    """A user registered with password 'salainen'."""
    return await credential_store.register("mluukkai", "refactoring", "salainen")


@pytest.fixture
def anonymous_context(catalog_store, credential_store):
    """Resolver context for a request without a bearer token."""
    return {
        "current_user": None,
        "catalog": catalog_store,
        "credentials": credential_store,
    }


@pytest.fixture
def authenticated_context(catalog_store, credential_store, registered_user):
    """Resolver context for a request from registered_user."""
    return {
        "current_user": registered_user,
        "catalog": catalog_store,
        "credentials": credential_store,
    }


@pytest.fixture
def sample_books():
    """Books as (title, author, published, genres)."""
    return [
        ("Clean Code", "Robert Martin", 2008, ["refactoring"]),
        ("Agile software development", "Robert Martin", 2002, ["agile", "patterns", "design"]),
        ("Refactoring, edition 2", "Martin Fowler", 2018, ["refactoring"]),
        ("Crime and punishment", "Fyodor Dostoevsky", 1866, ["classic", "crime"]),
        ("The Demon", "Fyodor Dostoevsky", 1872, ["classic", "revolution"]),
    ]
