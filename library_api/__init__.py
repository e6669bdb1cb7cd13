"""
GraphQL API for the library catalog.

This package provides:
- Account registration and login with signed bearer tokens
- Author and book browsing with author/genre filters
- Authenticated catalog edits (addBook, editAuthor)
- Classified error responses
"""

__version__ = "1.0.0"
