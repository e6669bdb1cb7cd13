"""
Catalog package: authors, books and the MongoDB store that owns them.
"""
