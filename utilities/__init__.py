"""
Shared helpers: structured logging and the error taxonomy.
"""
