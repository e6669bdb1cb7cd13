"""
Accounts package: user records, password verification and session tokens.
"""
