"""auth/ -- Accounts, password hashing, bearer tokens and role gates.

Depends on core/ (settings, errors) and third-party libraries only; api/
and main.py (for the role list) import from it.
"""
