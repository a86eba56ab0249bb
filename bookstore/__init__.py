"""
Bookstore catalogue domain package.

This package contains:
- Document store connection management
- Credential store (registration and password verification)
- Book catalogue (creation and lookup)
- Review ledger (one review per user per book)
"""

__version__ = "1.0.0"
