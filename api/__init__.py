"""
FastAPI RESTful API for the Bookstore Catalogue.

This module provides:
- Account registration and login
- Book catalogue browsing and lookup
- Token-authenticated review management
"""
