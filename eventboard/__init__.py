"""
Backend package for the community event board.

This package provides a FastAPI application that fans event writes out to
a primary remote store, a backup document store, a local SQL cache and an
optional per-user Google Drive export.
"""
