"""
comfyent Test Suite.

This package contains:
- unit/: Unit tests (no database)
- integration/: Integration tests (SQLite files in a temporary directory)
"""
