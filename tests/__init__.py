"""
LogStore Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies, in-memory and local backends)
"""
