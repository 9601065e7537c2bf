"""
Ritual Test Suite.

This package contains:
- unit/: Unit tests (in-memory and temporary SQLite stores)
- integration/: HTTP tests through FastAPI's TestClient
"""
