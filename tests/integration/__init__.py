"""
Integration tests for the sqliteorm library.

These tests run against real SQLite databases (in memory, or in a temporary
directory when file-level behavior such as WAL mode is under test). No
external infrastructure is needed.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
