"""
Integration Tests

Integration tests run the repository and the HTTP app against an in-memory
SQLite database through aiosqlite; no external services are needed.
"""
