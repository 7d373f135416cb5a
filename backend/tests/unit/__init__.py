"""
Unit Tests

Unit tests run in isolation without external dependencies.
Persistence is replaced by an in-memory repository or a mocked session.
"""
