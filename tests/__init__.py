"""
Tests Package - Unit Tests

Test structure:
- tests/fakes.py - In-memory fetcher and Redis doubles
- tests/conftest.py - Shared pytest fixtures (tmp data dirs, configs)

Nothing here touches the network or a real Redis server.
"""
