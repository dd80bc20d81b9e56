"""
Integration tests.

These tests need a running Redis and are skipped unless USE_REAL_REDIS is set.
"""
