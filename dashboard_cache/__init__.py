"""
Project dashboard cache layer.

A two-tier cache (Redis primary, in-process fallback) with automatic
reconnection and transparent degradation.
"""

__version__ = "1.0.0"
