"""
Infrastructure Module

Concrete cache backends and the service that composes them.
"""
