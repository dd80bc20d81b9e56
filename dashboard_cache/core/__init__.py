"""
Core Module

Configuration, logging, exceptions and the monitoring collaborator shared by
every cache component.
"""
