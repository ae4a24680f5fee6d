"""
Shared components: configuration, logging, error types and data models.
"""
