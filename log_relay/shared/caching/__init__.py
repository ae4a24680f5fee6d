"""
Credential caching for the event source client.
"""

from .credential_cache import CredentialCache, DEFAULT_TTL_SECONDS

__all__ = ['CredentialCache', 'DEFAULT_TTL_SECONDS']
