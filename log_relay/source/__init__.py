"""
Event Source

Credential exchange and paginated reading of the remote event log.
"""

from .auth_client import SourceTokenClient
from .log_source import LogSource, PAGE_SIZE

__all__ = ['SourceTokenClient', 'LogSource', 'PAGE_SIZE']
