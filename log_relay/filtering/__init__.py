"""
Log type classification and filtering.
"""

from .log_filter import LogFilter
from .log_types import EXCLUDED_TYPES, LOG_TYPES, LogType, level_for

__all__ = ['LogFilter', 'EXCLUDED_TYPES', 'LOG_TYPES', 'LogType', 'level_for']
