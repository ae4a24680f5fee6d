"""
Log Filter - Selection of Relayed Entries

Narrows a fetched batch down to the entries worth relaying. The filter is
pure: it never reorders and never touches the network or the checkpoint.
"""
from typing import Iterable, List, Optional, Sequence

import structlog

from ..shared.config import FilterSettings
from ..shared.models import LogEntry
from .log_types import EXCLUDED_TYPES, is_known, level_for

logger = structlog.get_logger(__name__)


class LogFilter:
    """
    Three-stage filter applied in order:

    1. drop operational noise (API operation codes)
    2. keep entries at or above ``min_level``; unclassified types are kept
    3. keep only allow-listed types when an allow-list is configured
    """

    def __init__(self, min_level: int = 0, allowed_types: Optional[Sequence[str]] = None):
        self.min_level = min_level
        self.allowed_types = frozenset(allowed_types) if allowed_types else None
        self.logger = logger.bind(component="log_filter")

    @classmethod
    def from_settings(cls, settings: FilterSettings) -> 'LogFilter':
        return cls(min_level=settings.min_level, allowed_types=settings.allowed_types())

    def apply(self, entries: Iterable[LogEntry]) -> List[LogEntry]:
        entries = list(entries)
        kept = [e for e in entries if e.type not in EXCLUDED_TYPES]
        kept = [e for e in kept if self._matches_level(e)]
        if self.allowed_types is not None:
            kept = [e for e in kept if e.type in self.allowed_types]

        self.logger.info(
            "Logs filtered",
            received=len(entries),
            kept=len(kept),
            min_level=self.min_level,
        )
        return kept

    def _matches_level(self, entry: LogEntry) -> bool:
        if not is_known(entry.type):
            return True
        level = entry.level if entry.level is not None else level_for(entry.type)
        return level is not None and level >= self.min_level
