"""
Relay run pipeline and daily digest scheduling.
"""

from .digest import is_digest_due, report_window
from .orchestrator import LogRelayOrchestrator, RunState

__all__ = ['LogRelayOrchestrator', 'RunState', 'is_digest_due', 'report_window']
