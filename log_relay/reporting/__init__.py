"""
Run and digest notifications.
"""

from .slack_reporter import NullReporter, Reporter, SlackReporter, create_reporter

__all__ = ['NullReporter', 'Reporter', 'SlackReporter', 'create_reporter']
