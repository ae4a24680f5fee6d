"""
Log Relay

Relays authentication event logs from an identity provider's log API to
a webhook, tracking progress with a durable checkpoint.
"""

__version__ = "1.0.0"
