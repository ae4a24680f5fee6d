"""
Webhook delivery.

Provides batch and fan-out delivery of log payloads plus payload signing.
"""

from .deliverer import DeliveryMode, WebhookDeliverer
from .security import WebhookSecurity

__all__ = ['DeliveryMode', 'WebhookDeliverer', 'WebhookSecurity']
