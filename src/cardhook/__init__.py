"""
cardhook: signed webhooks for card-transaction events.

Verifies that inbound partner webhooks carry a valid HMAC-SHA256 signature
and signs the responses with the same scheme.
"""

__version__ = "1.0.0"
