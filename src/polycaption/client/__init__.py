"""
Polycaption client library.

Connects capture clients to a polycaption caption server.
"""

from polycaption.client.connection import (
  CaptionDeliveryChannel,
  ChannelConfig,
  ConnectionFailure,
)

__all__ = [
  "CaptionDeliveryChannel",
  "ChannelConfig",
  "ConnectionFailure",
]
