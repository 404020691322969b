"""
Location Relay Client Module

Asyncio client for publishing and receiving location updates
"""

from .base import LocationClient

__all__ = [
    "LocationClient",
]
