"""Madad+ emergency report service with offline queueing."""

__version__ = "0.1.0"
