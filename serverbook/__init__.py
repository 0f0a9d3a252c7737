"""Booking and lifecycle coordinator for ephemeral game servers."""

__version__ = "1.0.0"
