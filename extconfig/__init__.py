"""Extension schema registration and conflict detection."""

__version__ = "0.1.0"
