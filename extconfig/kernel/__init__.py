"""Kernel services shared by the extension system."""
