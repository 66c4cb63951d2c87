"""Willump - check, kill and list the processes holding network ports."""

__version__ = "1.0.0"
