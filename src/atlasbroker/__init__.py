"""Dynamic plan resolution engine for an Atlas service broker."""

__version__ = "0.1.0"
