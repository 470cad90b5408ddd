"""MySQL schema diff, migration planning and synchronization."""

__version__ = "1.0.0"
