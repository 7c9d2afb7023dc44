"""varbind: find every node in a design document bound to a shared variable."""

__version__ = "0.3.0"
