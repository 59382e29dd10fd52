"""FlatShare: shared flat membership, join requests and events."""

__version__ = "0.1.0"
