"""Column classification: sensitivity tagging and multi-database persistence."""

__version__ = "0.1.0"
