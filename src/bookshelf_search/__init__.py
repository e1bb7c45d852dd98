"""Full-text search across rendered documentation books."""

__version__ = "0.1.0"
