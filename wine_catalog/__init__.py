"""Wine Catalog - turns free-text wine lists into a deduplicated wine catalog."""

__version__ = "0.1.0"
