"""Command-line interface for Wine Catalog."""
