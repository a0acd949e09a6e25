"""Application services for Wine Catalog."""
