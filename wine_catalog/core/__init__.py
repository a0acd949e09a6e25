"""Core domain models, enums and errors for Wine Catalog."""
