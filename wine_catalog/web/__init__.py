"""FastAPI web layer for Wine Catalog."""
