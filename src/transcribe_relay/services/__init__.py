"""Services backing the relay endpoints."""
