"""Service account credentials."""
