"""Process-wide managers (logging)."""
