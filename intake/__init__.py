"""Legal question intake service."""
