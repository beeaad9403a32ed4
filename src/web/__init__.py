"""Web layer for the lead intake service."""
