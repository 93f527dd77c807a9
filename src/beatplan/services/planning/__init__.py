"""End-to-end planning pipeline."""
