"""Planning services."""
