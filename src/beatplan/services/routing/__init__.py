"""Beat construction strategies."""
