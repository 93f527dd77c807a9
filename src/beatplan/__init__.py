"""Sales territory partitioning and beat construction."""
