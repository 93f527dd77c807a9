"""Territory partitioning."""
