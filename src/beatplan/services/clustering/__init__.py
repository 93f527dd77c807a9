"""Customer sub-clustering helpers."""

from .density import DensityCluster, DensityClusterer

__all__ = ["DensityCluster", "DensityClusterer"]
