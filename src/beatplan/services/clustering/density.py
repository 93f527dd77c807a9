"""Density based sub-clustering of customers (DBSCAN on the haversine metric)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from sklearn.cluster import DBSCAN

from ...config import settings
from ...models.domain import Customer
from ..geospatial import EARTH_RADIUS_KM, centroid, haversine_km

logger = logging.getLogger(__name__)

NOISE_LABEL = -1


@dataclass(slots=True)
class DensityCluster:
    cluster_id: int
    customers: List[Customer]
    centroid: tuple[float, float]


class DensityClusterer:
    """Group customers into dense pockets and fold noise into the nearest pocket.

    A customer is a core point when at least ``min_samples`` other customers
    lie within ``eps_km``. Noise points are never dropped: each one is
    reassigned to the cluster whose centroid is nearest. When no cluster
    forms at all, every customer lands in a single cluster ``0``.
    """

    def __init__(self, *, eps_km: float | None = None, min_samples: int | None = None) -> None:
        self.eps_km = eps_km if eps_km is not None else settings.dbscan_eps_km
        self.min_samples = min_samples if min_samples is not None else settings.dbscan_min_samples
        if self.eps_km <= 0:
            raise ValueError("eps_km must be > 0")
        if self.min_samples < 1:
            raise ValueError("min_samples must be >= 1")

    def _raw_labels(self, customers: Sequence[Customer]) -> np.ndarray:
        coordinates = np.radians([[c.latitude, c.longitude] for c in customers])
        # scikit-learn counts the sample itself towards min_samples
        model = DBSCAN(
            eps=self.eps_km / EARTH_RADIUS_KM,
            min_samples=self.min_samples + 1,
            metric="haversine",
            algorithm="ball_tree",
        )
        return model.fit_predict(coordinates)

    def labels(self, customers: Sequence[Customer]) -> list[int]:
        """Return one cluster id per customer, noise already reassigned."""

        if not customers:
            return []

        raw = self._raw_labels(customers)
        cluster_ids = sorted({int(label) for label in raw if label != NOISE_LABEL})
        if not cluster_ids:
            logger.info("No dense cluster among %d customers; using a single cluster", len(customers))
            return [0] * len(customers)

        # Renumber to consecutive ids in order of first appearance
        remap: dict[int, int] = {}
        for label in raw:
            if label != NOISE_LABEL and int(label) not in remap:
                remap[int(label)] = len(remap)

        members: dict[int, list[Customer]] = {}
        for customer, label in zip(customers, raw):
            if label != NOISE_LABEL:
                members.setdefault(remap[int(label)], []).append(customer)
        centroids = {
            cluster_id: centroid((c.latitude, c.longitude) for c in group)
            for cluster_id, group in members.items()
        }

        result: list[int] = []
        noise_count = 0
        for customer, label in zip(customers, raw):
            if label != NOISE_LABEL:
                result.append(remap[int(label)])
                continue
            noise_count += 1
            nearest = min(
                centroids,
                key=lambda cid: haversine_km(
                    customer.latitude, customer.longitude, centroids[cid][0], centroids[cid][1]
                ),
            )
            result.append(nearest)

        logger.debug(
            "DBSCAN produced %d clusters and reassigned %d noise points", len(centroids), noise_count
        )
        return result

    def label_customers(self, customers: Sequence[Customer]) -> dict[str, int]:
        return {customer.customer_id: label for customer, label in zip(customers, self.labels(customers))}

    def cluster(self, customers: Sequence[Customer]) -> list[DensityCluster]:
        groups: dict[int, list[Customer]] = {}
        for customer, label in zip(customers, self.labels(customers)):
            groups.setdefault(label, []).append(customer)
        return [
            DensityCluster(
                cluster_id=cluster_id,
                customers=group,
                centroid=centroid((c.latitude, c.longitude) for c in group),
            )
            for cluster_id, group in sorted(groups.items())
        ]
