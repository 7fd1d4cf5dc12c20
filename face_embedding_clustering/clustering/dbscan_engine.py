"""
DBSCAN engine for embedding clustering.

This module implements the DBSCANEngine class that classifies every
observation of a batch as noise or as a member of a cluster through
density-reachability expansion under a pluggable distance metric.
"""

from collections import deque
import numpy as np
from typing import Optional, Union
import logging

from ..core.data_models import ClusteringResult, NOISE, UNCLASSIFIED
from ..core.exceptions import ClusteringError, ConfigurationError, ModelTrainingError
from .distance_metrics import DistanceMetric
from .observation_store import ObservationStore


logger = logging.getLogger(__name__)


class DBSCANEngine:
    """
    Batch DBSCAN over an ObservationStore.

    Each ``fit`` call works on a fresh label array, scans observations in
    index order and numbers clusters densely in order of discovery. Cluster
    expansion pops pending observations first-in first-out, so results are
    reproducible; the final partition does not depend on that order.

    Every region query is a full O(N) pass, which makes a fit O(N^2 * D).
    """

    def __init__(self, eps: float = 0.5, min_samples: int = 5,
                 metric: Union[str, DistanceMetric] = DistanceMetric.EUCLIDEAN):
        """
        Initialize the DBSCAN engine.

        Args:
            eps: Neighborhood radius under the chosen metric
            min_samples: Minimum neighbor count, self included, for a core point
            metric: Distance metric or its config name

        Raises:
            ConfigurationError: If parameters are out of range or the metric is unknown
        """
        if eps is None or not eps > 0:
            raise ConfigurationError("eps must be greater than 0", parameter='eps', value=eps)
        if min_samples is None or int(min_samples) != min_samples or min_samples < 1:
            raise ConfigurationError("min_samples must be an integer >= 1",
                                     parameter='min_samples', value=min_samples)

        self.eps = float(eps)
        self.min_samples = int(min_samples)
        self.metric = DistanceMetric.from_name(metric)

        self._last_result: Optional[ClusteringResult] = None

        logger.debug("DBSCANEngine initialized with eps=%.4f, min_samples=%d, metric=%s",
                     self.eps, self.min_samples, self.metric.value)

    def fit(self, data) -> ClusteringResult:
        """
        Classify every observation in the batch.

        Args:
            data: ObservationStore, 2-D array or nested sequences

        Returns:
            ClusteringResult with one label per observation

        Raises:
            DataValidationError: If input data is invalid
            ModelTrainingError: If the fit fails unexpectedly
        """
        store = ObservationStore.from_rows(data)
        logger.info("Starting DBSCAN fit on %d observations of dimension %d",
                    store.n_rows, store.n_cols)

        try:
            labels, is_core, n_clusters = self._classify(store)
        except ClusteringError:
            raise
        except Exception as e:
            raise ModelTrainingError(
                f"DBSCAN clustering failed: {str(e)}",
                model_type="DBSCAN",
                training_data_size=store.n_rows
            ) from e

        n_noise = int(np.sum(labels == NOISE))
        noise_ratio = n_noise / len(labels) if len(labels) else 0.0

        result = ClusteringResult(
            labels=labels,
            n_clusters=n_clusters,
            n_noise=n_noise,
            noise_ratio=noise_ratio,
            eps=self.eps,
            min_samples=self.min_samples,
            metric=self.metric.value,
            core_sample_indices=np.flatnonzero(is_core)
        )
        self._last_result = result

        logger.info("DBSCAN completed. Found %d clusters with %d noise points (%.2f%%)",
                    n_clusters, n_noise, noise_ratio * 100)
        return result

    def fit_predict(self, data) -> np.ndarray:
        """Fit and return the label array only."""
        return self.fit(data).labels.copy()

    def region_query(self, store: ObservationStore, index: int) -> np.ndarray:
        """Indices within eps of observation ``index``, itself included, ascending."""
        distances = self.metric.distances_to(store.row(index), store.as_array())
        # arccos can leave a few ulps on the self-distance
        distances[index] = 0.0
        return np.flatnonzero(distances <= self.eps)

    def _classify(self, store: ObservationStore):
        n_rows = store.n_rows
        labels = np.full(n_rows, UNCLASSIFIED, dtype=int)
        is_core = np.zeros(n_rows, dtype=bool)
        cluster_id = 0

        for point_idx in range(n_rows):
            if labels[point_idx] != UNCLASSIFIED:
                continue

            neighbors = self.region_query(store, point_idx)
            if len(neighbors) < self.min_samples:
                labels[point_idx] = NOISE
                continue

            is_core[point_idx] = True
            self._expand_cluster(store, labels, is_core, point_idx, neighbors, cluster_id)
            cluster_id += 1

        return labels, is_core, cluster_id

    def _expand_cluster(self, store: ObservationStore, labels: np.ndarray, is_core: np.ndarray,
                        point_idx: int, neighbors: np.ndarray, cluster_id: int) -> None:
        labels[point_idx] = cluster_id

        pending = deque(int(i) for i in neighbors if i != point_idx)
        queued = set(pending)
        size = 1

        while pending:
            current = pending.popleft()
            queued.discard(current)

            # Noise reachable from a core point becomes a border point
            if labels[current] == NOISE:
                labels[current] = cluster_id
                size += 1
                continue

            if labels[current] != UNCLASSIFIED:
                continue

            labels[current] = cluster_id
            size += 1

            current_neighbors = self.region_query(store, current)
            if len(current_neighbors) >= self.min_samples:
                is_core[current] = True
                for neighbor in current_neighbors:
                    neighbor = int(neighbor)
                    if labels[neighbor] == UNCLASSIFIED and neighbor not in queued:
                        pending.append(neighbor)
                        queued.add(neighbor)

        logger.debug("Cluster %d expanded from observation %d with %d members",
                     cluster_id, point_idx, size)

    @property
    def is_fitted(self) -> bool:
        """Check if the engine has been fitted."""
        return self._last_result is not None

    @property
    def labels_(self) -> Optional[np.ndarray]:
        """Labels from the last fit."""
        return self._last_result.labels.copy() if self.is_fitted else None

    @property
    def core_sample_indices_(self) -> Optional[np.ndarray]:
        """Core point indices from the last fit."""
        return self._last_result.core_sample_indices.copy() if self.is_fitted else None

    @property
    def n_clusters_(self) -> int:
        return self._last_result.n_clusters if self.is_fitted else 0

    @property
    def n_noise_(self) -> int:
        return self._last_result.n_noise if self.is_fitted else 0

    def __repr__(self):
        return (f"{self.__class__.__name__}("
                f"eps={self.eps}, "
                f"min_samples={self.min_samples}, "
                f"metric={self.metric.value!r}, "
                f"fitted={self.is_fitted})")
