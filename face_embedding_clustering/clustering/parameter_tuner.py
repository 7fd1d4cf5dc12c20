"""
Heuristics that derive DBSCAN parameters from the data.

eps comes from the k-distance graph: each observation's distance to its
k-th nearest neighbor (the observation itself counts as the first, matching
how min_samples counts), sorted ascending and read at a percentile.
"""

import numpy as np
from typing import Optional, Tuple, Union
from sklearn.neighbors import NearestNeighbors
import logging

from ..core.data_models import TunedParameters
from ..core.exceptions import ConfigurationError, InsufficientDataError
from .distance_metrics import DistanceMetric
from .observation_store import ObservationStore


logger = logging.getLogger(__name__)

DEFAULT_PERCENTILE = 0.85
DEFAULT_ANGULAR_RANGE = (0.3252, 0.6)

MIN_SAMPLES_FLOOR = 3
MIN_SAMPLES_CAP = 10


def k_distances(data, metric: Union[str, DistanceMetric], k: int) -> np.ndarray:
    """
    Distance from every observation to its k-th nearest neighbor.

    Args:
        data: ObservationStore, 2-D array or nested sequences
        metric: Distance metric or its config name
        k: Neighbor rank, self included

    Returns:
        Array of shape (n_rows,) in observation order

    Raises:
        InsufficientDataError: If there are fewer than k observations
    """
    if k < 1:
        raise ConfigurationError("k must be at least 1", parameter='k', value=k)

    store = ObservationStore.from_rows(data)
    metric = DistanceMetric.from_name(metric)

    if store.n_rows < k:
        raise InsufficientDataError(
            f"k-distance needs at least {k} observations, got {store.n_rows}",
            required=k,
            available=store.n_rows
        )

    distance_matrix = metric.pairwise(store.as_array())

    # Querying with the fitted matrix itself keeps each point as its own first neighbor
    neighbors = NearestNeighbors(n_neighbors=k, metric='precomputed')
    neighbors.fit(distance_matrix)
    distances, _ = neighbors.kneighbors(distance_matrix)

    return distances[:, k - 1]


def suggest_eps(data,
                metric: Union[str, DistanceMetric],
                k: int = 5,
                percentile: float = DEFAULT_PERCENTILE,
                angular_range: Tuple[float, float] = DEFAULT_ANGULAR_RANGE,
                jitter: float = 0.0,
                random_state: Optional[int] = None) -> float:
    """
    Suggest a neighborhood radius from the k-distance graph.

    For the angular metric the percentile value is mapped linearly into
    ``angular_range``. An optional uniform jitter in [-jitter, jitter] is
    added there, drawn from a generator seeded with ``random_state``.

    Raises:
        InsufficientDataError: If there are fewer than k observations
    """
    if not 0.0 < percentile <= 1.0:
        raise ConfigurationError("percentile must be in (0.0, 1.0]",
                                 parameter='percentile', value=percentile)
    if jitter < 0:
        raise ConfigurationError("jitter must be non-negative", parameter='jitter', value=jitter)

    metric = DistanceMetric.from_name(metric)
    sorted_distances = np.sort(k_distances(data, metric, k))

    index = min(int(len(sorted_distances) * percentile), len(sorted_distances) - 1)
    eps = float(sorted_distances[index])

    logger.debug("k-distance percentile %.2f (k=%d, metric=%s) -> %.6f",
                 percentile, k, metric.value, eps)

    if metric is DistanceMetric.ANGULAR:
        low, high = angular_range
        normalized = min(max(eps, 0.0), 1.0)
        eps = low + (high - low) * normalized
        if jitter > 0:
            eps += float(np.random.default_rng(random_state).uniform(-jitter, jitter))
        eps = min(max(eps, low), high)

    return eps


def suggest_min_samples(dimensionality: int) -> int:
    """Twice the dimensionality, clamped to [3, 10]."""
    return min(max(MIN_SAMPLES_FLOOR, 2 * dimensionality), MIN_SAMPLES_CAP)


def auto_tune(data,
              metric: Union[str, DistanceMetric],
              percentile: float = DEFAULT_PERCENTILE,
              angular_range: Tuple[float, float] = DEFAULT_ANGULAR_RANGE,
              jitter: float = 0.0,
              random_state: Optional[int] = None) -> TunedParameters:
    """
    Derive (eps, min_samples) for a batch.

    Raises:
        InsufficientDataError: If the batch has fewer rows than the derived min_samples
    """
    store = ObservationStore.from_rows(data)
    dimensionality = store.n_cols if store.n_rows else 1

    min_samples = suggest_min_samples(dimensionality)
    eps = suggest_eps(
        store,
        metric,
        k=min_samples,
        percentile=percentile,
        angular_range=angular_range,
        jitter=jitter,
        random_state=random_state
    )

    logger.info("Auto-tuned DBSCAN parameters: eps=%.4f, min_samples=%d (dimensionality=%d)",
                eps, min_samples, dimensionality)

    return TunedParameters(eps=eps, min_samples=min_samples)
