"""
Clustering quality metrics computed with scikit-learn.
"""

import numpy as np
from typing import Dict, Any, Union
from sklearn.metrics import silhouette_score, calinski_harabasz_score, davies_bouldin_score
import logging

from ..core.data_models import NOISE
from .distance_metrics import DistanceMetric
from .observation_store import ObservationStore


logger = logging.getLogger(__name__)


def compute_clustering_metrics(data, labels: np.ndarray,
                               metric: Union[str, DistanceMetric]) -> Dict[str, Any]:
    """
    Calculate clustering quality metrics over the non-noise observations.

    The silhouette score uses distances under ``metric``; Calinski-Harabasz
    and Davies-Bouldin work on the raw vectors. Scores need at least two
    clusters and are None otherwise.

    Args:
        data: ObservationStore, 2-D array or nested sequences
        labels: Label per observation
        metric: Distance metric used for the run

    Returns:
        Dictionary containing clustering metrics
    """
    store = ObservationStore.from_rows(data)
    metric = DistanceMetric.from_name(metric)
    labels = np.asarray(labels, dtype=int)

    total = len(labels)
    n_noise = int(np.sum(labels == NOISE))
    non_noise_mask = labels != NOISE
    labels_non_noise = labels[non_noise_mask]
    n_clusters = len(np.unique(labels_non_noise))

    metrics = {
        'n_clusters': n_clusters,
        'n_noise_points': n_noise,
        'noise_ratio': n_noise / total if total else 0.0,
        'total_points': total,
        'silhouette_score': None,
        'calinski_harabasz_score': None,
        'davies_bouldin_score': None
    }

    # Every score needs 2 <= n_clusters <= n_samples - 1
    if n_clusters < 2 or len(labels_non_noise) <= n_clusters:
        logger.info("Insufficient clusters or data for quality metrics calculation")
        return metrics

    X_non_noise = store.as_array()[non_noise_mask]

    try:
        distance_matrix = metric.pairwise(X_non_noise)
        metrics['silhouette_score'] = float(
            silhouette_score(distance_matrix, labels_non_noise, metric='precomputed')
        )
    except Exception as e:
        logger.warning("Failed to calculate silhouette score: %s", str(e))

    try:
        metrics['calinski_harabasz_score'] = float(
            calinski_harabasz_score(X_non_noise, labels_non_noise)
        )
    except Exception as e:
        logger.warning("Failed to calculate Calinski-Harabasz score: %s", str(e))

    try:
        metrics['davies_bouldin_score'] = float(
            davies_bouldin_score(X_non_noise, labels_non_noise)
        )
    except Exception as e:
        logger.warning("Failed to calculate Davies-Bouldin score: %s", str(e))

    return metrics
