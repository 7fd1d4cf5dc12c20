"""
Distance metrics for embedding clustering.

Every metric is computed row-wise against a matrix so that a region query
costs one vectorized pass over the batch. The scalar ``distance`` goes
through the same code path, which keeps both views bitwise identical and
symmetric. Metrics that divide by a magnitude or a variance return a fixed
finite fallback instead of NaN.
"""

from enum import Enum
from typing import Callable, Dict, Union
import numpy as np
import logging

from ..core.exceptions import ConfigurationError, DimensionMismatchError


logger = logging.getLogger(__name__)

# Returned when either vector has zero magnitude (cosine) or zero variance (correlation)
UNDEFINED_SIMILARITY_DISTANCE = 1.0

# Angle between a zero vector and anything is taken as orthogonal: (pi / 2) / pi
ANGULAR_ZERO_FALLBACK = 0.5

# Centered norms below this fraction of the raw norm count as zero variance
_VARIANCE_RTOL = 1e-12


def _row_norms(matrix: np.ndarray) -> np.ndarray:
    return np.sqrt(np.sum(matrix * matrix, axis=1))


def _row_dots(matrix: np.ndarray, point: np.ndarray) -> np.ndarray:
    # Elementwise product then sum, never BLAS, so dot(a, b) == dot(b, a) exactly
    return np.sum(matrix * point, axis=1)


def _cosine_similarity(point: np.ndarray, matrix: np.ndarray):
    """Return (clamped similarity, mask of rows where it is undefined)."""
    point_norm = _row_norms(point[np.newaxis, :])[0]
    row_norms = _row_norms(matrix)
    denom = row_norms * point_norm
    undefined = denom == 0.0

    with np.errstate(divide='ignore', invalid='ignore'):
        similarity = _row_dots(matrix, point) / np.where(undefined, 1.0, denom)

    return np.clip(similarity, -1.0, 1.0), undefined


def _euclidean(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    diff = matrix - point
    return np.sqrt(np.sum(diff * diff, axis=1))


def _cosine(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    similarity, undefined = _cosine_similarity(point, matrix)
    return np.where(undefined, UNDEFINED_SIMILARITY_DISTANCE, 1.0 - similarity)


def _manhattan(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return np.sum(np.abs(matrix - point), axis=1)


def _l2_normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = _row_norms(matrix)[:, np.newaxis]
    # Zero-magnitude rows are kept as they are
    return np.divide(matrix, norms, out=matrix.copy(), where=norms > 0.0)


def _normalized_euclidean(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    unit_point = _l2_normalize_rows(point[np.newaxis, :])[0]
    return _euclidean(unit_point, _l2_normalize_rows(matrix))


def _angular(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    similarity, undefined = _cosine_similarity(point, matrix)
    return np.where(undefined, ANGULAR_ZERO_FALLBACK, np.arccos(similarity) / np.pi)


def _center_rows(matrix: np.ndarray):
    centered = matrix - np.mean(matrix, axis=1, keepdims=True)
    centered_norms = _row_norms(centered)
    flat = centered_norms <= _VARIANCE_RTOL * _row_norms(matrix)
    return centered, centered_norms, flat


def _correlation(point: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    centered_point, point_norm, point_flat = _center_rows(point[np.newaxis, :])
    centered_matrix, row_norms, rows_flat = _center_rows(matrix)
    undefined = rows_flat | point_flat[0]

    denom = row_norms * point_norm[0]
    with np.errstate(divide='ignore', invalid='ignore'):
        correlation = _row_dots(centered_matrix, centered_point[0]) / np.where(undefined, 1.0, denom)

    correlation = np.clip(correlation, -1.0, 1.0)
    return np.where(undefined, UNDEFINED_SIMILARITY_DISTANCE, 1.0 - correlation)


class DistanceMetric(Enum):
    """
    Pluggable distance between two equal-length vectors.

    The enum value is the name used in ClusteringConfig.
    """

    EUCLIDEAN = 'euclidean'
    COSINE = 'cosine'
    MANHATTAN = 'manhattan'
    NORMALIZED_EUCLIDEAN = 'normalized_euclidean'
    ANGULAR = 'angular'
    CORRELATION = 'correlation'

    @classmethod
    def from_name(cls, metric: Union[str, 'DistanceMetric']) -> 'DistanceMetric':
        """
        Resolve a metric from its config name.

        Raises:
            ConfigurationError: If the name is not a known metric
        """
        if isinstance(metric, cls):
            return metric
        if isinstance(metric, str):
            key = metric.strip().lower().replace('-', '_')
            for member in cls:
                if member.value == key:
                    return member
        raise ConfigurationError(
            f"Unknown distance metric '{metric}', expected one of "
            f"{', '.join(member.value for member in cls)}",
            parameter='metric',
            value=metric
        )

    def distance(self, a, b) -> float:
        """
        Distance between two vectors.

        Raises:
            DimensionMismatchError: If the vectors differ in length
        """
        a = _as_vector(a)
        b = _as_vector(b)
        if a.shape[0] != b.shape[0]:
            raise DimensionMismatchError(
                f"Cannot compare vectors of length {a.shape[0]} and {b.shape[0]}",
                expected_dim=a.shape[0],
                actual_dim=b.shape[0]
            )
        return float(self.distances_to(a, b[np.newaxis, :])[0])

    def distances_to(self, point, matrix) -> np.ndarray:
        """
        Distances from one vector to every row of a matrix.

        Raises:
            DimensionMismatchError: If the point and the rows differ in length
        """
        point = _as_vector(point)
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.ndim == 1:
            matrix = matrix[np.newaxis, :]
        if matrix.shape[1] != point.shape[0]:
            raise DimensionMismatchError(
                f"Cannot compare a vector of length {point.shape[0]} "
                f"with rows of length {matrix.shape[1]}",
                expected_dim=matrix.shape[1],
                actual_dim=point.shape[0]
            )
        if matrix.shape[0] == 0:
            return np.empty(0, dtype=np.float64)
        return _DISTANCE_FUNCTIONS[self](point, matrix)

    def pairwise(self, matrix) -> np.ndarray:
        """
        Full N x N distance matrix with a zero diagonal.

        Cost is O(N^2 * D); only used for tuning and quality metrics.
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        n_rows = matrix.shape[0]
        distances = np.empty((n_rows, n_rows), dtype=np.float64)
        for i in range(n_rows):
            distances[i] = self.distances_to(matrix[i], matrix)
        np.fill_diagonal(distances, 0.0)
        return distances

    def __call__(self, a, b) -> float:
        return self.distance(a, b)


def _as_vector(values) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        vector = vector.ravel()
    return vector


_DISTANCE_FUNCTIONS: Dict[DistanceMetric, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    DistanceMetric.EUCLIDEAN: _euclidean,
    DistanceMetric.COSINE: _cosine,
    DistanceMetric.MANHATTAN: _manhattan,
    DistanceMetric.NORMALIZED_EUCLIDEAN: _normalized_euclidean,
    DistanceMetric.ANGULAR: _angular,
    DistanceMetric.CORRELATION: _correlation,
}
