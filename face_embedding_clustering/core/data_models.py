"""
Core data models for the face embedding clustering engine.

This module defines the primary data structures used throughout the engine
for representing observations, label encodings, tuned parameters and
clustering results.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, NamedTuple, Optional, TYPE_CHECKING
import numpy as np

from .exceptions import DataValidationError

if TYPE_CHECKING:
    from ..clustering.cluster_membership import Cluster


# Label encoding shared by the engine and the membership model
UNCLASSIFIED = -2
NOISE = -1


def detection_quality_score(box_width: float, box_height: float, confidence: float) -> float:
    """
    Combine a normalized detection box and its confidence into a quality score.

    Larger faces rank higher: the box area is scaled by 4 and capped at 1,
    then averaged with the detector confidence.

    Args:
        box_width: Box width as a fraction of the frame width
        box_height: Box height as a fraction of the frame height
        confidence: Detector confidence in [0, 1]

    Returns:
        Quality score in [0, 1]

    Raises:
        DataValidationError: If any input is outside [0, 1]
    """
    for name, value in (('box_width', box_width), ('box_height', box_height),
                        ('confidence', confidence)):
        if not 0.0 <= value <= 1.0:
            raise DataValidationError(f"{name} must be between 0.0 and 1.0, got {value}")

    size_score = min(box_width * box_height * 4.0, 1.0)
    return (size_score + confidence) / 2.0


@dataclass(frozen=True)
class Observation:
    """
    A single embedding handed to the engine.

    Attributes:
        index: Position of the observation in its batch
        vector: Fixed-length embedding vector
        quality_score: Externally supplied ranking key in [0, 1]
    """
    index: int
    vector: tuple
    quality_score: float = 1.0

    def __post_init__(self):
        """Validate observation data."""
        if self.index < 0:
            raise DataValidationError("index must be non-negative")
        if not 0.0 <= self.quality_score <= 1.0:
            raise DataValidationError(
                f"quality_score must be between 0.0 and 1.0, got {self.quality_score}"
            )
        # Freeze whatever sequence we were given
        object.__setattr__(self, 'vector', tuple(float(v) for v in self.vector))

    @property
    def dimension(self) -> int:
        return len(self.vector)


class TunedParameters(NamedTuple):
    """DBSCAN parameters derived from the data."""
    eps: float
    min_samples: int


@dataclass
class ClusteringResult:
    """
    Result of a single DBSCAN run.

    Attributes:
        labels: Label per observation (-1 for noise, cluster id otherwise)
        n_clusters: Number of clusters found
        n_noise: Number of noise observations
        noise_ratio: Ratio of noise observations to total observations
        eps: Neighborhood radius used for the run
        min_samples: Core point threshold used for the run
        metric: Name of the distance metric used for the run
        core_sample_indices: Indices of observations that are core points
        clusters: Clusters ranked by mean quality score, highest first
        metrics: Dictionary containing clustering quality metrics
    """
    labels: np.ndarray
    n_clusters: int
    n_noise: int
    noise_ratio: float
    eps: float
    min_samples: int
    metric: str
    core_sample_indices: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))
    clusters: List['Cluster'] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate clustering result data."""
        if not isinstance(self.labels, np.ndarray):
            raise ValueError("labels must be a numpy array")
        if np.any(self.labels < NOISE):
            raise ValueError("labels must not contain unclassified observations")
        if self.n_clusters < 0 or self.n_noise < 0:
            raise ValueError("n_clusters and n_noise must be non-negative")
        if not 0.0 <= self.noise_ratio <= 1.0:
            raise ValueError("noise_ratio must be between 0.0 and 1.0")
        if not isinstance(self.metrics, dict):
            raise ValueError("metrics must be a dictionary")

    @property
    def total_points(self) -> int:
        return len(self.labels)

    def get_cluster(self, cluster_id: int) -> Optional['Cluster']:
        """Return the cluster with the given id, or None."""
        for cluster in self.clusters:
            if cluster.id == cluster_id:
                return cluster
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to plain Python types for logging."""
        return {
            'labels': self.labels.tolist(),
            'n_clusters': self.n_clusters,
            'n_noise': self.n_noise,
            'noise_ratio': self.noise_ratio,
            'eps': self.eps,
            'min_samples': self.min_samples,
            'metric': self.metric,
            'core_sample_indices': self.core_sample_indices.tolist(),
            'clusters': [cluster.to_dict() for cluster in self.clusters],
            'metrics': self.metrics.copy(),
        }
