"""
Face Embedding Clustering

Density-based clustering of embedding vectors with pluggable distance
metrics, auto-tuned DBSCAN parameters and quality-ranked clusters.
"""

__version__ = "1.0.0"

from .core.data_models import Observation, ClusteringResult, TunedParameters, detection_quality_score
from .core.config import ClusteringConfig
from .core.exceptions import (
    ClusteringError,
    DataValidationError,
    DimensionMismatchError,
    InsufficientDataError,
    ConfigurationError,
    ModelTrainingError
)
from .clustering import (
    ObservationStore,
    DistanceMetric,
    DBSCANEngine,
    auto_tune,
    ClusterMembershipModel
)
from .pipeline import EmbeddingClusteringPipeline

__all__ = [
    "Observation",
    "ClusteringResult",
    "TunedParameters",
    "detection_quality_score",
    "ClusteringConfig",
    "ClusteringError",
    "DataValidationError",
    "DimensionMismatchError",
    "InsufficientDataError",
    "ConfigurationError",
    "ModelTrainingError",
    "ObservationStore",
    "DistanceMetric",
    "DBSCANEngine",
    "auto_tune",
    "ClusterMembershipModel",
    "EmbeddingClusteringPipeline",
]
