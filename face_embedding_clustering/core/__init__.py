"""
Core components for the face embedding clustering engine.

This module contains the fundamental data models, configuration classes,
and exception definitions used throughout the package.
"""

from .data_models import (
    Observation,
    TunedParameters,
    ClusteringResult,
    detection_quality_score,
    NOISE,
    UNCLASSIFIED
)
from .config import ClusteringConfig, SUPPORTED_METRICS
from .exceptions import (
    ClusteringError,
    DataValidationError,
    DimensionMismatchError,
    InsufficientDataError,
    ConfigurationError,
    ModelTrainingError,
    MLflowIntegrationError
)

__all__ = [
    "Observation",
    "TunedParameters",
    "ClusteringResult",
    "detection_quality_score",
    "NOISE",
    "UNCLASSIFIED",
    "ClusteringConfig",
    "SUPPORTED_METRICS",
    "ClusteringError",
    "DataValidationError",
    "DimensionMismatchError",
    "InsufficientDataError",
    "ConfigurationError",
    "ModelTrainingError",
    "MLflowIntegrationError"
]
