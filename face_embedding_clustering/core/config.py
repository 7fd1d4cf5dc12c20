"""
Configuration management for the face embedding clustering engine.

This module provides the ClusteringConfig class that manages all configurable
parameters with validation for the clustering pipeline.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple
import warnings

from .exceptions import ConfigurationError


SUPPORTED_METRICS = (
    'euclidean',
    'cosine',
    'manhattan',
    'normalized_euclidean',
    'angular',
    'correlation',
)

# Metrics whose distances never exceed 1.0 for finite input
_UNIT_BOUNDED_METRICS = ('angular',)


@dataclass
class ClusteringConfig:
    """
    Configuration class for the face embedding clustering pipeline.

    This class manages the distance metric, the DBSCAN parameters (explicit
    or auto-tuned), the tuner heuristics and tracking behavior.
    """

    # Distance metric name, see SUPPORTED_METRICS
    metric: str = 'angular'

    # Derive eps and min_samples from the data
    auto_tune: bool = True

    # Explicit DBSCAN parameters, required when auto_tune is False
    eps: Optional[float] = None
    min_samples: Optional[int] = None

    # Parameter tuner heuristics
    k_distance_percentile: float = 0.85
    angular_eps_range: Tuple[float, float] = field(default_factory=lambda: (0.3252, 0.6))
    eps_jitter: float = 0.0
    random_state: Optional[int] = None

    # Reporting and tracking
    compute_quality_metrics: bool = True
    enable_mlflow: bool = False
    experiment_name: str = "FaceEmbedding-Clustering"

    def __post_init__(self):
        """Validate configuration parameters and log warnings for suboptimal settings."""
        self.metric = self._normalize_metric_name(self.metric)
        self.angular_eps_range = tuple(self.angular_eps_range)
        self._validate_dbscan_params()
        self._validate_tuner_params()
        self._validate_tracking_params()
        self._check_parameter_compatibility()

    @staticmethod
    def _normalize_metric_name(metric: str) -> str:
        """Normalize and validate the metric name."""
        if not isinstance(metric, str):
            # DistanceMetric members carry their config name as value
            metric = getattr(metric, 'value', metric)
        if not isinstance(metric, str):
            raise ConfigurationError("metric must be a string", parameter='metric', value=metric)

        name = metric.strip().lower().replace('-', '_')
        if name not in SUPPORTED_METRICS:
            raise ConfigurationError(
                f"Unknown metric '{metric}', expected one of {', '.join(SUPPORTED_METRICS)}",
                parameter='metric',
                value=metric
            )
        return name

    def _validate_dbscan_params(self):
        """Validate explicit DBSCAN parameters."""
        if not self.auto_tune and (self.eps is None or self.min_samples is None):
            raise ConfigurationError("eps and min_samples are required when auto_tune is False")

        if self.eps is not None and not self.eps > 0:
            raise ConfigurationError("eps must be greater than 0", parameter='eps', value=self.eps)
        if self.min_samples is not None and (int(self.min_samples) != self.min_samples
                                             or self.min_samples < 1):
            raise ConfigurationError("min_samples must be an integer >= 1",
                                     parameter='min_samples', value=self.min_samples)

        # Warning for suboptimal settings
        if self.min_samples == 1:
            warnings.warn("min_samples == 1 turns every observation into a core point, "
                          "no observation will be labeled noise")

    def _validate_tuner_params(self):
        """Validate parameter tuner heuristics."""
        if not 0.0 < self.k_distance_percentile <= 1.0:
            raise ConfigurationError("k_distance_percentile must be in (0.0, 1.0]",
                                     parameter='k_distance_percentile',
                                     value=self.k_distance_percentile)

        if len(self.angular_eps_range) != 2:
            raise ConfigurationError("angular_eps_range must be a (low, high) pair",
                                     parameter='angular_eps_range')
        low, high = self.angular_eps_range
        if not 0.0 < low < high <= 1.0:
            raise ConfigurationError("angular_eps_range must satisfy 0 < low < high <= 1",
                                     parameter='angular_eps_range',
                                     value=self.angular_eps_range)

        if self.eps_jitter < 0:
            raise ConfigurationError("eps_jitter must be non-negative",
                                     parameter='eps_jitter', value=self.eps_jitter)

        # Warning for suboptimal settings
        if self.eps_jitter > 0 and self.random_state is None:
            warnings.warn("eps_jitter > 0 without random_state makes auto-tuned eps non-reproducible")

    def _validate_tracking_params(self):
        """Validate MLflow configuration parameters."""
        if not isinstance(self.experiment_name, str) or not self.experiment_name:
            raise ConfigurationError("experiment_name must be a non-empty string",
                                     parameter='experiment_name')

    def _check_parameter_compatibility(self):
        """Check for parameter combinations that may cause issues."""
        if self.auto_tune and (self.eps is not None or self.min_samples is not None):
            warnings.warn("eps/min_samples are ignored while auto_tune is True")

        if self.eps is not None and self.eps > 1.0 and self.metric in _UNIT_BOUNDED_METRICS:
            warnings.warn(f"eps > 1.0 with the {self.metric} metric places every "
                          "observation in every neighborhood")

        if self.eps_jitter > 0 and self.metric != 'angular':
            warnings.warn("eps_jitter only applies to the angular metric")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for MLflow logging."""
        return {
            'metric': self.metric,
            'auto_tune': self.auto_tune,
            'eps': self.eps,
            'min_samples': self.min_samples,
            'k_distance_percentile': self.k_distance_percentile,
            'angular_eps_range': self.angular_eps_range,
            'eps_jitter': self.eps_jitter,
            'random_state': self.random_state,
            'compute_quality_metrics': self.compute_quality_metrics,
            'enable_mlflow': self.enable_mlflow,
            'experiment_name': self.experiment_name
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ClusteringConfig':
        """Create ClusteringConfig from dictionary."""
        return cls(**config_dict)
