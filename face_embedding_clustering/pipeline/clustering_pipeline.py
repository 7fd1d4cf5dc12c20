"""
Main pipeline controller for face embedding clustering.

This module implements the EmbeddingClusteringPipeline class that takes a
batch of embeddings with their quality scores through parameter tuning,
DBSCAN classification and quality-ranked cluster building.
"""

from contextlib import nullcontext
from datetime import datetime
import numpy as np
import mlflow
import logging
from typing import Callable, Optional, Sequence

from ..core.config import ClusteringConfig
from ..core.data_models import ClusteringResult, Observation, TunedParameters
from ..core.exceptions import ClusteringError, DataValidationError, ModelTrainingError
from ..clustering.observation_store import ObservationStore
from ..clustering.dbscan_engine import DBSCANEngine
from ..clustering.parameter_tuner import auto_tune
from ..clustering.cluster_membership import ClusterMembershipModel
from ..clustering.quality_metrics import compute_clustering_metrics
from ..mlflow_integration.logging_utils import PipelineLogger


logger = logging.getLogger(__name__)

# Auto-tuned eps is floored here when the k-distances collapse to zero (duplicate embeddings)
MIN_TUNED_EPS = 1e-9


class EmbeddingClusteringPipeline:
    """
    Batch clustering of embeddings into quality-ranked clusters.

    Each ``run`` is independent: it builds a fresh observation store, a
    fresh engine and a fresh membership model.
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        """
        Initialize the clustering pipeline.

        Args:
            config: Pipeline configuration, defaults to ClusteringConfig()
        """
        self.config = config or ClusteringConfig()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.tracker = PipelineLogger("EmbeddingClusteringPipeline",
                                      enable_mlflow=self.config.enable_mlflow)

        self._last_result: Optional[ClusteringResult] = None

        # Callbacks for external integration
        self._pre_run_callback: Optional[Callable[[ObservationStore], None]] = None
        self._post_run_callback: Optional[Callable[[ClusteringResult], None]] = None

        self.logger.info("EmbeddingClusteringPipeline initialized with metric: %s",
                         self.config.metric)

    def set_callbacks(self,
                      pre_run: Optional[Callable[[ObservationStore], None]] = None,
                      post_run: Optional[Callable[[ClusteringResult], None]] = None) -> None:
        """
        Register hooks called before and after each run.

        Args:
            pre_run: Called with the observation store before clustering
            post_run: Called with the finished result
        """
        self._pre_run_callback = pre_run
        self._post_run_callback = post_run

    def run(self, embeddings, quality_scores: Optional[Sequence[float]] = None) -> ClusteringResult:
        """
        Cluster one batch of embeddings.

        Args:
            embeddings: 2-D array or nested sequences, one row per observation
            quality_scores: Quality score in [0, 1] per observation, defaults to 1.0

        Returns:
            ClusteringResult with labels, ranked clusters and metrics

        Raises:
            DataValidationError: If input data is invalid
            InsufficientDataError: If auto-tuning needs more observations than given
            ModelTrainingError: If clustering fails unexpectedly
        """
        store = ObservationStore.from_rows(embeddings)
        qualities = self._resolve_quality_scores(quality_scores, store.n_rows)

        self.logger.info("Starting clustering run with %d observations, %d dimensions",
                         store.n_rows, store.n_cols)

        if self._pre_run_callback:
            self._pre_run_callback(store)

        with self._tracking_run():
            try:
                result = self._cluster(store, qualities)
            except ClusteringError as e:
                self.tracker.log_error(e, context={"n_observations": store.n_rows})
                raise
            except Exception as e:
                self.tracker.log_error(e, context={"n_observations": store.n_rows})
                raise ModelTrainingError(
                    f"Clustering run failed: {str(e)}",
                    model_type="pipeline",
                    training_data_size=store.n_rows
                ) from e

            self._log_run(result)

        self._last_result = result

        if self._post_run_callback:
            self._post_run_callback(result)

        self.logger.info("Clustering run completed. Found %d clusters with %.2f%% noise points",
                         result.n_clusters, result.noise_ratio * 100)
        return result

    def run_observations(self, observations: Sequence[Observation]) -> ClusteringResult:
        """
        Cluster a batch of Observation objects.

        Observation indices must be 0..N-1 in order.
        """
        observations = list(observations)
        for position, observation in enumerate(observations):
            if observation.index != position:
                raise DataValidationError(
                    f"Observation at position {position} has index {observation.index}"
                )

        embeddings = [observation.vector for observation in observations]
        quality_scores = [observation.quality_score for observation in observations]
        return self.run(embeddings, quality_scores)

    def resolve_parameters(self, store: ObservationStore) -> TunedParameters:
        """
        Pick eps and min_samples for a batch, auto-tuned or from config.

        Raises:
            InsufficientDataError: If the batch is smaller than the derived min_samples
        """
        if not self.config.auto_tune:
            return TunedParameters(eps=float(self.config.eps), min_samples=int(self.config.min_samples))

        params = auto_tune(
            store,
            self.config.metric,
            percentile=self.config.k_distance_percentile,
            angular_range=self.config.angular_eps_range,
            jitter=self.config.eps_jitter,
            random_state=self.config.random_state
        )
        if params.eps < MIN_TUNED_EPS:
            self.logger.warning("Auto-tuned eps %.3g collapsed to zero, using %.1e",
                                params.eps, MIN_TUNED_EPS)
            params = TunedParameters(eps=MIN_TUNED_EPS, min_samples=params.min_samples)
        return params

    def _cluster(self, store: ObservationStore, qualities: np.ndarray) -> ClusteringResult:
        if store.n_rows == 0:
            result = self._empty_result()
        else:
            params = self.resolve_parameters(store)
            engine = DBSCANEngine(eps=params.eps, min_samples=params.min_samples,
                                  metric=self.config.metric)
            result = engine.fit(store)

        membership = ClusterMembershipModel()
        result.clusters = membership.build(result.labels, qualities)

        if self.config.compute_quality_metrics and store.n_rows:
            result.metrics = compute_clustering_metrics(store, result.labels, self.config.metric)
        else:
            result.metrics = {
                'n_clusters': result.n_clusters,
                'n_noise_points': result.n_noise,
                'noise_ratio': result.noise_ratio,
                'total_points': store.n_rows
            }
        return result

    def _empty_result(self) -> ClusteringResult:
        self.logger.info("Empty batch, returning zero clusters")
        return ClusteringResult(
            labels=np.array([], dtype=int),
            n_clusters=0,
            n_noise=0,
            noise_ratio=0.0,
            eps=float(self.config.eps or 0.0),
            min_samples=int(self.config.min_samples or 0),
            metric=self.config.metric
        )

    @staticmethod
    def _resolve_quality_scores(quality_scores, n_rows: int) -> np.ndarray:
        if quality_scores is None:
            return np.ones(n_rows, dtype=np.float64)

        try:
            qualities = np.asarray(quality_scores, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise DataValidationError(f"quality_scores must be numeric: {e}") from e

        if qualities.shape != (n_rows,):
            raise DataValidationError(
                "quality_scores must hold one value per observation",
                expected_shape=(n_rows,),
                actual_shape=qualities.shape
            )
        if n_rows and (not np.all(np.isfinite(qualities))
                       or np.any(qualities < 0.0) or np.any(qualities > 1.0)):
            raise DataValidationError("quality_scores must be finite values between 0.0 and 1.0")
        return qualities

    def _tracking_run(self):
        if not self.config.enable_mlflow:
            return nullcontext()
        mlflow.set_experiment(self.config.experiment_name)
        return mlflow.start_run(
            run_name=f"clustering_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            tags={"metric": self.config.metric}
        )

    def _log_run(self, result: ClusteringResult) -> None:
        self.tracker.log_parameters({
            'metric': result.metric,
            'eps': result.eps,
            'min_samples': result.min_samples,
            'auto_tune': self.config.auto_tune
        }, prefix="dbscan")
        self.tracker.log_metrics(result.metrics, prefix="clustering")
        self.tracker.log_cluster_summary(result.clusters)

    @property
    def last_result(self) -> Optional[ClusteringResult]:
        return self._last_result

    @property
    def is_fitted(self) -> bool:
        return self._last_result is not None
