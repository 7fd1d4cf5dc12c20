"""
Run tracking for the face embedding clustering engine.

Parameters, metrics and failures of a clustering run are written to the
``face_clustering`` logger hierarchy and, when enabled, mirrored to the
active MLflow run.
"""

import logging
import numbers
import mlflow
from typing import Dict, Any, Optional, Sequence, Union
from datetime import datetime

from ..core.exceptions import MLflowIntegrationError


ROOT_LOGGER_NAME = "face_clustering"


class PipelineLogger:
    """
    Tracker bound to one component of the clustering pipeline.

    Everything is logged locally; MLflow only sees it when ``enable_mlflow``
    is set, so the engine runs without a tracking server by default.
    """

    def __init__(self, component_name: str, enable_mlflow: bool = False,
                 log_level: int = logging.INFO):
        """
        Args:
            component_name: Suffix of the logger name, e.g. the owning class
            enable_mlflow: Mirror parameters, metrics and error tags to MLflow
            log_level: Level of the component logger
        """
        self.component_name = component_name
        self.enable_mlflow = enable_mlflow
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}")
        self.logger.setLevel(log_level)

    def log_parameters(self, params: Dict[str, Any], prefix: str = "") -> None:
        """
        Record run parameters such as eps, min_samples and the metric name.

        Raises:
            MLflowIntegrationError: If MLflow rejects a parameter
        """
        try:
            for name, value in params.items():
                key = self._key(prefix, name)
                if self.enable_mlflow:
                    mlflow.log_param(key, value)
                self.logger.info("Parameter %s: %s", key, value)
        except Exception as e:
            self.logger.error("Could not record parameters: %s", e)
            raise MLflowIntegrationError(
                f"{self.component_name} could not record parameters: {e}",
                operation="log_parameters",
                details={"component": self.component_name}
            ) from e

    def log_metrics(self, metrics: Dict[str, Any],
                    step: Optional[int] = None, prefix: str = "") -> None:
        """
        Record numeric run metrics.

        Scores that could not be computed are None and are skipped, as are
        booleans and any other non-numeric value.

        Raises:
            MLflowIntegrationError: If MLflow rejects a metric
        """
        try:
            for name, value in metrics.items():
                if isinstance(value, bool) or not isinstance(value, numbers.Number):
                    continue

                key = self._key(prefix, name)
                value = float(value)
                if self.enable_mlflow:
                    if step is None:
                        mlflow.log_metric(key, value)
                    else:
                        mlflow.log_metric(key, value, step=step)

                if step is None:
                    self.logger.info("Metric %s: %s", key, value)
                else:
                    self.logger.info("Metric %s: %s (step %d)", key, value, step)
        except Exception as e:
            self.logger.error("Could not record metrics: %s", e)
            raise MLflowIntegrationError(
                f"{self.component_name} could not record metrics: {e}",
                operation="log_metrics",
                details={"component": self.component_name}
            ) from e

    def log_cluster_summary(self, clusters: Sequence[Any], prefix: str = "cluster") -> None:
        """
        Record size and mean quality of each ranked cluster.

        The step is the quality rank, so MLflow plots the ranking as a curve.
        """
        for rank, cluster in enumerate(clusters):
            self.log_metrics({
                "size": cluster.size,
                "quality_score": cluster.quality_score
            }, step=rank, prefix=prefix)

    def log_error(self, error: Exception, context: Dict[str, Any] = None) -> None:
        """
        Log a failed run and tag the MLflow run with the error.

        Tagging failures are logged and never raised.
        """
        self.logger.error("%s failed: %s", self.component_name, error)

        if not self.enable_mlflow:
            return

        tags = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "component": self.component_name,
            "failed_at": datetime.now().isoformat()
        }
        for key, value in (context or {}).items():
            tags[f"context_{key}"] = str(value)

        try:
            mlflow.set_tags(tags)
        except Exception as tag_error:
            self.logger.error("Could not tag MLflow run with the error: %s", tag_error)

    @staticmethod
    def _key(prefix: str, name: str) -> str:
        return f"{prefix}.{name}" if prefix else name


def setup_pipeline_logging(log_level: Union[int, str] = logging.INFO) -> None:
    """
    Attach a single console handler to the ``face_clustering`` loggers.

    Calling it again replaces the handler instead of stacking another one.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(log_level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root.addHandler(handler)
    root.propagate = False
