"""
Tests for the end-to-end embedding clustering pipeline.

Tests:
- Explicit and auto-tuned runs
- Quality ranking of the returned clusters
- Input validation and error propagation
- Callbacks and MLflow tracking
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from face_embedding_clustering import (
    ClusteringConfig,
    EmbeddingClusteringPipeline,
    Observation,
)
from face_embedding_clustering.clustering.dbscan_engine import DBSCANEngine
from face_embedding_clustering.core.data_models import NOISE
from face_embedding_clustering.core.exceptions import (
    ClusteringError,
    DataValidationError,
    DimensionMismatchError,
    InsufficientDataError,
    ModelTrainingError,
)


PIPELINE_MLFLOW = "face_embedding_clustering.pipeline.clustering_pipeline.mlflow"
LOGGER_MLFLOW = "face_embedding_clustering.mlflow_integration.logging_utils.mlflow"


def _explicit_config(**overrides):
    values = dict(metric="euclidean", auto_tune=False, eps=1.5, min_samples=2)
    values.update(overrides)
    return ClusteringConfig(**values)


# ============================================================================
# Explicit Parameters
# ============================================================================


def test_three_points_and_outlier(spec_points):
    pipeline = EmbeddingClusteringPipeline(_explicit_config())

    result = pipeline.run(spec_points, quality_scores=[0.2, 0.9, 0.5, 1.0])

    assert result.labels.tolist() == [0, 0, 0, NOISE]
    assert result.n_clusters == 1
    assert result.n_noise == 1
    assert len(result.clusters) == 1

    cluster = result.clusters[0]
    assert cluster.member_indices == [1, 2, 0]
    assert cluster.representative.index == 1
    assert cluster.quality_score == pytest.approx((0.2 + 0.9 + 0.5) / 3)


def test_empty_batch():
    pipeline = EmbeddingClusteringPipeline()

    result = pipeline.run([])

    assert result.n_clusters == 0
    assert result.n_noise == 0
    assert result.labels.size == 0
    assert result.clusters == []
    assert result.metrics['total_points'] == 0
    assert pipeline.is_fitted


def test_default_quality_scores_are_one(spec_points):
    result = EmbeddingClusteringPipeline(_explicit_config()).run(spec_points)

    assert result.clusters[0].quality_score == pytest.approx(1.0)
    # Equal scores keep observation order
    assert result.clusters[0].member_indices == [0, 1, 2]


def test_basic_metrics_when_quality_metrics_disabled(three_blobs):
    points, _ = three_blobs
    config = _explicit_config(eps=1.0, min_samples=4, compute_quality_metrics=False)

    result = EmbeddingClusteringPipeline(config).run(points)

    assert result.metrics == {
        'n_clusters': 3,
        'n_noise_points': 0,
        'noise_ratio': 0.0,
        'total_points': 60,
    }


# ============================================================================
# Auto-Tuned Runs
# ============================================================================


def test_auto_tuned_angular_recovers_identities(face_embeddings):
    embeddings, qualities, identities = face_embeddings
    pipeline = EmbeddingClusteringPipeline(ClusteringConfig(metric="angular"))

    result = pipeline.run(embeddings, qualities)

    assert result.min_samples == 10
    assert 0.3252 <= result.eps <= 0.6
    assert result.n_clusters == 3
    assert result.n_noise == 0
    for identity in range(3):
        assert len(np.unique(result.labels[identities == identity])) == 1
    assert result.metrics['silhouette_score'] is not None


def test_clusters_ranked_by_quality(face_embeddings):
    embeddings, qualities, _ = face_embeddings

    result = EmbeddingClusteringPipeline().run(embeddings, qualities)

    cluster_scores = [cluster.quality_score for cluster in result.clusters]
    assert cluster_scores == sorted(cluster_scores, reverse=True)

    for cluster in result.clusters:
        member_scores = [member.quality_score for member in cluster.members]
        assert member_scores == sorted(member_scores, reverse=True)
        assert cluster.representative.quality_score == pytest.approx(
            max(qualities[cluster.member_indices])
        )
        assert [member.rank for member in cluster.members] == list(range(cluster.size))


def test_runs_are_deterministic(face_embeddings):
    embeddings, qualities, _ = face_embeddings
    pipeline = EmbeddingClusteringPipeline()

    first = pipeline.run(embeddings, qualities)
    second = pipeline.run(embeddings, qualities)

    np.testing.assert_array_equal(first.labels, second.labels)
    assert first.eps == second.eps


def test_seeded_jitter_is_reproducible(face_embeddings):
    embeddings, qualities, _ = face_embeddings
    config = ClusteringConfig(metric="angular", eps_jitter=0.02, random_state=3)

    first = EmbeddingClusteringPipeline(config).run(embeddings, qualities)
    second = EmbeddingClusteringPipeline(config).run(embeddings, qualities)

    assert first.eps == second.eps


def test_auto_tune_needs_min_samples_rows():
    rng = np.random.default_rng(0)
    pipeline = EmbeddingClusteringPipeline(ClusteringConfig(metric="angular"))

    with pytest.raises(InsufficientDataError):
        pipeline.run(rng.normal(size=(5, 128)))

    assert not pipeline.is_fitted


def test_collapsed_eps_is_floored():
    duplicates = [[1.0, 2.0]] * 6
    pipeline = EmbeddingClusteringPipeline(ClusteringConfig(metric="euclidean"))

    result = pipeline.run(duplicates)

    assert result.eps > 0
    assert result.labels.tolist() == [0] * 6


# ============================================================================
# Validation and Errors
# ============================================================================


def test_flat_embedding_list_raises():
    with pytest.raises(DataValidationError):
        EmbeddingClusteringPipeline(_explicit_config()).run([1.0, 2.0, 3.0])


def test_ragged_rows_raise():
    with pytest.raises(DimensionMismatchError):
        EmbeddingClusteringPipeline(_explicit_config()).run([[0.0, 0.0], [1.0]])


@pytest.mark.parametrize("quality_scores", [
    [0.5, 0.5, 0.5],
    [0.5, 0.5, 0.5, 1.2],
    [0.5, 0.5, np.nan, 0.5],
    ["a", "b", "c", "d"],
])
def test_invalid_quality_scores_raise(spec_points, quality_scores):
    with pytest.raises(DataValidationError):
        EmbeddingClusteringPipeline(_explicit_config()).run(spec_points, quality_scores)


def test_unexpected_failure_wrapped(spec_points):
    pipeline = EmbeddingClusteringPipeline(_explicit_config())

    with patch.object(DBSCANEngine, "fit", side_effect=RuntimeError("boom")):
        with pytest.raises(ModelTrainingError) as exc_info:
            pipeline.run(spec_points)

    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_clustering_errors_propagate_unchanged(spec_points):
    pipeline = EmbeddingClusteringPipeline(_explicit_config())
    error = ClusteringError("engine refused", component="Test")

    with patch.object(DBSCANEngine, "fit", side_effect=error):
        with pytest.raises(ClusteringError) as exc_info:
            pipeline.run(spec_points)

    assert exc_info.value is error


# ============================================================================
# Observations and Callbacks
# ============================================================================


def test_run_observations(spec_points):
    observations = [Observation(index=i, vector=point, quality_score=0.1 * (i + 1))
                    for i, point in enumerate(spec_points)]

    result = EmbeddingClusteringPipeline(_explicit_config()).run_observations(observations)

    assert result.labels.tolist() == [0, 0, 0, NOISE]
    assert result.clusters[0].representative.index == 2


def test_run_observations_requires_ordered_indices(spec_points):
    observations = [Observation(index=i + 1, vector=point) for i, point in enumerate(spec_points)]

    with pytest.raises(DataValidationError):
        EmbeddingClusteringPipeline(_explicit_config()).run_observations(observations)


def test_callbacks_invoked(spec_points):
    pipeline = EmbeddingClusteringPipeline(_explicit_config())
    pre_run = MagicMock()
    post_run = MagicMock()
    pipeline.set_callbacks(pre_run=pre_run, post_run=post_run)

    result = pipeline.run(spec_points)

    assert pre_run.call_args.args[0].shape == (4, 2)
    post_run.assert_called_once_with(result)
    assert pipeline.last_result is result


# ============================================================================
# MLflow Tracking
# ============================================================================


@patch(LOGGER_MLFLOW)
@patch(PIPELINE_MLFLOW)
def test_mlflow_tracking(mock_pipeline_mlflow, mock_logger_mlflow, spec_points):
    config = _explicit_config(enable_mlflow=True, experiment_name="faces-test")

    EmbeddingClusteringPipeline(config).run(spec_points)

    mock_pipeline_mlflow.set_experiment.assert_called_once_with("faces-test")
    mock_pipeline_mlflow.start_run.assert_called_once()
    mock_logger_mlflow.log_param.assert_any_call("dbscan.eps", 1.5)
    mock_logger_mlflow.log_param.assert_any_call("dbscan.metric", "euclidean")
    mock_logger_mlflow.log_metric.assert_any_call("clustering.n_clusters", 1.0)
    mock_logger_mlflow.log_metric.assert_any_call("cluster.size", 3.0, step=0)


@patch(LOGGER_MLFLOW)
@patch(PIPELINE_MLFLOW)
def test_mlflow_disabled_by_default(mock_pipeline_mlflow, mock_logger_mlflow, spec_points):
    EmbeddingClusteringPipeline(_explicit_config()).run(spec_points)

    mock_pipeline_mlflow.start_run.assert_not_called()
    mock_logger_mlflow.log_param.assert_not_called()
