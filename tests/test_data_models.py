"""
Tests for core data models and the detection quality score.
"""

import numpy as np
import pytest

from face_embedding_clustering.clustering.cluster_membership import Cluster
from face_embedding_clustering.core.data_models import (
    ClusteringResult,
    Observation,
    TunedParameters,
    detection_quality_score,
    NOISE,
    UNCLASSIFIED,
)
from face_embedding_clustering.core.exceptions import DataValidationError


def _result(labels, **overrides):
    labels = np.asarray(labels, dtype=int)
    values = dict(
        labels=labels,
        n_clusters=len(set(labels.tolist()) - {NOISE}),
        n_noise=int(np.sum(labels == NOISE)),
        noise_ratio=float(np.mean(labels == NOISE)) if labels.size else 0.0,
        eps=0.5,
        min_samples=3,
        metric="euclidean",
    )
    values.update(overrides)
    return ClusteringResult(**values)


# ============================================================================
# Detection Quality Score
# ============================================================================


@pytest.mark.parametrize("width, height, confidence, expected", [
    (0.5, 0.5, 1.0, 1.0),
    (0.1, 0.2, 0.6, (0.08 + 0.6) / 2),
    (1.0, 1.0, 0.0, 0.5),
    (0.0, 0.0, 0.0, 0.0),
])
def test_detection_quality_score(width, height, confidence, expected):
    assert detection_quality_score(width, height, confidence) == pytest.approx(expected)


@pytest.mark.parametrize("width, height, confidence", [
    (1.2, 0.5, 0.5),
    (0.5, -0.1, 0.5),
    (0.5, 0.5, 1.01),
])
def test_detection_quality_score_out_of_range(width, height, confidence):
    with pytest.raises(DataValidationError):
        detection_quality_score(width, height, confidence)


# ============================================================================
# Observation
# ============================================================================


def test_observation_freezes_vector():
    observation = Observation(index=2, vector=np.array([1, 2, 3]), quality_score=0.4)

    assert observation.vector == (1.0, 2.0, 3.0)
    assert observation.dimension == 3
    with pytest.raises(AttributeError):
        observation.index = 5


@pytest.mark.parametrize("kwargs", [
    {"index": -1, "vector": [0.0]},
    {"index": 0, "vector": [0.0], "quality_score": 1.5},
    {"index": 0, "vector": [0.0], "quality_score": -0.1},
])
def test_observation_validation(kwargs):
    with pytest.raises(DataValidationError):
        Observation(**kwargs)


# ============================================================================
# TunedParameters and ClusteringResult
# ============================================================================


def test_tuned_parameters_unpack():
    eps, min_samples = TunedParameters(eps=0.4, min_samples=10)
    assert (eps, min_samples) == (0.4, 10)


def test_label_constants():
    assert NOISE == -1
    assert UNCLASSIFIED == -2


def test_result_rejects_unclassified_labels():
    with pytest.raises(ValueError):
        _result([0, UNCLASSIFIED], n_clusters=1, n_noise=0, noise_ratio=0.0)


def test_result_rejects_bad_noise_ratio():
    with pytest.raises(ValueError):
        _result([0, 0], noise_ratio=1.5)


def test_result_requires_array_labels():
    with pytest.raises(ValueError):
        ClusteringResult(labels=[0, 1], n_clusters=2, n_noise=0, noise_ratio=0.0,
                         eps=0.5, min_samples=2, metric="euclidean")


def test_result_get_cluster_and_to_dict():
    cluster = Cluster(0)
    cluster.add_observation(1, 0.8)
    cluster.add_observation(0, 0.2)
    result = _result([0, 0, NOISE], clusters=[cluster], metrics={"silhouette_score": 0.7})

    assert result.total_points == 3
    assert result.get_cluster(0) is cluster
    assert result.get_cluster(1) is None

    data = result.to_dict()
    assert data['labels'] == [0, 0, -1]
    assert data['n_noise'] == 1
    assert data['clusters'][0]['representative_index'] == 1
    assert data['metrics'] == {"silhouette_score": 0.7}
