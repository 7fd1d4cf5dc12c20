"""
Tests for quality-ranked cluster membership.
"""

import numpy as np
import pandas as pd
import pytest

from face_embedding_clustering.clustering.cluster_membership import (
    Cluster,
    ClusterMember,
    ClusterMembershipModel,
    CLUSTER_TABLE_COLUMNS,
)
from face_embedding_clustering.clustering.observation_store import ObservationStore
from face_embedding_clustering.core.data_models import NOISE
from face_embedding_clustering.core.exceptions import DataValidationError


# ============================================================================
# Cluster
# ============================================================================


def test_members_ordered_by_quality():
    cluster = Cluster(0)
    for index, quality in enumerate([0.9, 0.3, 0.7]):
        cluster.add_observation(index, quality)

    assert [m.quality_score for m in cluster.members] == [0.9, 0.7, 0.3]
    assert [m.rank for m in cluster.members] == [0, 1, 2]
    assert cluster.representative.quality_score == 0.9
    assert cluster.representative.index == 0
    assert cluster.member_indices == [0, 2, 1]


def test_ranks_updated_after_insert_at_front():
    cluster = Cluster(3)
    low = cluster.add(ClusterMember(index=0, quality_score=0.2))
    assert low.rank == 0

    cluster.add(ClusterMember(index=1, quality_score=0.8))

    assert low.rank == 1
    assert cluster.representative.index == 1


def test_equal_quality_keeps_insertion_order():
    cluster = Cluster(0)
    cluster.add_observation(5, 0.5)
    cluster.add_observation(2, 0.5)
    cluster.add_observation(9, 0.5)

    assert cluster.member_indices == [5, 2, 9]
    assert [m.rank for m in cluster.members] == [0, 1, 2]


def test_quality_score_is_mean():
    cluster = Cluster(0)
    assert cluster.quality_score == 0.0
    assert cluster.representative is None

    for index, quality in enumerate([0.9, 0.3, 0.6]):
        cluster.add_observation(index, quality)

    assert cluster.quality_score == pytest.approx(0.6)
    assert cluster.size == 3
    assert len(cluster) == 3


def test_members_returns_copy():
    cluster = Cluster(0)
    cluster.add_observation(0, 0.4)

    cluster.members.clear()

    assert cluster.size == 1


def test_negative_cluster_id_raises():
    with pytest.raises(DataValidationError):
        Cluster(NOISE)


def test_centroid():
    store = ObservationStore.from_rows([[0.0, 0.0], [2.0, 4.0], [100.0, 100.0]])
    cluster = Cluster(0)
    cluster.add_observation(0, 0.5)
    cluster.add_observation(1, 0.5)

    np.testing.assert_allclose(cluster.centroid(store), [1.0, 2.0])


def test_to_dict():
    cluster = Cluster(4)
    cluster.add_observation(7, 0.2)
    cluster.add_observation(8, 0.6)

    data = cluster.to_dict()

    assert data['id'] == 4
    assert data['size'] == 2
    assert data['quality_score'] == pytest.approx(0.4)
    assert data['representative_index'] == 8
    assert data['member_indices'] == [8, 7]


# ============================================================================
# ClusterMembershipModel
# ============================================================================


def test_build_excludes_noise_and_ranks_clusters():
    labels = [0, 0, NOISE, 1, 1, NOISE]
    qualities = [0.2, 0.4, 1.0, 0.9, 0.7, 0.1]
    model = ClusterMembershipModel()

    ranked = model.build(labels, qualities)

    assert [c.id for c in ranked] == [1, 0]
    assert model.n_clusters == 2
    assert model.n_noise == 2
    assert sum(c.size for c in ranked) == 4
    assert model.get(0).member_indices == [1, 0]
    assert model.get(5) is None


def test_ranked_clusters_ties_keep_id_order():
    model = ClusterMembershipModel()

    ranked = model.build([2, 0, 1], [0.5, 0.5, 0.5])

    assert [c.id for c in ranked] == [0, 1, 2]


def test_build_resets_previous_state():
    model = ClusterMembershipModel()
    model.build([0, 1], [0.3, 0.4])

    ranked = model.build([NOISE, 0], [0.3, 0.4])

    assert [c.id for c in ranked] == [0]
    assert model.n_noise == 1
    assert model.get(1) is None


def test_build_length_mismatch_raises():
    with pytest.raises(DataValidationError):
        ClusterMembershipModel().build([0, 0, 1], [0.5, 0.5])


def test_to_dataframe():
    model = ClusterMembershipModel()
    model.build([0, 0, 1, NOISE], [0.3, 0.5, 0.9, 0.8])

    table = model.to_dataframe()

    assert isinstance(table, pd.DataFrame)
    assert list(table.columns) == CLUSTER_TABLE_COLUMNS
    assert table['cluster_id'].tolist() == [1, 0]
    assert table['quality_rank'].tolist() == [0, 1]
    assert table['size'].tolist() == [1, 2]
    assert table['representative_index'].tolist() == [2, 1]


def test_to_dataframe_empty_has_columns():
    model = ClusterMembershipModel()
    model.build([NOISE, NOISE], [0.5, 0.5])

    table = model.to_dataframe()

    assert table.empty
    assert list(table.columns) == CLUSTER_TABLE_COLUMNS
