"""
Quality-ranked cluster membership.

Turns the label array of a DBSCAN run into clusters whose members are kept
ordered by quality score, best first, with a representative member and a
mean quality score per cluster.
"""

import bisect
from dataclasses import dataclass
import numpy as np
import pandas as pd
from typing import Dict, Any, List, Optional, Sequence
import logging

from ..core.data_models import NOISE
from ..core.exceptions import DataValidationError
from .observation_store import ObservationStore


logger = logging.getLogger(__name__)


@dataclass
class ClusterMember:
    """
    An observation inside a cluster.

    Attributes:
        index: Observation index in the batch
        quality_score: Ranking key supplied by the caller
        rank: Position in the cluster's quality order (0 = best, -1 = unassigned)
    """
    index: int
    quality_score: float
    rank: int = -1


class Cluster:
    """
    A cluster whose members stay sorted by quality score, descending.

    Members with equal scores keep their insertion order.
    """

    def __init__(self, cluster_id: int):
        if cluster_id < 0:
            raise DataValidationError(f"cluster id must be non-negative, got {cluster_id}")
        self.id = cluster_id
        self._members: List[ClusterMember] = []
        # Negated scores, ascending, parallel to _members
        self._sort_keys: List[float] = []
        self._quality_sum = 0.0

    def add(self, member: ClusterMember) -> ClusterMember:
        """
        Insert a member at its quality position and re-rank the members behind it.

        Returns:
            The inserted member, with its rank set
        """
        key = -member.quality_score
        position = bisect.bisect_right(self._sort_keys, key)

        self._sort_keys.insert(position, key)
        self._members.insert(position, member)
        self._quality_sum += member.quality_score

        for rank in range(position, len(self._members)):
            self._members[rank].rank = rank

        return member

    def add_observation(self, index: int, quality_score: float) -> ClusterMember:
        """Create a member for an observation and insert it."""
        return self.add(ClusterMember(index=index, quality_score=float(quality_score)))

    @property
    def members(self) -> List[ClusterMember]:
        """Members, best quality first."""
        return list(self._members)

    @property
    def member_indices(self) -> List[int]:
        return [member.index for member in self._members]

    @property
    def size(self) -> int:
        return len(self._members)

    def __len__(self) -> int:
        return self.size

    @property
    def representative(self) -> Optional[ClusterMember]:
        """Highest-quality member."""
        return self._members[0] if self._members else None

    @property
    def quality_score(self) -> float:
        """Mean quality score of the members."""
        if not self._members:
            return 0.0
        return self._quality_sum / len(self._members)

    def centroid(self, store: ObservationStore) -> np.ndarray:
        """Mean embedding of the members."""
        if not self._members:
            return np.array([], dtype=np.float64)
        return np.mean(store.as_array()[self.member_indices], axis=0)

    def to_dict(self) -> Dict[str, Any]:
        representative = self.representative
        return {
            'id': self.id,
            'size': self.size,
            'quality_score': self.quality_score,
            'representative_index': representative.index if representative else None,
            'member_indices': self.member_indices,
        }

    def __repr__(self):
        return (f"{self.__class__.__name__}(id={self.id}, size={self.size}, "
                f"quality_score={self.quality_score:.4f})")


class ClusterMembershipModel:
    """
    Groups labeled observations into quality-ranked clusters.

    Clusters are created lazily on their first member. Noise observations
    are counted but never become members.
    """

    def __init__(self):
        self._clusters: Dict[int, Cluster] = {}
        self._n_noise = 0

    def build(self, labels: Sequence[int], quality_scores: Sequence[float]) -> List[Cluster]:
        """
        Build clusters from a label array.

        Args:
            labels: Label per observation (NOISE or cluster id)
            quality_scores: Quality score per observation

        Returns:
            Clusters sorted by mean quality score, highest first

        Raises:
            DataValidationError: If labels and quality scores differ in length
        """
        labels = np.asarray(labels, dtype=int)
        quality_scores = np.asarray(quality_scores, dtype=np.float64)

        if labels.shape != quality_scores.shape:
            raise DataValidationError(
                "labels and quality_scores must have the same length",
                expected_shape=labels.shape,
                actual_shape=quality_scores.shape
            )

        self._clusters = {}
        self._n_noise = 0

        for index, (label, quality) in enumerate(zip(labels, quality_scores)):
            if label == NOISE:
                self._n_noise += 1
                continue
            self.assign(index, int(label), float(quality))

        ranked = self.ranked_clusters
        logger.info("Built %d clusters, %d noise observations excluded",
                    len(ranked), self._n_noise)
        return ranked

    def assign(self, index: int, cluster_id: int, quality_score: float) -> ClusterMember:
        """Add one observation to a cluster, creating the cluster if needed."""
        cluster = self._clusters.get(cluster_id)
        if cluster is None:
            cluster = Cluster(cluster_id)
            self._clusters[cluster_id] = cluster
        return cluster.add_observation(index, quality_score)

    def get(self, cluster_id: int) -> Optional[Cluster]:
        return self._clusters.get(cluster_id)

    @property
    def ranked_clusters(self) -> List[Cluster]:
        """Non-empty clusters by mean quality, highest first; ties keep id order."""
        clusters = sorted(self._clusters.values(), key=lambda c: c.id)
        return sorted((c for c in clusters if c.size), key=lambda c: c.quality_score, reverse=True)

    @property
    def n_clusters(self) -> int:
        return len(self._clusters)

    @property
    def n_noise(self) -> int:
        return self._n_noise

    def to_dataframe(self) -> pd.DataFrame:
        """Summary table of the ranked clusters."""
        return clusters_to_dataframe(self.ranked_clusters)


CLUSTER_TABLE_COLUMNS = ['cluster_id', 'quality_rank', 'size', 'quality_score',
                         'representative_index']


def clusters_to_dataframe(ranked_clusters: Sequence[Cluster]) -> pd.DataFrame:
    """One row per cluster, in the given ranking order."""
    rows = []
    for position, cluster in enumerate(ranked_clusters):
        rows.append({
            'cluster_id': cluster.id,
            'quality_rank': position,
            'size': cluster.size,
            'quality_score': cluster.quality_score,
            'representative_index': cluster.representative.index,
        })
    return pd.DataFrame(rows, columns=CLUSTER_TABLE_COLUMNS)
