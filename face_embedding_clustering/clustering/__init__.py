"""
Clustering components for the face embedding clustering engine.

This module contains the observation store, the distance metrics, the
DBSCAN engine, the parameter tuner and the quality-ranked membership model.
"""

from .observation_store import ObservationStore
from .distance_metrics import DistanceMetric
from .dbscan_engine import DBSCANEngine
from .parameter_tuner import k_distances, suggest_eps, suggest_min_samples, auto_tune
from .cluster_membership import Cluster, ClusterMember, ClusterMembershipModel
from .quality_metrics import compute_clustering_metrics
from .performance_reporter import ClusteringPerformanceReporter

__all__ = [
    'ObservationStore',
    'DistanceMetric',
    'DBSCANEngine',
    'k_distances',
    'suggest_eps',
    'suggest_min_samples',
    'auto_tune',
    'Cluster',
    'ClusterMember',
    'ClusterMembershipModel',
    'compute_clustering_metrics',
    'ClusteringPerformanceReporter'
]
