"""
Shared fixtures for the clustering test suite.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest


@pytest.fixture
def spec_points():
    """Three close points and one far outlier."""
    return [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [10.0, 10.0]]


@pytest.fixture
def three_blobs():
    """60 points in three tight, well-separated 2-D blobs, with blob ids."""
    rng = np.random.default_rng(42)
    centers = np.array([[0.0, 0.0], [10.0, 10.0], [-10.0, 10.0]])
    points = np.vstack([center + rng.normal(scale=0.2, size=(20, 2)) for center in centers])
    blob_ids = np.repeat(np.arange(3), 20)
    return points, blob_ids


@pytest.fixture
def face_embeddings():
    """
    45 unit-norm 128-d embeddings for three identities, with quality scores.

    Identities sit on orthogonal axes, so cross-identity angular distance is
    about 0.5 while within-identity distance stays near 0.1.
    """
    rng = np.random.default_rng(7)
    dim = 128
    vectors = []
    identities = []
    for identity in range(3):
        base = np.zeros(dim)
        base[identity] = 1.0
        samples = base + rng.normal(scale=0.02, size=(15, dim))
        samples /= np.linalg.norm(samples, axis=1, keepdims=True)
        vectors.append(samples)
        identities.extend([identity] * 15)

    embeddings = np.vstack(vectors)
    qualities = rng.uniform(0.1, 1.0, size=len(embeddings))
    return embeddings, qualities, np.array(identities)
