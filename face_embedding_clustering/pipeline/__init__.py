"""
Pipeline components for the face embedding clustering engine.
"""

from .clustering_pipeline import EmbeddingClusteringPipeline

__all__ = ['EmbeddingClusteringPipeline']
