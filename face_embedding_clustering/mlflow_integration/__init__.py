"""
MLflow integration components for the face embedding clustering engine.
"""

from .logging_utils import PipelineLogger, setup_pipeline_logging

__all__ = ['PipelineLogger', 'setup_pipeline_logging']
