"""
Utility modules for the payment pipeline
"""
from .config_loader import PipelineConfig, load_pipeline_config

__all__ = [
    'PipelineConfig',
    'load_pipeline_config',
]
