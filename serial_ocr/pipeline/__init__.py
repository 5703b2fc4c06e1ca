"""
Pipeline Module for the Serial OCR Pipeline.

This module wires decoding, recognition and extraction together:
    - PipelineConfig: the options the host application sets
    - ExtractionPipeline: image in, ExtractedDocument out

Author: ML Engineering Team
"""

from .options import PipelineConfig
from .orchestrator import ExtractionPipeline, PipelineRun, PipelineState

__all__ = ['PipelineConfig', 'ExtractionPipeline', 'PipelineRun', 'PipelineState']
