"""
Serial OCR - Document Field Extraction Package.

This package turns a photo of an invoice, warranty card or receipt into
the structured fields of the serial-number entry forms. Each module has
a single responsibility.

Modules:
    - input_handler: Payload decoding and image preparation
    - ocr_engine: Recognition providers and provider selection
    - extraction: Rule catalogue, field extraction and confidence
    - postprocessor: Value normalization
    - pipeline: The end-to-end ExtractionPipeline
    - utils: Logging, errors and helpers

Architecture:
    Payload -> Recognition (cloud | local) -> Extraction -> ExtractedDocument

Submodules are imported explicitly (``from serial_ocr.pipeline import
ExtractionPipeline``); this package does not import them eagerly because
the ``config`` package depends on ``serial_ocr.utils``.
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'extraction',
    'postprocessor',
    'pipeline',
    'utils'
]
