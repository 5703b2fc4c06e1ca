"""
OCR Engine Module for the Serial OCR Pipeline.

This module turns an image payload into raw recognized text:
    - Text plus per-token bounding boxes and confidences
    - Interchangeable providers behind one interface
    - Deterministic provider order with fallback

Providers:
    - cloud: hosted text detection API (needs a credential)
    - local: Tesseract with the Vietnamese + English language data

Author: ML Engineering Team
"""

from .recognized_text import BoundingBox, RecognizedToken, RecognizedText
from .base import OutcomeStatus, RecognitionOutcome, RecognitionProvider
from .cloud_vision import CloudVisionProvider
from .local_backend import LocalRecognitionProvider
from .selector import ProviderSelector

__all__ = [
    'BoundingBox',
    'RecognizedToken',
    'RecognizedText',
    'OutcomeStatus',
    'RecognitionOutcome',
    'RecognitionProvider',
    'CloudVisionProvider',
    'LocalRecognitionProvider',
    'ProviderSelector',
]
