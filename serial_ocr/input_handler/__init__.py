"""
Input Handler Module for the Serial OCR Pipeline.

This module provides functionality for:
    - Accepting raw bytes, base64 strings and data URIs
    - Rejecting payloads that are not decodable images
    - Preparing images for the local recognition engine

Supported formats:
    - Any raster format Pillow can open (JPEG, PNG, WEBP, TIFF, BMP, GIF)

Author: ML Engineering Team
"""

from .image_payload import ImagePayload
from .image_processor import ImageProcessor

__all__ = ['ImagePayload', 'ImageProcessor']
