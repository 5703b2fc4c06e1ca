"""
Post-Processing Module for the Serial OCR Pipeline.

This module provides the value transforms applied to matched field text:
    - Amount/currency normalization
    - Phone number normalization
    - Warranty month parsing
    - Text cleaning

Author: ML Engineering Team
"""

from .normalizers import AmountNormalizer, PhoneNormalizer, clean_text, parse_months, strip_value

__all__ = [
    'AmountNormalizer',
    'PhoneNormalizer',
    'clean_text',
    'parse_months',
    'strip_value'
]
