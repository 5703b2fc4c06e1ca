"""
Field Extraction Module for the Serial OCR Pipeline.

This module turns recognized text into structured business fields
using a declarative, ordered rule catalogue.

Author: ML Engineering Team
"""

from .fields import FieldName
from .rules import DEFAULT_RULES, FieldExtractionRule, Pattern, bare, build_rule_catalogue, label
from .extracted_document import ExtractedDocument, ExtractedField
from .extractor import FieldExtractor
from .confidence import ConfidenceAggregator

__all__ = [
    'FieldName',
    'Pattern',
    'FieldExtractionRule',
    'DEFAULT_RULES',
    'build_rule_catalogue',
    'label',
    'bare',
    'ExtractedField',
    'ExtractedDocument',
    'FieldExtractor',
    'ConfidenceAggregator'
]
