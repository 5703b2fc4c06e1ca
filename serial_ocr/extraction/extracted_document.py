"""
Extracted Document Data Classes.

This module defines the pipeline's output: one ExtractedField per field
that a rule matched, and the ExtractedDocument that maps field names to
them. A field no rule matched is absent from the mapping, never present
with an empty or null value, so "not found" and "found but empty" stay
distinguishable for the form that consumes the document.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from .fields import FieldName

FieldValue = Union[str, int, float]


@dataclass(frozen=True)
class ExtractedField:
    """
    Outcome of applying one rule.

    Attributes:
        field: Field name
        raw_value: Matched substring before post-processing
        value: Post-processed value
        match_confidence: 1.0 for label-anchored matches, lower for
            bare fallback matches
        anchored: Whether the winning matcher was label-anchored
        matcher_index: Position of the winning matcher within its rule
    """
    field: FieldName
    raw_value: str
    value: FieldValue
    match_confidence: float
    anchored: bool = True
    matcher_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field.value,
            'rawValue': self.raw_value,
            'value': self.value,
            'matchConfidence': self.match_confidence,
            'anchored': self.anchored,
            'matcherIndex': self.matcher_index
        }


@dataclass(frozen=True)
class ExtractedDocument:
    """
    Structured result of one pipeline call.

    Attributes:
        fields: Present fields, keyed by FieldName (read-only mapping)
        document_confidence: Overall trust in the extraction (0-1)
        field_confidences: Combined recognition + match confidence per field
        recognition_confidence: Provider-level confidence of the text
        provider: Name of the provider that recognized the text
        processing_time: Wall time of the pipeline call in seconds
        extraction_timestamp: When extraction was performed

    Example:
        >>> document.value(FieldName.SERIAL_NUMBER)
        'ABC-123'
        >>> FieldName.SALE_PRICE in document
        False
    """
    fields: Mapping[FieldName, ExtractedField]
    document_confidence: float
    field_confidences: Mapping[FieldName, float] = field(default_factory=dict)
    recognition_confidence: float = 0.0
    provider: Optional[str] = None
    processing_time: float = 0.0
    extraction_timestamp: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.document_confidence <= 1.0:
            raise ValueError(f"document confidence must be within [0, 1], got {self.document_confidence}")
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))
        object.__setattr__(self, 'field_confidences', MappingProxyType(dict(self.field_confidences)))
        if self.extraction_timestamp is None:
            object.__setattr__(self, 'extraction_timestamp', datetime.now().isoformat())

    def __contains__(self, field_name: FieldName) -> bool:
        return field_name in self.fields

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, field_name: FieldName) -> Optional[ExtractedField]:
        """Get the extracted field, or None when it is absent."""
        return self.fields.get(field_name)

    def value(self, field_name: FieldName) -> Optional[FieldValue]:
        """Get a field's value, or None when it is absent."""
        extracted = self.fields.get(field_name)
        return extracted.value if extracted is not None else None

    @property
    def present_fields(self) -> List[FieldName]:
        """Fields found, in FieldName order."""
        return [name for name in FieldName if name in self.fields]

    @property
    def missing_fields(self) -> List[FieldName]:
        """Fields no rule matched, in FieldName order."""
        return [name for name in FieldName if name not in self.fields]

    @property
    def extraction_rate(self) -> float:
        """Percentage of known fields that were extracted (0-100)."""
        return len(self.fields) / len(FieldName) * 100

    def low_confidence_fields(self, threshold: float) -> List[FieldName]:
        """
        Fields whose combined confidence is below ``threshold``.

        The data-entry form highlights these for the operator to check.
        """
        return [
            name for name in self.present_fields
            if self.field_confidences.get(name, self.fields[name].match_confidence) < threshold
        ]

    def values(self) -> Dict[str, FieldValue]:
        """
        Present field values keyed by form field name.

        Example:
            >>> document.values()
            {'serialNumber': 'ABC-123', 'costPrice': 1500000.0}
        """
        return {name.value: self.fields[name].value for name in self.present_fields}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for logging and transport."""
        return {
            'fields': {name.value: self.fields[name].to_dict() for name in self.present_fields},
            'fieldConfidences': {name.value: conf for name, conf in self.field_confidences.items()},
            'documentConfidence': self.document_confidence,
            'recognitionConfidence': self.recognition_confidence,
            'provider': self.provider,
            'processingTime': self.processing_time,
            'extractionTimestamp': self.extraction_timestamp,
            'extractionRate': self.extraction_rate,
            'missingFields': [name.value for name in self.missing_fields]
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"ExtractedDocument(fields={len(self.fields)}/{len(FieldName)}, "
            f"confidence={self.document_confidence:.2f}, provider={self.provider})"
        )
