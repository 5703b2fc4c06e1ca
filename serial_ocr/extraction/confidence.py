"""
Confidence Aggregation Module.

Combines the provider's recognition confidence with the extractor's
match confidences:

    documentConfidence = w_r * overallConfidence + w_m * mean(matchConfidence)

With no fields present only the recognition term remains, so a document
the extractor could not read scores at most ``w_r * overallConfidence``.
The weights are tunable through the ``confidence`` config section.

Author: ML Engineering Team
"""

import math
from typing import Mapping, Optional

from config import get_config
from serial_ocr.ocr_engine.recognized_text import RecognizedText, mean_confidence
from serial_ocr.utils.exceptions import ConfigurationError
from serial_ocr.utils.logger import get_logger
from .extracted_document import ExtractedField
from .fields import FieldName

# Initialize module logger
logger = get_logger(__name__)


class ConfidenceAggregator:
    """
    Computes document-level and per-field confidence.

    Attributes:
        recognition_weight: Weight of the recognition confidence
        match_weight: Weight of the mean match confidence

    Example:
        >>> aggregator = ConfidenceAggregator(0.5, 0.5)
        >>> aggregator.aggregate(text, {})  # overall_confidence=0.8
        0.4
    """

    DEFAULT_RECOGNITION_WEIGHT = 0.5
    DEFAULT_MATCH_WEIGHT = 0.5

    def __init__(
        self,
        recognition_weight: Optional[float] = None,
        match_weight: Optional[float] = None
    ) -> None:
        if recognition_weight is None:
            recognition_weight = get_config("confidence.recognition_weight", self.DEFAULT_RECOGNITION_WEIGHT)
        if match_weight is None:
            match_weight = get_config("confidence.match_weight", self.DEFAULT_MATCH_WEIGHT)

        for option, weight in (("recognition_weight", recognition_weight), ("match_weight", match_weight)):
            if not isinstance(weight, (int, float)) or not 0.0 <= weight <= 1.0:
                raise ConfigurationError(f"confidence.{option}", weight, "must be a number within [0, 1]")
        if not math.isclose(recognition_weight + match_weight, 1.0):
            raise ConfigurationError(
                "confidence",
                {'recognition_weight': recognition_weight, 'match_weight': match_weight},
                "weights must sum to 1"
            )

        self.recognition_weight = float(recognition_weight)
        self.match_weight = float(match_weight)

    def aggregate(self, text: RecognizedText, fields: Mapping[FieldName, ExtractedField]) -> float:
        """
        Document confidence for an extraction.

        Args:
            text: Recognized text the fields were extracted from.
            fields: Present fields.

        Returns:
            Confidence in [0, 1].
        """
        score = self.recognition_weight * text.overall_confidence
        if fields:
            score += self.match_weight * mean_confidence([f.match_confidence for f in fields.values()])

        score = _clamp(score)
        logger.debug(f"Document confidence {score:.3f} from {len(fields)} field(s)")
        return score

    def field_confidence(self, text: RecognizedText, extracted: ExtractedField) -> float:
        """
        Confidence for a single field.

        The recognition term is the mean confidence of the tokens the raw
        value was read from; the document's overall confidence stands in
        when no token can be attributed to it.
        """
        tokens = text.tokens_in(extracted.raw_value)
        evidence = mean_confidence([t.confidence for t in tokens]) if tokens else text.overall_confidence
        return _clamp(self.recognition_weight * evidence + self.match_weight * extracted.match_confidence)

    def field_confidences(
        self,
        text: RecognizedText,
        fields: Mapping[FieldName, ExtractedField]
    ) -> dict:
        """Per-field confidence for every present field."""
        return {name: self.field_confidence(text, extracted) for name, extracted in fields.items()}


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
