"""
Field Extractor Module.

This module provides the FieldExtractor class that turns recognized
text into structured fields by applying the rule catalogue.

Approach:
    For each rule, matchers are tried in priority order against the
    full text (case-insensitive). The first matcher that produces a
    valid value wins; its label-anchored or fallback kind sets the
    match confidence. A field no matcher produces is left out of the
    result rather than set to an empty value.

Extraction is a pure function of the text and the catalogue: the same
text always yields the same fields.

Author: ML Engineering Team
"""

import time
import unicodedata
from itertools import islice
from typing import Dict, Optional, Sequence

from config import get_config
from serial_ocr.ocr_engine.recognized_text import RecognizedText
from serial_ocr.utils.exceptions import RuleDefinitionError
from serial_ocr.utils.logger import get_logger
from .extracted_document import ExtractedField
from .fields import FieldName
from .rules import FieldExtractionRule, build_rule_catalogue

# Initialize module logger
logger = get_logger(__name__)


class FieldExtractor:
    """
    Rule-based field extractor.

    Attributes:
        rules: Rule catalogue, one rule per field
        label_confidence: Match confidence of label-anchored matches
        fallback_confidence: Match confidence of bare fallback matches

    Example:
        >>> extractor = FieldExtractor()
        >>> fields = extractor.extract(RecognizedText("SN: XYZ987", overall_confidence=0.9))
        >>> fields[FieldName.SERIAL_NUMBER].value
        'XYZ987'
    """

    DEFAULT_LABEL_CONFIDENCE = 1.0
    DEFAULT_FALLBACK_CONFIDENCE = 0.5

    def __init__(
        self,
        rules: Optional[Sequence[FieldExtractionRule]] = None,
        label_confidence: Optional[float] = None,
        fallback_confidence: Optional[float] = None
    ) -> None:
        """
        Initialize the extractor.

        Args:
            rules: Rule catalogue. If None, the built-in catalogue plus the
                configured ``extraction.extra_patterns`` is used.
            label_confidence: If None, uses config.
            fallback_confidence: If None, uses config.

        Raises:
            RuleDefinitionError: If the catalogue is malformed.
        """
        if rules is None:
            rules = build_rule_catalogue(get_config("extraction.extra_patterns", {}))
        self.rules = tuple(rules)

        self.label_confidence = (
            label_confidence if label_confidence is not None
            else get_config("extraction.confidence.label", self.DEFAULT_LABEL_CONFIDENCE)
        )
        self.fallback_confidence = (
            fallback_confidence if fallback_confidence is not None
            else get_config("extraction.confidence.fallback", self.DEFAULT_FALLBACK_CONFIDENCE)
        )

        logger.debug(f"FieldExtractor initialized with {len(self.rules)} rules")

    def extract(self, text: RecognizedText) -> Dict[FieldName, ExtractedField]:
        """
        Extract fields from recognized text.

        Args:
            text: Recognition output.

        Returns:
            Present fields keyed by field name.

        Raises:
            RuleDefinitionError: A matcher's capture group did not
                participate in its match.
        """
        start_time = time.time()
        # OCR output may carry decomposed diacritics; patterns are written precomposed
        full_text = unicodedata.normalize('NFC', text.full_text)

        fields: Dict[FieldName, ExtractedField] = {}
        for rule in self.rules:
            extracted = self._apply_rule(rule, full_text)
            if extracted is not None:
                fields[rule.field] = extracted

        logger.info(
            f"Extraction complete: {len(fields)}/{len(self.rules)} fields, "
            f"time: {time.time() - start_time:.3f}s"
        )
        return fields

    def _apply_rule(self, rule: FieldExtractionRule, full_text: str) -> Optional[ExtractedField]:
        """
        Apply one rule's matchers in priority order.

        Returns:
            The first valid match, or None when no matcher produces one.
        """
        for index, (pattern, regex) in enumerate(rule.compiled_matchers()):
            match = next(islice(regex.finditer(full_text), pattern.occurrence, None), None)
            if match is None:
                continue

            raw_value = match.group(pattern.group)
            if raw_value is None:
                raise RuleDefinitionError(
                    str(rule.field),
                    f"matcher {index}: group {pattern.group} did not participate in the match"
                )

            try:
                value = rule.post_process(raw_value) if rule.post_process else raw_value
            except ValueError as e:
                logger.debug(f"{rule.field}: matcher {index} value {raw_value!r} rejected ({e})")
                continue
            if value is None or value == '':
                continue

            confidence = self.label_confidence if pattern.anchored else self.fallback_confidence
            logger.debug(
                f"Extracted {rule.field}: {value!r} "
                f"(matcher {index}, confidence: {confidence:.2f})"
            )
            return ExtractedField(
                field=rule.field,
                raw_value=raw_value,
                value=value,
                match_confidence=confidence,
                anchored=pattern.anchored,
                matcher_index=index
            )

        return None

    def get_rule_info(self) -> Dict[str, int]:
        """
        Get the number of matchers per field.

        Returns:
            Dictionary of field name to matcher count.
        """
        return {rule.field.value: len(rule.matchers) for rule in self.rules}
