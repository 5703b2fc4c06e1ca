"""Tests for ConfidenceAggregator and ExtractedDocument."""

import json

import pytest

from serial_ocr.extraction.confidence import ConfidenceAggregator
from serial_ocr.extraction.extracted_document import ExtractedDocument, ExtractedField
from serial_ocr.extraction.extractor import FieldExtractor
from serial_ocr.extraction.fields import FieldName
from serial_ocr.ocr_engine.recognized_text import BoundingBox, RecognizedText, RecognizedToken
from serial_ocr.utils.exceptions import ConfigurationError


def field(name, confidence, raw="x", value="x"):
    return ExtractedField(field=name, raw_value=raw, value=value, match_confidence=confidence)


class TestAggregate:

    def test_weighted_mean_of_recognition_and_matches(self):
        aggregator = ConfidenceAggregator()
        text = RecognizedText("irrelevant", overall_confidence=0.8)
        fields = {
            FieldName.SERIAL_NUMBER: field(FieldName.SERIAL_NUMBER, 1.0),
            FieldName.COST_PRICE: field(FieldName.COST_PRICE, 0.5),
        }

        assert aggregator.aggregate(text, fields) == pytest.approx(0.5 * 0.8 + 0.5 * 0.75)

    def test_no_fields_is_penalized(self):
        aggregator = ConfidenceAggregator()
        text = RecognizedText("Cảm ơn quý khách", overall_confidence=0.9)

        score = aggregator.aggregate(text, {})

        assert score == pytest.approx(0.45)
        assert score <= 0.5 * text.overall_confidence

    @pytest.mark.parametrize("overall", [0.0, 0.37, 1.0])
    @pytest.mark.parametrize("matches", [[], [0.5], [1.0, 1.0], [0.5, 1.0, 0.5]])
    def test_always_within_unit_interval(self, overall, matches):
        aggregator = ConfidenceAggregator()
        text = RecognizedText("x", overall_confidence=overall)
        names = list(FieldName)
        fields = {names[i]: field(names[i], c) for i, c in enumerate(matches)}

        assert 0.0 <= aggregator.aggregate(text, fields) <= 1.0

    def test_one_field_document(self):
        fields = FieldExtractor().extract(RecognizedText("SN: XYZ987", overall_confidence=0.6))
        score = ConfidenceAggregator().aggregate(RecognizedText("SN: XYZ987", overall_confidence=0.6), fields)

        assert score == pytest.approx(0.5 * 0.6 + 0.5 * 1.0)

    def test_custom_weights(self):
        aggregator = ConfidenceAggregator(recognition_weight=0.3, match_weight=0.7)
        text = RecognizedText("x", overall_confidence=1.0)
        fields = {FieldName.SERIAL_NUMBER: field(FieldName.SERIAL_NUMBER, 0.5)}

        assert aggregator.aggregate(text, fields) == pytest.approx(0.3 + 0.35)

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError, match="sum to 1"):
            ConfidenceAggregator(recognition_weight=0.5, match_weight=0.6)

    def test_weight_out_of_range(self):
        with pytest.raises(ConfigurationError):
            ConfidenceAggregator(recognition_weight=-0.5, match_weight=1.5)


class TestFieldConfidence:

    def test_uses_tokens_of_the_value(self):
        tokens = [
            RecognizedToken("Serial:", 0.99, BoundingBox(0, 0, 50, 10)),
            RecognizedToken("ABC-123", 0.40, BoundingBox(60, 0, 50, 10)),
        ]
        text = RecognizedText("Serial: ABC-123", tokens=tokens, overall_confidence=0.9)
        extracted = field(FieldName.SERIAL_NUMBER, 1.0, raw="ABC-123", value="ABC-123")

        assert ConfidenceAggregator().field_confidence(text, extracted) == pytest.approx(0.5 * 0.4 + 0.5)

    def test_falls_back_to_overall_confidence(self):
        text = RecognizedText("Serial: ABC-123", overall_confidence=0.9)
        extracted = field(FieldName.SERIAL_NUMBER, 0.5, raw="ABC-123")

        assert ConfidenceAggregator().field_confidence(text, extracted) == pytest.approx(0.45 + 0.25)


class TestExtractedDocument:

    @pytest.fixture
    def document(self):
        fields = {
            FieldName.SERIAL_NUMBER: field(FieldName.SERIAL_NUMBER, 1.0, raw="ABC-123", value="ABC-123"),
            FieldName.COST_PRICE: field(FieldName.COST_PRICE, 0.5, raw="1.500.000", value=1500000.0),
        }
        return ExtractedDocument(
            fields=fields,
            document_confidence=0.8,
            field_confidences={FieldName.SERIAL_NUMBER: 0.95, FieldName.COST_PRICE: 0.55},
            provider="cloud"
        )

    def test_lookup(self, document):
        assert FieldName.SERIAL_NUMBER in document
        assert FieldName.SALE_PRICE not in document
        assert document.value(FieldName.COST_PRICE) == 1500000.0
        assert document.value(FieldName.SALE_PRICE) is None
        assert document.get(FieldName.SALE_PRICE) is None
        assert len(document) == 2

    def test_values_contain_present_fields_only(self, document):
        assert document.values() == {'serialNumber': 'ABC-123', 'costPrice': 1500000.0}

    def test_missing_fields(self, document):
        assert FieldName.SALE_PRICE in document.missing_fields
        assert len(document.missing_fields) == len(FieldName) - 2

    def test_low_confidence_fields(self, document):
        assert document.low_confidence_fields(0.6) == [FieldName.COST_PRICE]
        assert document.low_confidence_fields(0.5) == []

    def test_fields_are_read_only(self, document):
        with pytest.raises(TypeError):
            document.fields[FieldName.SALE_PRICE] = field(FieldName.SALE_PRICE, 0.5)

    def test_confidence_bounds_checked(self):
        with pytest.raises(ValueError):
            ExtractedDocument(fields={}, document_confidence=1.2)

    def test_to_json(self, document):
        data = json.loads(document.to_json())

        assert data['fields']['serialNumber']['value'] == "ABC-123"
        assert data['fields']['serialNumber']['matchConfidence'] == 1.0
        assert 'salePrice' not in data['fields']
        assert 'salePrice' in data['missingFields']
        assert data['documentConfidence'] == 0.8
        assert data['provider'] == "cloud"
