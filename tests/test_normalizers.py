"""Tests for value post-processing."""

import pytest

from serial_ocr.postprocessor.normalizers import (
    AmountNormalizer,
    PhoneNormalizer,
    clean_text,
    parse_months,
    strip_value
)


class TestAmountNormalizer:

    @pytest.mark.parametrize("raw, expected", [
        ("1.500.000đ", 1500000.0),
        ("1,500,000", 1500000.0),
        ("2.350.000 VNĐ", 2350000.0),
        ("2,350,000 vnd", 2350000.0),
        ("350000₫", 350000.0),
        ("$ 1,200", 1200.0),
    ])
    def test_grouping_and_currency_removed(self, raw, expected):
        assert AmountNormalizer().normalize(raw) == expected

    @pytest.mark.parametrize("raw", ["", "liên hệ", "12a", "đ"])
    def test_non_numbers_rejected(self, raw):
        with pytest.raises(ValueError):
            AmountNormalizer().normalize(raw)


class TestPhoneNormalizer:

    @pytest.mark.parametrize("raw, expected", [
        ("0901.234.567", "0901234567"),
        ("0901 234 567", "0901234567"),
        ("+84 912 345 678", "+84912345678"),
        ("028-3822-1234", "02838221234"),
    ])
    def test_digits_kept(self, raw, expected):
        assert PhoneNormalizer().normalize(raw) == expected

    @pytest.mark.parametrize("raw", ["12345", "0901 234 567 890 12"])
    def test_wrong_length_rejected(self, raw):
        with pytest.raises(ValueError):
            PhoneNormalizer().normalize(raw)


def test_parse_months():
    assert parse_months(" 24 ") == 24
    with pytest.raises(ValueError):
        parse_months("0")
    with pytest.raises(ValueError):
        parse_months("mười hai")


def test_clean_text():
    assert clean_text("  Công ty  TNHH\tABC -  ") == "Công ty TNHH ABC"
    assert clean_text(": -") == ""
    assert clean_text(None) == ""


def test_strip_value():
    assert strip_value("  ABC-123 ") == "ABC-123"
