"""
Data Normalizers Module.

Post-processing transforms applied to matched field text:
    - Currency/amount values (Vietnamese and English grouping)
    - Phone numbers
    - Warranty month counts
    - Free-text cleanup (names, product and supplier lines)

Each transform raises ValueError when the matched text is not a valid
value; the extractor then treats the matcher as not matching.

Author: ML Engineering Team
"""

import re
from typing import Optional

from serial_ocr.utils.logger import get_logger

logger = get_logger(__name__)


class AmountNormalizer:
    """
    Normalizes currency/amount strings to a float.

    Invoices mix Vietnamese ("1.500.000đ") and English ("1,500,000 VND")
    grouping, and prices are whole đồng, so both ``,`` and ``.`` are
    treated as thousands separators.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.normalize("1.500.000đ")
        1500000.0
        >>> normalizer.normalize("2,350,000 VND")
        2350000.0
    """

    CURRENCY_SYMBOLS = ['₫', 'đ', 'Đ', '$']
    CURRENCY_CODES = ['VNĐ', 'VND', 'USD']

    def normalize(self, amount_str: str) -> float:
        """
        Parse an amount string.

        Args:
            amount_str: Matched amount text.

        Returns:
            Amount as float.

        Raises:
            ValueError: If no number remains after cleanup.
        """
        cleaned = self._clean_amount_string(amount_str or '')
        if not cleaned:
            raise ValueError(f"not an amount: {amount_str!r}")

        value = float(cleaned)
        logger.debug(f"Normalized amount {amount_str!r} -> {value}")
        return value

    def _clean_amount_string(self, amount_str: str) -> str:
        """Strip currency markers and group separators, keep digits."""
        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'{code}', '', amount_str, flags=re.IGNORECASE)
        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        amount_str = re.sub(r'[\s,.]', '', amount_str)
        return amount_str if amount_str.isdigit() else ''


class PhoneNormalizer:
    """
    Normalizes phone numbers to digits, keeping a leading ``+``.

    Example:
        >>> PhoneNormalizer().normalize("0901.234.567")
        '0901234567'
        >>> PhoneNormalizer().normalize("+84 901 234 567")
        '+84901234567'
    """

    MIN_DIGITS = 9
    MAX_DIGITS = 12

    def normalize(self, phone_str: str) -> str:
        phone_str = (phone_str or '').strip()
        digits = re.sub(r'\D', '', phone_str)

        if not self.MIN_DIGITS <= len(digits) <= self.MAX_DIGITS:
            raise ValueError(f"not a phone number: {phone_str!r}")

        return f"+{digits}" if phone_str.startswith('+') else digits


def parse_months(value: str) -> int:
    """
    Parse a warranty month count.

    Raises:
        ValueError: If the count is not a positive integer.
    """
    months = int(value.strip())
    if months <= 0:
        raise ValueError(f"warranty months must be positive: {value!r}")
    return months


def clean_text(value: Optional[str]) -> str:
    """
    Collapse whitespace and trim separator punctuation at both ends.

    Example:
        >>> clean_text("  Công ty  TNHH ABC -  ")
        'Công ty TNHH ABC'
    """
    value = ' '.join((value or '').split())
    return value.strip(' :-–,.;|')


def strip_value(value: Optional[str]) -> str:
    """Trim whitespace only (identifiers and date tokens)."""
    return (value or '').strip()
