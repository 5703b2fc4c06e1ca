"""
Field Extraction Rules.

The rule catalogue is data: one FieldExtractionRule per field, each an
ordered list of Pattern matchers. Order within a rule is priority order;
label-anchored patterns ("Serial:", "Số hóa đơn:") come before bare
fallback patterns that match a value by its shape alone.

Positional fields share one pattern and differ by ``occurrence``: the
first price-like number in the document is the cost price, the second is
the sale price; dates work the same way for purchase and sale dates.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from serial_ocr.postprocessor.normalizers import (
    AmountNormalizer,
    PhoneNormalizer,
    clean_text,
    parse_months,
    strip_value
)
from serial_ocr.utils.exceptions import RuleDefinitionError
from .fields import FieldName

PATTERN_FLAGS = re.IGNORECASE | re.MULTILINE

# Label must not run on into a longer word ("sn" in "snack")
LABEL_END = r'(?![^\W\d_])'
# Separators stay on the label's line
SEPARATOR = r'[ \t]*[:#\-.]?[ \t]*'
REQUIRED_SEPARATOR = r'[ \t]*[:\-][ \t]*'

CODE_WITH_DIGIT = r'((?=[A-Z0-9\-/]*\d)[A-Z0-9][A-Z0-9\-/]*)'
REST_OF_LINE = r'([^\n]+)'
LETTER_WORDS = r'([^\W\d_]+(?:[ \t]+[^\W\d_]+)*)'
DATE_TOKEN = r'(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})(?![\d/\-])'

PRICE_LIKE = (
    r'(?<![\w.,/\-])'
    r'(\d{1,3}(?:[.,]\d{3})+|\d+(?=\s*(?:₫|vnđ|vnd|đồng|đ)(?![^\W\d_])))'
    r'(?!\d)'
)


@dataclass(frozen=True)
class Pattern:
    """
    One matcher of a rule.

    Attributes:
        regex: Regular expression, compiled case-insensitive and multiline
        anchored: True for label-anchored patterns, False for bare fallbacks
        group: Capture group holding the value
        occurrence: Which match in document order to use (0 = first)
    """
    regex: str
    anchored: bool = True
    group: int = 1
    occurrence: int = 0


def label(label_regex: str, value_regex: str, separator: str = SEPARATOR) -> Pattern:
    """Build a label-anchored pattern: label, separator, value."""
    return Pattern(rf'(?<!\w)(?:{label_regex}){LABEL_END}{separator}{value_regex}', anchored=True)


def bare(value_regex: str, occurrence: int = 0) -> Pattern:
    """Build a bare fallback pattern matching a value by shape."""
    return Pattern(value_regex, anchored=False, occurrence=occurrence)


@dataclass(frozen=True)
class FieldExtractionRule:
    """
    Extraction strategy for one field.

    Patterns are compiled and checked when the rule is created, so a
    malformed catalogue fails at construction rather than mid-document.

    Attributes:
        field: Target field
        matchers: Patterns in priority order
        post_process: Transform from matched text to value; raising
            ValueError marks the match as invalid

    Raises:
        RuleDefinitionError: Empty matcher list, uncompilable regex,
            missing capture group or negative occurrence.
    """
    field: FieldName
    matchers: Tuple[Pattern, ...]
    post_process: Optional[Callable[[str], Any]] = None
    compiled: Tuple['re.Pattern[str]', ...] = dataclass_field(init=False, repr=False, compare=False)

    def __post_init__(self):
        matchers = tuple(self.matchers)
        object.__setattr__(self, 'matchers', matchers)

        if not matchers:
            raise RuleDefinitionError(str(self.field), "rule has no matchers")

        compiled = []
        for index, pattern in enumerate(matchers):
            try:
                regex = re.compile(pattern.regex, PATTERN_FLAGS)
            except re.error as e:
                raise RuleDefinitionError(str(self.field), f"matcher {index}: invalid regex ({e})") from e

            if not 0 <= pattern.group <= regex.groups:
                raise RuleDefinitionError(
                    str(self.field),
                    f"matcher {index}: group {pattern.group} out of range ({regex.groups} groups)"
                )
            if pattern.occurrence < 0:
                raise RuleDefinitionError(str(self.field), f"matcher {index}: negative occurrence")

            compiled.append(regex)

        object.__setattr__(self, 'compiled', tuple(compiled))

    def compiled_matchers(self) -> Iterator[Tuple[Pattern, 're.Pattern[str]']]:
        """Pairs of (pattern, compiled regex) in priority order."""
        return zip(self.matchers, self.compiled)

    def with_leading(self, patterns: Sequence[Pattern]) -> 'FieldExtractionRule':
        """Copy of this rule with extra patterns placed before the built-in ones."""
        return FieldExtractionRule(
            field=self.field,
            matchers=tuple(patterns) + self.matchers,
            post_process=self.post_process
        )


_amount = AmountNormalizer().normalize
_phone = PhoneNormalizer().normalize


DEFAULT_RULES: Tuple[FieldExtractionRule, ...] = (
    FieldExtractionRule(
        FieldName.SERIAL_NUMBER,
        (
            label(r's[ốo]\s*seri(?:al)?|serial(?:\s*(?:number|no\.?|#))?|s/n|sn|imei',
                  r'((?=[A-Z0-9\-/]*\d)[A-Z0-9][A-Z0-9\-/]{2,})'),
            # Invoice codes (HD-..., INV-...) belong to invoiceNumber
            bare(r'(?<![\w\-/])(?!(?:HĐ|HD|INV)[\-/]?\d)'
                 r'((?=[A-Z0-9\-]*\d)(?=[A-Z0-9\-]*[A-Z])[A-Z0-9][A-Z0-9\-]{5,})(?![\w\-/])'),
        ),
        strip_value
    ),
    FieldExtractionRule(
        FieldName.PRODUCT_NAME,
        (
            label(r't[êe]n\s*(?:s[ảa]n\s*ph[ẩa]m|h[àa]ng(?:\s*h(?:óa|oá|oa))?)|s[ảa]n\s*ph[ẩa]m'
                  r'|product(?:\s*name)?|model|item',
                  REST_OF_LINE, REQUIRED_SEPARATOR),
        ),
        clean_text
    ),
    FieldExtractionRule(
        FieldName.INVOICE_NUMBER,
        (
            label(r's[ốo]\s*h(?:óa|oá|oa)\s*đ[ơo]n|h(?:óa|oá|oa)\s*đ[ơo]n\s*s[ốo]|s[ốo]\s*hđ'
                  r'|invoice(?:\s*(?:no\.?|number|#))?|inv\.?\s*(?:no\.?|#)',
                  CODE_WITH_DIGIT),
            bare(r'(?<![\w\-/])((?:HĐ|HD|INV)[\-/]?\d{3,})(?![\w\-/])'),
        ),
        strip_value
    ),
    FieldExtractionRule(
        FieldName.SUPPLIER_NAME,
        (
            label(r'nh[àa]\s*cung\s*c[ấa]p|ncc|supplier|vendor'
                  r'|đ[ơo]n\s*v[ịi]\s*b[áa]n(?:\s*h[àa]ng)?|ng[ưu][ờo]i\s*b[áa]n(?:\s*h[àa]ng)?|seller',
                  REST_OF_LINE, REQUIRED_SEPARATOR),
            bare(r'^[ \t]*((?:c[ôo]ng\s*ty|cty|company)(?![^\W\d_])[^\n]*)'),
        ),
        clean_text
    ),
    FieldExtractionRule(FieldName.COST_PRICE, (bare(PRICE_LIKE, occurrence=0),), _amount),
    FieldExtractionRule(FieldName.SALE_PRICE, (bare(PRICE_LIKE, occurrence=1),), _amount),
    FieldExtractionRule(
        FieldName.CUSTOMER_NAME,
        (
            label(r't[êe]n\s*kh[áa]ch\s*h[àa]ng|kh[áa]ch\s*h[àa]ng|ng[ưu][ờo]i\s*mua(?:\s*h[àa]ng)?'
                  r'|customer(?:\s*name)?|buyer',
                  LETTER_WORDS, REQUIRED_SEPARATOR),
        ),
        clean_text
    ),
    FieldExtractionRule(
        FieldName.CUSTOMER_PHONE,
        (
            label(r's[ốo]\s*đi[ệe]n\s*tho[ạa]i|đi[ệe]n\s*tho[ạa]i|sđt|đt|tel|phone|mobile',
                  r'(\+?\d[\d \t.\-]{7,16}\d)'),
            bare(r'(?<![\w.,+/\-])((?:\+84|0)\d{2,3}[ .\-]?\d{3}[ .\-]?\d{3,4})(?!\d)(?![.,]\d)'),
        ),
        _phone
    ),
    FieldExtractionRule(
        FieldName.WARRANTY_START_DATE,
        (
            label(r'b[ảa]o\s*h[àa]nh\s*t[ừu](?:\s*ng[àa]y)?|ng[àa]y\s*b[ắa]t\s*đ[ầa]u(?:\s*b[ảa]o\s*h[àa]nh)?'
                  r'|warranty\s*(?:start(?:\s*date)?|from)|t[ừu]\s*ng[àa]y',
                  DATE_TOKEN),
        ),
        strip_value
    ),
    FieldExtractionRule(
        FieldName.WARRANTY_END_DATE,
        (
            label(r'đ[ếe]n\s*ng[àa]y|đ[ếe]n|ng[àa]y\s*h[ếe]t\s*h[ạa]n(?:\s*b[ảa]o\s*h[àa]nh)?'
                  r'|h[ếe]t\s*h[ạa]n(?:\s*b[ảa]o\s*h[àa]nh)?'
                  r'|warranty\s*(?:end(?:\s*date)?|until|expir(?:y|es|ation)(?:\s*date)?)'
                  r'|valid\s*until|expir(?:y|es|ation)(?:\s*date)?',
                  DATE_TOKEN),
        ),
        strip_value
    ),
    FieldExtractionRule(
        FieldName.WARRANTY_MONTHS,
        (
            label(r'b[ảa]o\s*h[àa]nh|warranty|bh',
                  r'(\d{1,3})\s*(?:th[áa]ng|months?)(?![^\W\d_])'),
            bare(r'(?<![\w.,])(\d{1,3})\s*(?:th[áa]ng|months?)(?![^\W\d_])'),
        ),
        parse_months
    ),
    FieldExtractionRule(
        FieldName.PURCHASE_DATE,
        (bare(r'(?<![\d/\-])' + DATE_TOKEN, occurrence=0),),
        strip_value
    ),
    FieldExtractionRule(
        FieldName.SALE_DATE,
        (bare(r'(?<![\d/\-])' + DATE_TOKEN, occurrence=1),),
        strip_value
    ),
)


def build_rule_catalogue(
    extra_patterns: Optional[Dict[str, Iterable[str]]] = None,
    rules: Sequence[FieldExtractionRule] = DEFAULT_RULES
) -> Tuple[FieldExtractionRule, ...]:
    """
    Build the rule catalogue, adding configured label-anchored patterns.

    Args:
        extra_patterns: Mapping of field name (e.g. "serialNumber") to
            regexes capturing the value in group 1.
        rules: Base catalogue.

    Returns:
        Catalogue with the extra patterns ahead of each field's built-in ones.

    Raises:
        RuleDefinitionError: Unknown field name or malformed pattern.
    """
    extras: Dict[FieldName, List[Pattern]] = {}
    for name, regexes in (extra_patterns or {}).items():
        try:
            field_name = FieldName(name)
        except ValueError as e:
            raise RuleDefinitionError(str(name), "unknown field in extra patterns") from e
        if isinstance(regexes, str):
            regexes = [regexes]
        extras[field_name] = [Pattern(str(regex), anchored=True) for regex in regexes]

    catalogue = []
    for rule in rules:
        leading = extras.get(rule.field)
        catalogue.append(rule.with_leading(leading) if leading else rule)

    fields = [rule.field for rule in catalogue]
    if len(set(fields)) != len(fields):
        raise RuleDefinitionError(
            ', '.join(sorted({str(f) for f in fields if fields.count(f) > 1})),
            "field defined by more than one rule"
        )
    return tuple(catalogue)
