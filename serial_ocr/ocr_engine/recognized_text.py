"""
Recognized Text Data Classes.

This module defines the immutable output of a recognition provider.

Classes:
    BoundingBox: Axis-aligned token box in pixels (origin top-left)
    RecognizedToken: One recognized word/annotation
    RecognizedText: Complete recognition output for an image

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned bounding box in pixel units.

    Attributes:
        x: Left coordinate
        y: Top coordinate
        width: Box width
        height: Box height
    """
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_corners(cls, x1: int, y1: int, x2: int, y2: int) -> 'BoundingBox':
        """Build from top-left and bottom-right corners."""
        return cls(x=x1, y=y1, width=max(0, x2 - x1), height=max(0, y2 - y1))

    @classmethod
    def from_points(cls, points: Iterable[Tuple[int, int]]) -> 'BoundingBox':
        """
        Build the enclosing box of a polygon.

        Provider polygons are usually four vertices, possibly rotated.
        """
        points = list(points)
        if not points:
            return cls(0, 0, 0, 0)
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return cls.from_corners(min(xs), min(ys), max(xs), max(ys))

    @property
    def x2(self) -> int:
        """Right coordinate."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Bottom coordinate."""
        return self.y + self.height

    def to_dict(self) -> Dict[str, int]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class RecognizedToken:
    """
    A single recognized word or text annotation.

    Attributes:
        text: The recognized text content
        confidence: Recognition confidence (0-1)
        bounding_box: Position of the token in the image
    """
    text: str
    confidence: float
    bounding_box: BoundingBox

    def __post_init__(self):
        _check_unit_interval("token confidence", self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'confidence': self.confidence,
            'boundingBox': self.bounding_box.to_dict()
        }

    def __repr__(self) -> str:
        return f"RecognizedToken('{self.text}', conf={self.confidence:.2f})"


@dataclass(frozen=True)
class RecognizedText:
    """
    Complete recognition output for one image.

    Created once per recognition call and never modified afterwards.

    Attributes:
        full_text: Concatenated text, newline-preserving where the
            provider supports it
        tokens: Recognized tokens with position and confidence
        overall_confidence: Aggregate confidence for the document (0-1)
        provider: Name of the provider that produced the text
        language: Language hint used for recognition
        processing_time: Time taken for recognition in seconds
        image_width: Width of the recognized image in pixels
        image_height: Height of the recognized image in pixels

    Example:
        >>> text = RecognizedText(full_text="SN: XYZ987", overall_confidence=0.9)
        >>> text.is_empty()
        False
    """
    full_text: str
    tokens: Tuple[RecognizedToken, ...] = ()
    overall_confidence: float = 0.0
    provider: str = "unknown"
    language: str = ""
    processing_time: float = 0.0
    image_width: int = 0
    image_height: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        _check_unit_interval("overall confidence", self.overall_confidence)
        # Accept any sequence but store a tuple so the value stays immutable
        if not isinstance(self.tokens, tuple):
            object.__setattr__(self, 'tokens', tuple(self.tokens))

    @property
    def token_count(self) -> int:
        """Get total number of tokens."""
        return len(self.tokens)

    def is_empty(self) -> bool:
        """Check whether no text was recognized."""
        return not self.full_text.strip()

    def tokens_in(self, value: str) -> List[RecognizedToken]:
        """
        Get the tokens that make up a substring of the text.

        A token belongs to ``value`` when its (stripped) text occurs in it,
        compared case-insensitively.

        Args:
            value: Substring of ``full_text`` (e.g. a matched field value).

        Returns:
            Matching tokens in recognition order.
        """
        needle = value.casefold()
        return [
            t for t in self.tokens
            if t.text.strip() and t.text.strip().casefold() in needle
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for serialization."""
        return {
            'fullText': self.full_text,
            'overallConfidence': self.overall_confidence,
            'provider': self.provider,
            'language': self.language,
            'processingTime': self.processing_time,
            'imageWidth': self.image_width,
            'imageHeight': self.image_height,
            'tokens': [t.to_dict() for t in self.tokens]
        }

    def __repr__(self) -> str:
        return (
            f"RecognizedText(provider={self.provider}, tokens={self.token_count}, "
            f"confidence={self.overall_confidence:.2f})"
        )


def mean_confidence(values: Sequence[float]) -> float:
    """Mean of confidence values, 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)
