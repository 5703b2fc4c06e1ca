"""
Image Payload Module.

The pipeline accepts a photographed or uploaded document either as raw
image bytes, as a bare base64 string, or as a ``data:`` URI as produced by
a browser ``FileReader``. ImagePayload normalizes all three into bytes plus
a MIME type, and validates that the bytes really are an image before any
recognition provider is contacted.

Author: ML Engineering Team
"""

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from serial_ocr.utils.exceptions import ImageDecodeError
from serial_ocr.utils.helpers import format_file_size
from serial_ocr.utils.logger import get_logger

logger = get_logger(__name__)

DATA_URI_PATTERN = re.compile(
    r'^data:(?P<mime>[\w.+\-]+/[\w.+\-]+)?(?P<params>(?:;[\w\-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$',
    re.DOTALL
)

# Pillow format name -> MIME type
FORMAT_MIME_TYPES = {
    'JPEG': 'image/jpeg',
    'PNG': 'image/png',
    'GIF': 'image/gif',
    'BMP': 'image/bmp',
    'TIFF': 'image/tiff',
    'WEBP': 'image/webp',
}


@dataclass(frozen=True)
class ImagePayload:
    """
    An image handed to the pipeline.

    Attributes:
        data: Raw image bytes.
        mime_type: MIME type, if known (e.g. "image/jpeg").

    Example:
        >>> payload = ImagePayload.coerce("data:image/png;base64,iVBORw0...")
        >>> payload = payload.validate()
        >>> payload.mime_type
        'image/png'
    """
    data: bytes
    mime_type: Optional[str] = None

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: Optional[str] = None) -> 'ImagePayload':
        """Wrap raw image bytes."""
        if not isinstance(data, (bytes, bytearray)):
            raise ImageDecodeError(f"expected bytes, got {type(data).__name__}", mime_type)
        return cls(data=bytes(data), mime_type=mime_type)

    @classmethod
    def from_base64(cls, encoded: str, mime_type: Optional[str] = None) -> 'ImagePayload':
        """
        Decode a bare base64 string.

        Raises:
            ImageDecodeError: If the string is not valid base64.
        """
        # Browsers and clipboard tools wrap long base64 lines
        compact = re.sub(r'\s+', '', encoded)
        try:
            data = base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"invalid base64 data ({e})", mime_type) from e
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_data_uri(cls, uri: str) -> 'ImagePayload':
        """
        Decode a ``data:<mime>;base64,<data>`` URI.

        Raises:
            ImageDecodeError: If the URI is malformed or not base64-encoded.
        """
        match = DATA_URI_PATTERN.match(uri.strip())
        if match is None:
            raise ImageDecodeError("malformed data URI")

        mime_type = match.group('mime')
        if not match.group('b64'):
            raise ImageDecodeError("data URI is not base64-encoded", mime_type)

        return cls.from_base64(match.group('data'), mime_type)

    @classmethod
    def coerce(
        cls,
        image: Union['ImagePayload', bytes, bytearray, str],
        mime_type: Optional[str] = None
    ) -> 'ImagePayload':
        """
        Build a payload from any supported input form.

        Args:
            image: ImagePayload, raw bytes, base64 string or data URI.
            mime_type: Optional MIME type for bytes/base64 input.

        Returns:
            ImagePayload (not yet validated).

        Raises:
            ImageDecodeError: If the input type is not supported or the
                text cannot be decoded.
        """
        if isinstance(image, ImagePayload):
            return image
        if isinstance(image, (bytes, bytearray)):
            return cls.from_bytes(image, mime_type)
        if isinstance(image, str):
            if image.lstrip().startswith('data:'):
                return cls.from_data_uri(image)
            return cls.from_base64(image, mime_type)
        raise ImageDecodeError(f"unsupported payload type {type(image).__name__}", mime_type)

    @property
    def size(self) -> int:
        """Payload size in bytes."""
        return len(self.data)

    def validate(self) -> 'ImagePayload':
        """
        Check that the bytes decode as an image.

        Returns:
            A payload whose ``mime_type`` is filled from the detected format
            when it was missing.

        Raises:
            ImageDecodeError: If the payload is empty, not an image,
                declares a non-image MIME type, or exceeds Pillow's pixel
                limit.
        """
        if not self.data:
            raise ImageDecodeError("empty payload", self.mime_type)

        if self.mime_type and not self.mime_type.lower().startswith('image/'):
            raise ImageDecodeError(f"not an image MIME type: {self.mime_type}", self.mime_type)

        try:
            with Image.open(io.BytesIO(self.data)) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise ImageDecodeError(f"not a decodable image ({e})", self.mime_type) from e

        detected = FORMAT_MIME_TYPES.get(image_format or '', None)
        logger.debug(
            f"Validated image payload: {format_file_size(self.size)}, "
            f"format={image_format}, declared={self.mime_type}"
        )

        if self.mime_type is None and detected is not None:
            return ImagePayload(data=self.data, mime_type=detected)
        return self

    def to_pil(self) -> Image.Image:
        """
        Open the payload as a fully loaded PIL image.

        Raises:
            ImageDecodeError: If the bytes cannot be decoded.
        """
        try:
            image = Image.open(io.BytesIO(self.data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageDecodeError(f"not a decodable image ({e})", self.mime_type) from e
        return image

    def to_base64(self) -> str:
        """Base64-encode the payload bytes (ASCII string)."""
        return base64.b64encode(self.data).decode('ascii')

    def __repr__(self) -> str:
        return f"ImagePayload(size={format_file_size(self.size)}, mime_type={self.mime_type!r})"
