"""
Image Processor Module.

This module prepares a decoded payload for the local recognition engine:
    - Orientation correction from EXIF (phone photos)
    - RGB conversion
    - Downscaling of oversized photos

The cloud provider receives the original bytes untouched.

Author: ML Engineering Team
"""

from typing import Optional

from PIL import Image, ImageOps

from config import get_config
from serial_ocr.utils.logger import get_logger
from .image_payload import ImagePayload

logger = get_logger(__name__)


class ImageProcessor:
    """
    Prepares images for local OCR.

    Attributes:
        max_width: Maximum image width in pixels
        max_height: Maximum image height in pixels
        auto_orient: Whether to auto-correct orientation

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.prepare(payload)
    """

    def __init__(
        self,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
        auto_orient: Optional[bool] = None
    ) -> None:
        """Initialize the image processor with configuration."""
        self.max_width = max_width or get_config("input.image.max_width", 2480)
        self.max_height = max_height or get_config("input.image.max_height", 3508)
        if auto_orient is None:
            auto_orient = get_config("input.image.auto_orient", True)
        self.auto_orient = auto_orient

        logger.debug(
            f"ImageProcessor initialized (max_size={self.max_width}x{self.max_height}, "
            f"auto_orient={self.auto_orient})"
        )

    def prepare(self, payload: ImagePayload) -> Image.Image:
        """
        Decode and normalize a payload for OCR.

        Processing steps:
            1. Fix orientation from EXIF
            2. Convert to RGB
            3. Resize if too large

        Args:
            payload: Validated image payload.

        Returns:
            RGB PIL Image.

        Raises:
            ImageDecodeError: If the payload cannot be decoded.
        """
        image = payload.to_pil()

        if self.auto_orient:
            image = ImageOps.exif_transpose(image)

        image = self._convert_to_rgb(image)
        return self._resize_if_needed(image)

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        """
        Convert image to RGB mode.

        Transparent images are flattened onto a white background so that
        transparent regions do not turn black.
        """
        if image.mode == 'RGB':
            return image

        original_mode = image.mode

        if image.mode in ('RGBA', 'LA', 'P'):
            image = image.convert('RGBA')
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        else:
            image = image.convert('RGB')

        logger.debug(f"Converted image from {original_mode} to RGB")
        return image

    def _resize_if_needed(self, image: Image.Image) -> Image.Image:
        """Resize image if it exceeds maximum dimensions, keeping aspect ratio."""
        width, height = image.size

        if width <= self.max_width and height <= self.max_height:
            return image

        ratio = min(self.max_width / width, self.max_height / height)
        new_width = max(1, int(width * ratio))
        new_height = max(1, int(height * ratio))

        image = image.resize((new_width, new_height), Image.LANCZOS)

        logger.debug(f"Resized image from {width}x{height} to {new_width}x{new_height}")
        return image
