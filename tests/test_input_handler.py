"""Tests for ImagePayload decoding and ImageProcessor preparation."""

import base64
import io

import pytest
from PIL import Image

from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.input_handler.image_processor import ImageProcessor
from serial_ocr.utils.exceptions import ImageDecodeError


class TestImagePayload:

    def test_bytes_validated_and_mime_detected(self, png_bytes):
        payload = ImagePayload.from_bytes(png_bytes).validate()

        assert payload.mime_type == "image/png"
        assert payload.size == len(png_bytes)

    def test_declared_mime_type_kept(self, png_bytes):
        assert ImagePayload.from_bytes(png_bytes, "image/x-png").validate().mime_type == "image/x-png"

    def test_data_uri(self, png_bytes):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode('ascii')
        payload = ImagePayload.coerce(uri)

        assert payload.data == png_bytes
        assert payload.mime_type == "image/png"

    def test_wrapped_base64(self, png_bytes):
        encoded = base64.b64encode(png_bytes).decode('ascii')
        wrapped = "\n".join(encoded[i:i + 20] for i in range(0, len(encoded), 20))

        assert ImagePayload.coerce(wrapped).data == png_bytes

    def test_payload_passes_through_coerce(self, payload):
        assert ImagePayload.coerce(payload) is payload

    def test_round_trip_to_base64(self, payload):
        assert base64.b64decode(payload.to_base64()) == payload.data

    @pytest.mark.parametrize("bad", [
        "data:image/png,notbase64",
        "data:;base64",
        "@@not base64@@",
    ])
    def test_undecodable_text_rejected(self, bad):
        with pytest.raises(ImageDecodeError):
            ImagePayload.coerce(bad)

    def test_unsupported_type_rejected(self):
        with pytest.raises(ImageDecodeError, match="unsupported payload type"):
            ImagePayload.coerce(12345)

    def test_empty_payload_rejected(self):
        with pytest.raises(ImageDecodeError, match="empty payload"):
            ImagePayload.from_bytes(b"").validate()

    def test_non_image_bytes_rejected(self):
        with pytest.raises(ImageDecodeError, match="not a decodable image"):
            ImagePayload.from_bytes(b"%PDF-1.7 ...").validate()

    def test_non_image_mime_type_rejected(self, png_bytes):
        with pytest.raises(ImageDecodeError, match="not an image MIME type"):
            ImagePayload.from_bytes(png_bytes, "text/plain").validate()

    def test_truncated_image_rejected(self, png_bytes):
        with pytest.raises(ImageDecodeError):
            ImagePayload.from_bytes(png_bytes[:20]).validate()

    def test_image_over_pixel_limit_rejected(self, monkeypatch, png_bytes):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        payload = ImagePayload.from_bytes(png_bytes)

        with pytest.raises(ImageDecodeError, match="not a decodable image"):
            payload.validate()
        with pytest.raises(ImageDecodeError, match="not a decodable image"):
            payload.to_pil()


class TestImageProcessor:

    def test_rgb_image_untouched(self, payload):
        image = ImageProcessor().prepare(payload)

        assert image.mode == "RGB"
        assert image.size == (8, 6)

    def test_transparency_flattened_on_white(self, png_factory):
        payload = ImagePayload.from_bytes(png_factory(4, 4, mode="RGBA", color=(0, 0, 0, 0)))

        image = ImageProcessor().prepare(payload)

        assert image.mode == "RGB"
        assert image.getpixel((0, 0)) == (255, 255, 255)

    def test_grayscale_converted(self, png_factory):
        image = ImageProcessor().prepare(ImagePayload.from_bytes(png_factory(4, 4, mode="L", color=128)))

        assert image.mode == "RGB"

    def test_large_image_downscaled(self, png_factory):
        payload = ImagePayload.from_bytes(png_factory(400, 100))

        image = ImageProcessor(max_width=200, max_height=200).prepare(payload)

        assert image.size == (200, 50)

    def test_exif_orientation_applied(self):
        source = Image.new("RGB", (30, 10), "white")
        exif = source.getexif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise
        buffer = io.BytesIO()
        source.save(buffer, format="JPEG", exif=exif)

        image = ImageProcessor().prepare(ImagePayload.from_bytes(buffer.getvalue()))

        assert image.size == (10, 30)
