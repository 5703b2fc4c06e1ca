"""Shared fixtures for the serial OCR test suite."""

import io
import threading
import time
from types import SimpleNamespace

import pytest
from PIL import Image

from config import ConfigurationManager
from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.ocr_engine.base import RecognitionProvider
from serial_ocr.ocr_engine.recognized_text import BoundingBox, RecognizedText, RecognizedToken


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the packaged settings.yaml."""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


def make_png(width=8, height=6, mode="RGB", color="white"):
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def payload(png_bytes):
    return ImagePayload.from_bytes(png_bytes).validate()


def make_text(full_text, confidence=0.9, tokens=None, provider="fake"):
    """RecognizedText with one token per whitespace-separated word."""
    if tokens is None:
        tokens = [
            RecognizedToken(word, confidence, BoundingBox(i * 10, 0, 8, 8))
            for i, word in enumerate(full_text.split())
        ]
    return RecognizedText(full_text=full_text, tokens=tokens, overall_confidence=confidence, provider=provider)


@pytest.fixture
def text_factory():
    return make_text


class FakeProvider(RecognitionProvider):
    """
    Scripted provider.

    ``result`` is a RecognizedText to return or an exception to raise;
    ``delay`` blocks the worker thread before answering.
    """

    def __init__(self, name, result=None, configured=True, delay=None):
        self.name = name
        self.result = result
        self.configured = configured
        self.delay = delay
        self.calls = 0
        self.timeouts = []
        self._lock = threading.Lock()
        self.closed = False

    def is_configured(self):
        return self.configured

    def recognize(self, image, timeout=None):
        with self._lock:
            self.calls += 1
            self.timeouts.append(timeout)
        if self.delay is not None:
            time.sleep(self.delay)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result

    def close(self):
        self.closed = True


@pytest.fixture
def provider_factory():
    return FakeProvider


class FakeTesseract:
    """Stands in for the pytesseract module."""

    Output = SimpleNamespace(DICT="dict")

    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.calls = []

    def get_tesseract_version(self):
        return "5.3.0"

    def image_to_data(self, image, lang=None, config=None, timeout=0, output_type=None):
        self.calls.append({'size': image.size, 'mode': image.mode, 'lang': lang, 'config': config,
                           'timeout': timeout, 'output_type': output_type})
        if self.error is not None:
            raise self.error
        return self.data


def tesseract_data(words):
    """
    Build image_to_data output.

    ``words`` is a list of (text, conf, line_num) tuples.
    """
    data = {key: [] for key in ('text', 'conf', 'left', 'top', 'width', 'height',
                                'block_num', 'par_num', 'line_num')}
    for i, (text, conf, line_num) in enumerate(words):
        data['text'].append(text)
        data['conf'].append(conf)
        data['left'].append(i * 20)
        data['top'].append(line_num * 15)
        data['width'].append(18 if text.strip() else 0)
        data['height'].append(12 if text.strip() else 0)
        data['block_num'].append(1)
        data['par_num'].append(1)
        data['line_num'].append(line_num)
    return data


@pytest.fixture
def tesseract_factory():
    return FakeTesseract


@pytest.fixture
def tesseract_data_factory():
    return tesseract_data


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ""

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Records posts and answers with a scripted response or exception."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []
        self.closed = False

    def post(self, url, params=None, json=None, timeout=None):
        self.posts.append({'url': url, 'params': params, 'json': json, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def response_factory():
    return FakeResponse
