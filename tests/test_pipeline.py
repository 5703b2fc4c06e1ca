"""Tests for ExtractionPipeline and PipelineConfig."""

import asyncio
import base64

import pytest
from PIL import Image

from serial_ocr.extraction.extracted_document import ExtractedDocument
from serial_ocr.extraction.extractor import FieldExtractor
from serial_ocr.extraction.fields import FieldName
from serial_ocr.extraction.rules import FieldExtractionRule, Pattern
from serial_ocr.ocr_engine.cloud_vision import CloudVisionProvider
from serial_ocr.ocr_engine.recognized_text import RecognizedText
from serial_ocr.ocr_engine.selector import ProviderSelector
from serial_ocr.pipeline.options import CREDENTIAL_ENV_VAR, PipelineConfig
from serial_ocr.pipeline.orchestrator import ExtractionPipeline, PipelineRun, PipelineState
from serial_ocr.utils.exceptions import (
    USER_MESSAGE,
    ConfigurationError,
    ExtractionFailedError,
    ImageDecodeError,
    NoTextFoundError,
    ProviderUnavailableError,
    RuleDefinitionError
)

S = PipelineState


def make_pipeline(provider_factory, cloud_result=None, local_result=None, **kwargs):
    cloud = provider_factory("cloud", result=cloud_result, configured=cloud_result is not None)
    local = provider_factory("local", result=local_result)
    selector = ProviderSelector(cloud, local, preferred="cloud", timeout=5)
    states = []
    pipeline = ExtractionPipeline(
        selector=selector,
        on_state_change=lambda old, new: states.append((old, new)),
        **kwargs
    )
    return pipeline, cloud, local, states


class TestProcess:

    def test_successful_call(self, provider_factory, png_bytes, text_factory):
        text = text_factory("Số serial: ABC-123\nGiá: 1.500.000đ", confidence=0.8, provider="cloud")
        pipeline, cloud, local, states = make_pipeline(provider_factory, cloud_result=text)

        document = asyncio.run(pipeline.process(png_bytes))

        assert isinstance(document, ExtractedDocument)
        assert document.values() == {'serialNumber': 'ABC-123', 'costPrice': 1500000.0}
        assert document.provider == "cloud"
        assert document.document_confidence == pytest.approx(0.5 * 0.8 + 0.5 * 0.75)
        assert document.recognition_confidence == 0.8
        assert states == [(S.IDLE, S.RECOGNIZING), (S.RECOGNIZING, S.EXTRACTING), (S.EXTRACTING, S.DONE)]

    def test_document_with_no_fields_is_not_an_error(self, provider_factory, png_bytes, text_factory):
        pipeline, _, _, states = make_pipeline(provider_factory, local_result=text_factory("Cảm ơn quý khách"))

        document = pipeline.process_sync(png_bytes)

        assert len(document) == 0
        assert document.document_confidence == pytest.approx(0.45)
        assert states[-1] == (S.EXTRACTING, S.DONE)

    def test_empty_text_fails_with_no_text_cause(self, provider_factory, png_bytes):
        pipeline, _, _, states = make_pipeline(provider_factory, local_result=NoTextFoundError("local"))

        with pytest.raises(ExtractionFailedError) as exc_info:
            asyncio.run(pipeline.process(png_bytes))

        assert isinstance(exc_info.value.cause, NoTextFoundError)
        assert exc_info.value.user_message == USER_MESSAGE
        assert states == [(S.IDLE, S.RECOGNIZING), (S.RECOGNIZING, S.FAILED)]

    def test_both_providers_unavailable(self, provider_factory, png_bytes):
        pipeline, cloud, local, states = make_pipeline(
            provider_factory,
            cloud_result=ProviderUnavailableError("cloud", "HTTP 503"),
            local_result=ProviderUnavailableError("local", "tesseract missing")
        )

        with pytest.raises(ExtractionFailedError):
            asyncio.run(pipeline.process(png_bytes))

        assert (cloud.calls, local.calls) == (1, 1)
        assert states[-1] == (S.RECOGNIZING, S.FAILED)

    def test_undecodable_payload_rejected_before_recognition(self, provider_factory, text_factory):
        pipeline, cloud, local, states = make_pipeline(provider_factory, local_result=text_factory("SN: X1"))

        with pytest.raises(ExtractionFailedError) as exc_info:
            asyncio.run(pipeline.process(b"definitely not an image"))

        assert isinstance(exc_info.value.cause, ImageDecodeError)
        assert exc_info.value.stage == "decoding"
        assert (cloud.calls, local.calls) == (0, 0)
        assert states[-1] == (S.RECOGNIZING, S.FAILED)

    def test_oversized_image_rejected_before_recognition(self, monkeypatch, provider_factory, png_bytes, text_factory):
        pipeline, cloud, local, states = make_pipeline(provider_factory, local_result=text_factory("SN: X1"))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

        with pytest.raises(ExtractionFailedError) as exc_info:
            asyncio.run(pipeline.process(png_bytes))

        assert isinstance(exc_info.value.cause, ImageDecodeError)
        assert exc_info.value.stage == "decoding"
        assert (cloud.calls, local.calls) == (0, 0)
        assert states[-1] == (S.RECOGNIZING, S.FAILED)

    def test_non_image_mime_type_rejected(self, provider_factory, png_bytes, text_factory):
        pipeline, _, local, _ = make_pipeline(provider_factory, local_result=text_factory("SN: X1"))

        with pytest.raises(ExtractionFailedError):
            asyncio.run(pipeline.process(png_bytes, mime_type="application/pdf"))

        assert local.calls == 0

    def test_data_uri_input(self, provider_factory, png_bytes, text_factory):
        pipeline, _, local, _ = make_pipeline(provider_factory, local_result=text_factory("SN: XYZ987"))
        data_uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode('ascii')

        document = asyncio.run(pipeline.process(data_uri))

        assert document.value(FieldName.SERIAL_NUMBER) == "XYZ987"
        assert local.calls == 1

    def test_malformed_rule_fails_at_extracting(self, provider_factory, png_bytes, text_factory):
        rule = FieldExtractionRule(FieldName.SERIAL_NUMBER, (Pattern(r'serial: (?:(\d+)|[a-z]+)'),))
        pipeline, _, _, states = make_pipeline(
            provider_factory,
            local_result=text_factory("serial: abc"),
            extractor=FieldExtractor(rules=(rule,))
        )

        with pytest.raises(ExtractionFailedError) as exc_info:
            asyncio.run(pipeline.process(png_bytes))

        assert isinstance(exc_info.value.cause, RuleDefinitionError)
        assert exc_info.value.stage == "extracting"
        assert states[-1] == (S.EXTRACTING, S.FAILED)

    def test_cancelled_call_returns_no_document(self, provider_factory, png_bytes, text_factory):
        cloud = provider_factory("cloud", result=text_factory("SN: X1"), delay=0.5)
        local = provider_factory("local", result=text_factory("SN: X1"))
        states = []
        pipeline = ExtractionPipeline(
            selector=ProviderSelector(cloud, local, timeout=10),
            on_state_change=lambda old, new: states.append(new)
        )

        async def cancel_soon():
            task = asyncio.ensure_future(pipeline.process(png_bytes))
            await asyncio.sleep(0.05)
            task.cancel()
            return await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(cancel_soon())

        assert states == [S.RECOGNIZING, S.FAILED]
        assert local.calls == 0

    def test_calls_do_not_share_state(self, provider_factory, png_bytes, text_factory):
        pipeline, _, _, states = make_pipeline(provider_factory, local_result=text_factory("SN: XYZ987"))

        pipeline.process_sync(png_bytes)
        pipeline.process_sync(png_bytes)

        assert [new for _, new in states].count(S.RECOGNIZING) == 2
        assert states[3] == (S.IDLE, S.RECOGNIZING)

    def test_process_many(self, provider_factory, png_bytes, text_factory):
        pipeline, _, _, _ = make_pipeline(provider_factory, local_result=text_factory("SN: XYZ987"))

        results = asyncio.run(pipeline.process_many([png_bytes, b"junk", png_bytes]))

        assert [type(r) for r in results] == [ExtractedDocument, ExtractionFailedError, ExtractedDocument]
        assert results[0].value(FieldName.SERIAL_NUMBER) == "XYZ987"

    def test_failing_state_callback_does_not_break_the_call(self, provider_factory, png_bytes, text_factory):
        def explode(old, new):
            raise RuntimeError("observer bug")

        pipeline = ExtractionPipeline(
            selector=ProviderSelector(None, provider_factory("local", result=text_factory("SN: XYZ987")),
                                      preferred="local"),
            on_state_change=explode
        )

        assert pipeline.process_sync(png_bytes).value(FieldName.SERIAL_NUMBER) == "XYZ987"

    def test_default_selector_skips_cloud_without_credential(self):
        pipeline = ExtractionPipeline(PipelineConfig(preferred_provider="cloud", cloud_credential=None))

        assert isinstance(pipeline.selector.cloud, CloudVisionProvider)
        assert [p.name for p in pipeline.selector.plan()] == ["local"]
        assert pipeline.selector.timeout == 30.0

    def test_closing_pipeline_closes_providers(self, provider_factory, png_bytes, text_factory):
        pipeline, cloud, local, _ = make_pipeline(provider_factory, local_result=text_factory("SN: XYZ987"))

        with pipeline:
            pipeline.process_sync(png_bytes)

        assert cloud.closed and local.closed


class TestPipelineRun:

    def test_happy_path(self):
        run = PipelineRun()
        for state in (S.RECOGNIZING, S.EXTRACTING, S.DONE):
            run.transition(state)

        assert run.history == [S.IDLE, S.RECOGNIZING, S.EXTRACTING, S.DONE]
        assert run.is_terminal

    def test_cannot_skip_recognition(self):
        with pytest.raises(RuntimeError):
            PipelineRun().transition(S.EXTRACTING)

    def test_done_is_terminal(self):
        run = PipelineRun()
        for state in (S.RECOGNIZING, S.EXTRACTING, S.DONE):
            run.transition(state)

        run.fail()
        assert run.state is S.DONE


class TestPipelineConfig:

    def test_defaults(self):
        config = PipelineConfig()

        assert config.preferred_provider == "cloud"
        assert config.language_hints == ("vi", "en")
        assert config.timeout == 30.0
        assert not config.has_cloud_credential

    def test_blank_credential_means_absent(self):
        assert PipelineConfig(cloud_credential="   ").cloud_credential is None

    @pytest.mark.parametrize("kwargs", [
        {'preferred_provider': "azure"},
        {'timeout_ms': 0},
        {'timeout_ms': 2.5},
        {'language_hints': ()},
    ])
    def test_invalid_options(self, kwargs):
        with pytest.raises(ConfigurationError):
            PipelineConfig(**kwargs)

    def test_repr_hides_credential(self):
        assert "secret-key" not in repr(PipelineConfig(cloud_credential="secret-key"))

    def test_from_config(self, monkeypatch):
        monkeypatch.delenv(CREDENTIAL_ENV_VAR, raising=False)
        config = PipelineConfig.from_config()

        assert config.preferred_provider == "cloud"
        assert config.language_hints == ("vi", "en")
        assert config.timeout_ms == 30000
        assert config.cloud_credential is None

    def test_environment_credential_wins(self, monkeypatch):
        monkeypatch.setenv(CREDENTIAL_ENV_VAR, "env-key")

        assert PipelineConfig.from_config().cloud_credential == "env-key"


def test_recognized_text_confidence_validated():
    with pytest.raises(ValueError):
        RecognizedText("x", overall_confidence=1.5)
