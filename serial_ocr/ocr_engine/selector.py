"""
Provider Selector Module.

Chooses which recognition provider to run and manages fallback:

    1. The preferred provider goes first; the cloud provider is skipped
       entirely when it has no credential.
    2. If it is unavailable (or times out), the other provider runs once.
    3. "No text found" is final: an empty photo is not a transient
       condition, so the other provider is not tried.
    4. Any unexpected provider error ends the call.

Every terminal condition surfaces as ExtractionFailedError with the
original error attached.

Usage:
    selector = ProviderSelector(cloud=cloud_provider, local=local_provider)
    text = await selector.select_and_recognize(payload, timeout=10)

Author: ML Engineering Team
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.utils.exceptions import (
    ConfigurationError,
    ExtractionFailedError,
    ProviderUnavailableError
)
from serial_ocr.utils.logger import get_logger
from .base import OutcomeStatus, RecognitionOutcome, RecognitionProvider
from .recognized_text import RecognizedText

logger = get_logger(__name__)

SUPPORTED_PREFERENCES = ('cloud', 'local')


class ProviderSelector:
    """
    Runs recognition providers in policy order with fallback.

    Attributes:
        cloud: Cloud provider (may be unconfigured or None)
        local: Local provider
        preferred: "cloud" or "local"
        timeout: Default per-attempt timeout in seconds

    Example:
        >>> selector = ProviderSelector(cloud, local, preferred="cloud", timeout=30)
        >>> [p.name for p in selector.plan()]
        ['cloud', 'local']
    """

    def __init__(
        self,
        cloud: Optional[RecognitionProvider],
        local: RecognitionProvider,
        preferred: str = "cloud",
        timeout: Optional[float] = None
    ) -> None:
        if preferred not in SUPPORTED_PREFERENCES:
            raise ConfigurationError("preferred_provider", preferred, f"must be one of {SUPPORTED_PREFERENCES}")
        self.cloud = cloud
        self.local = local
        self.preferred = preferred
        self.timeout = timeout

    def plan(self) -> List[RecognitionProvider]:
        """
        Providers to attempt, in order.

        The cloud provider only appears when it is configured, so a
        missing credential never costs a network round-trip.
        """
        cloud = [self.cloud] if self.cloud is not None and self.cloud.is_configured() else []
        if self.preferred == 'cloud':
            return cloud + [self.local]
        return [self.local] + cloud

    async def select_and_recognize(
        self,
        image: ImagePayload,
        timeout: Optional[float] = None
    ) -> RecognizedText:
        """
        Recognize text with the first provider that is available.

        Args:
            image: Validated image payload.
            timeout: Per-attempt timeout in seconds; defaults to the
                selector's timeout.

        Returns:
            RecognizedText from the first successful provider.

        Raises:
            ExtractionFailedError: No text found, all providers unavailable,
                or an unexpected provider error.
            asyncio.CancelledError: The caller abandoned the call.
        """
        timeout = self.timeout if timeout is None else timeout
        attempts: List[Dict[str, Any]] = []
        last_error: Optional[ProviderUnavailableError] = None

        for provider in self.plan():
            outcome = await self._attempt(provider, image, timeout)
            attempts.append({'provider': outcome.provider, 'status': outcome.status.value})

            if outcome.status is OutcomeStatus.OK:
                return outcome.text

            if outcome.status is OutcomeStatus.NO_TEXT:
                logger.warning(f"Provider '{provider.name}' found no text; not retrying")
                raise ExtractionFailedError(
                    "no text found in image",
                    cause=outcome.error,
                    stage="recognizing",
                    details={'attempts': attempts}
                ) from outcome.error

            last_error = outcome.error
            logger.warning(f"Provider '{provider.name}' unavailable: {outcome.error}")

        logger.error(f"All OCR providers unavailable (attempts: {attempts})")
        raise ExtractionFailedError(
            "no OCR provider available",
            cause=last_error,
            stage="recognizing",
            details={'attempts': attempts}
        ) from last_error

    async def _attempt(
        self,
        provider: RecognitionProvider,
        image: ImagePayload,
        timeout: Optional[float]
    ) -> RecognitionOutcome:
        """
        Run one provider in a worker thread, bounded by ``timeout``.

        A timeout is reported as an UNAVAILABLE outcome. Cancellation of
        the awaiting task propagates; the worker's late result is dropped.
        """
        logger.info(f"Recognizing with provider '{provider.name}' (timeout={timeout}s)")
        start_time = time.time()

        try:
            outcome = await asyncio.wait_for(
                asyncio.to_thread(provider.try_recognize, image, timeout),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            return RecognitionOutcome.unavailable(
                ProviderUnavailableError(provider.name, f"timed out after {timeout}s")
            )
        except Exception as e:
            logger.error(f"Provider '{provider.name}' failed unexpectedly: {e}")
            raise ExtractionFailedError(
                f"provider '{provider.name}' failed",
                cause=e,
                stage="recognizing"
            ) from e

        logger.debug(
            f"Provider '{provider.name}' finished with {outcome.status.value} "
            f"({time.time() - start_time:.2f}s)"
        )
        return outcome

    def close(self) -> None:
        """Release resources held by the providers."""
        for provider in (self.cloud, self.local):
            if provider is not None:
                provider.close()

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about the configured providers.

        Returns:
            Dictionary with preference, order and configuration state.
        """
        return {
            'preferred': self.preferred,
            'order': [p.name for p in self.plan()],
            'cloud_configured': bool(self.cloud is not None and self.cloud.is_configured()),
            'timeout': self.timeout
        }
