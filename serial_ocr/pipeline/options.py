"""
Pipeline Options Module.

The four options the surrounding application may set for a pipeline:

    preferred_provider  "cloud" or "local"
    cloud_credential    API key for the cloud provider, or None
    language_hints      Language codes passed to the providers
    timeout_ms          Per-attempt recognition timeout

Author: ML Engineering Team
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from config import get_config
from serial_ocr.utils.exceptions import ConfigurationError

CREDENTIAL_ENV_VAR = "SERIAL_OCR_CLOUD_API_KEY"
SUPPORTED_PROVIDERS = ("cloud", "local")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Validated pipeline options.

    Example:
        >>> PipelineConfig(preferred_provider="local", timeout_ms=5000).timeout
        5.0
    """
    preferred_provider: str = "cloud"
    cloud_credential: Optional[str] = None
    language_hints: Tuple[str, ...] = ("vi", "en")
    timeout_ms: int = 30000

    def __post_init__(self):
        if self.preferred_provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                "preferred_provider", self.preferred_provider,
                f"must be one of {SUPPORTED_PROVIDERS}"
            )

        hints = (self.language_hints,) if isinstance(self.language_hints, str) else tuple(self.language_hints)
        if not hints or not all(isinstance(h, str) and h.strip() for h in hints):
            raise ConfigurationError("language_hints", self.language_hints, "must be non-empty language codes")
        object.__setattr__(self, 'language_hints', hints)

        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int) or self.timeout_ms <= 0:
            raise ConfigurationError("timeout_ms", self.timeout_ms, "must be a positive integer")

        credential = self.cloud_credential.strip() if isinstance(self.cloud_credential, str) else self.cloud_credential
        object.__setattr__(self, 'cloud_credential', credential or None)

    @property
    def timeout(self) -> float:
        """Timeout in seconds."""
        return self.timeout_ms / 1000

    @property
    def has_cloud_credential(self) -> bool:
        return self.cloud_credential is not None

    @classmethod
    def from_config(cls) -> 'PipelineConfig':
        """
        Read the options from the ``ocr`` config section.

        The cloud credential from the ``SERIAL_OCR_CLOUD_API_KEY``
        environment variable takes precedence over the file.

        Raises:
            ConfigurationError: If an option is invalid.
        """
        return cls(
            preferred_provider=get_config("ocr.preferred_provider", "cloud"),
            cloud_credential=os.environ.get(CREDENTIAL_ENV_VAR) or get_config("ocr.cloud.api_key"),
            language_hints=get_config("ocr.language_hints", ["vi", "en"]),
            timeout_ms=get_config("ocr.timeout_ms", 30000)
        )

    def __repr__(self) -> str:
        # Never log the credential itself
        return (
            f"PipelineConfig(preferred_provider={self.preferred_provider!r}, "
            f"cloud_credential={'<set>' if self.has_cloud_credential else None}, "
            f"language_hints={self.language_hints!r}, timeout_ms={self.timeout_ms})"
        )
