from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kube_executor.core.constants import (
    DEFAULT_HELPER_IMAGE,
    DEFAULT_NAMESPACE,
    HelperLimitsSource,
)


class KubernetesSettings(BaseSettings):
    """Runner-level settings for the Kubernetes executor."""

    model_config = SettingsConfigDict(
        env_prefix="KUBERNETES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API connection (falls back to in-cluster config, then kubeconfig)
    host: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    ca_file: Optional[str] = None
    bearer_token: Optional[str] = None

    # Pod defaults
    image: Optional[str] = None
    namespace: str = DEFAULT_NAMESPACE
    helper_image: str = DEFAULT_HELPER_IMAGE
    allow_privileged: bool = False
    shell_command: List[str] = Field(default_factory=lambda: ["sh"])

    # Resource limits, empty string means unlimited
    cpus: str = ""
    memory: str = ""
    service_cpus: str = ""
    service_memory: str = ""
    helper_cpus: str = ""
    helper_memory: str = ""
    helper_limits_source: HelperLimitsSource = HelperLimitsSource.SERVICE

    # Timing (seconds)
    poll_interval: float = Field(default=3.0, gt=0)
    poll_timeout: float = Field(default=180.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)
    stream_update_timeout: float = Field(default=1.0, gt=0)


class TelemetrySettings(BaseSettings):
    """OpenTelemetry settings, read from the standard OTEL_* variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otel_service_name: str = "kube-executor"
    otel_exporter_otlp_endpoint: Optional[str] = None
    otel_exporter_otlp_headers: Optional[str] = None


@lru_cache
def get_settings() -> KubernetesSettings:
    """Process-wide executor settings loaded from the environment."""
    return KubernetesSettings()
