"""
Kubernetes API client construction.
"""

from kubernetes import client, config

from kube_executor.core.config import KubernetesSettings
from kube_executor.core.telemetry import get_logger

logger = get_logger(__name__)


def get_kube_configuration(settings: KubernetesSettings) -> client.Configuration:
    """
    Resolve the API configuration.

    An explicit host in settings wins, otherwise the in-cluster service account
    is used, falling back to the local kubeconfig.
    """
    if settings.host:
        configuration = client.Configuration()
        configuration.host = settings.host
        if settings.cert_file:
            configuration.cert_file = settings.cert_file
        if settings.key_file:
            configuration.key_file = settings.key_file
        if settings.ca_file:
            configuration.ssl_ca_cert = settings.ca_file
        if settings.bearer_token:
            configuration.api_key = {"authorization": f"Bearer {settings.bearer_token}"}
        logger.info(f"Using Kubernetes API at {settings.host}")
        return configuration

    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
        logger.info("Using in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config(client_configuration=configuration)
        logger.info("Using kubeconfig Kubernetes configuration")
    return configuration


def get_core_v1_api(settings: KubernetesSettings) -> client.CoreV1Api:
    """Build a CoreV1Api bound to the resolved configuration."""
    configuration = get_kube_configuration(settings)
    return client.CoreV1Api(client.ApiClient(configuration))
