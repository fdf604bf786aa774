"""
Build pod lifecycle: create, read and delete through the Kubernetes API.
"""

from kubernetes import client
from kubernetes.client.rest import ApiException
from pydantic import BaseModel, ConfigDict
from urllib3.exceptions import HTTPError

from kube_executor.core.exceptions import ClusterConnectionError, PodCreationError
from kube_executor.core.telemetry import get_logger
from kube_executor.execution.kubernetes.pod_builder import PodSpec

logger = get_logger(__name__)


class PodHandle(BaseModel):
    """Reference to a created build pod."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class PodManager:
    """Creates, reads and deletes build pods. Performs no retries."""

    def __init__(self, core_v1: client.CoreV1Api, request_timeout: float = 30.0):
        self.core_v1 = core_v1
        self.request_timeout = request_timeout

    def create(self, pod_spec: PodSpec) -> PodHandle:
        """
        Submit the pod under its namespace with a generated name.

        Raises:
            PodCreationError: The API rejected the pod
            ClusterConnectionError: The API could not be reached
        """
        try:
            pod = self.core_v1.create_namespaced_pod(
                namespace=pod_spec.namespace,
                body=pod_spec.to_manifest(),
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise PodCreationError(
                f"Failed to create build pod in namespace {pod_spec.namespace}: "
                f"{e.status} {e.reason}",
                status=e.status,
                reason=e.reason,
            ) from e
        except (HTTPError, OSError) as e:
            raise ClusterConnectionError(
                f"Error connecting to Kubernetes: {e}"
            ) from e

        handle = PodHandle(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace or pod_spec.namespace,
        )
        logger.info(f"Created build pod {handle}")
        return handle

    def read(self, handle: PodHandle):
        """Fetch the current pod object. Always a fresh API read."""
        try:
            return self.core_v1.read_namespaced_pod(
                name=handle.name,
                namespace=handle.namespace,
                _request_timeout=self.request_timeout,
            )
        except (HTTPError, OSError) as e:
            raise ClusterConnectionError(
                f"Error connecting to Kubernetes: {e}"
            ) from e

    def delete(self, handle: PodHandle) -> bool:
        """
        Delete the pod. Never raises.

        Returns:
            True if the pod is gone (deleted now or already absent)
        """
        try:
            self.core_v1.delete_namespaced_pod(
                name=handle.name,
                namespace=handle.namespace,
                propagation_policy="Background",
                _request_timeout=self.request_timeout,
            )
            logger.info(f"Cleaned up build pod {handle}")
            return True
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Build pod {handle} already deleted or not found")
                return True
            logger.error(f"Error cleaning up pod {handle}: {e.status} {e.reason}")
            return False
        except (HTTPError, OSError) as e:
            logger.error(f"Error cleaning up pod {handle}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error cleaning up pod {handle}: {e}")
            return False
