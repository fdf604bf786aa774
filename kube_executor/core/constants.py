from enum import Enum

DEFAULT_HELPER_IMAGE = "gitlab/gitlab-runner-helper:latest"
DEFAULT_NAMESPACE = "default"

# Container names inside the build pod
BUILD_CONTAINER = "build"
HELPER_CONTAINER = "pre"
SERVICE_CONTAINER_PREFIX = "svc-"

# Volumes shared by every container
REPO_VOLUME = "repo"
SSL_CERTS_VOLUME = "etc-ssl-certs"
SSL_CERTS_PATH = "/etc/ssl/certs"
CA_CERTIFICATES_VOLUME = "usr-share-ca-certificates"
CA_CERTIFICATES_PATH = "/usr/share/ca-certificates"


class HelperLimitsSource(str, Enum):
    """Which limit set the helper ("pre") container uses."""

    SERVICE = "service"
    BUILD = "build"
    HELPER = "helper"


class PodPhase(str, Enum):
    """Pod phases reported by the Kubernetes API."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


# Container waiting reasons that will never recover on their own
FATAL_WAITING_REASONS = frozenset(
    {
        "ErrImagePull",
        "ImagePullBackOff",
        "InvalidImageName",
        "CreateContainerConfigError",
        "CreateContainerError",
    }
)
