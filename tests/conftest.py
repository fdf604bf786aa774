# Shared pytest configuration and fixtures
import io

import pytest
from unittest.mock import MagicMock

from kube_executor.core.config import KubernetesSettings
from kube_executor.execution.job_spec import JobConfig, JobVariable, JobVariables
from tests.fixtures import SAMPLE_BUILD_DIR, SAMPLE_NAMESPACE, make_pod


@pytest.fixture
def settings():
    """Executor settings with fast polling for tests."""
    return KubernetesSettings(
        _env_file=None,
        namespace=SAMPLE_NAMESPACE,
        poll_interval=0.01,
        poll_timeout=2.0,
        stream_update_timeout=0.01,
    )


@pytest.fixture
def job_variables():
    return JobVariables(
        [
            JobVariable(key="CI_PROJECT_NAME", value="project", public=True),
            JobVariable(key="CI_BUILD_TOKEN", value="internal-token", internal=True),
            JobVariable(key="IMAGE_TAG", value="3.19", public=True),
            JobVariable(key="DEPLOY_PASSWORD", value="s3cr3t"),
        ]
    )


@pytest.fixture
def job_config(job_variables):
    return JobConfig(
        image="alpine:$IMAGE_TAG",
        services=["postgres:15", "redis:${IMAGE_TAG}"],
        build_dir=SAMPLE_BUILD_DIR,
        project_unique_name="runner-abc-project-1-concurrent-0",
        variables=job_variables,
    )


@pytest.fixture
def core_v1():
    """Mocked CoreV1Api returning a running pod."""
    api = MagicMock()
    api.create_namespaced_pod.return_value = make_pod(phase="Pending")
    api.read_namespaced_pod.return_value = make_pod(phase="Running")
    return api


@pytest.fixture
def output():
    return io.StringIO()
