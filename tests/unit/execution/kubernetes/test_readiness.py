import asyncio
import io

import pytest
from kubernetes.client import V1ObjectMeta, V1Pod
from kubernetes.client.rest import ApiException

from kube_executor.core.exceptions import (
    JobCancelledError,
    PodFailedError,
    ReadinessCancelledError,
    ReadinessError,
    ReadinessTimeoutError,
)
from kube_executor.execution.kubernetes.cancellation import CancellationToken
from kube_executor.execution.kubernetes.lifecycle import PodHandle, PodManager
from kube_executor.execution.kubernetes.readiness import ReadinessWaiter, pod_phase
from tests.fixtures import (
    SAMPLE_NAMESPACE,
    SAMPLE_POD_NAME,
    make_pod,
    unschedulable_condition,
)


@pytest.fixture
def handle():
    return PodHandle(name=SAMPLE_POD_NAME, namespace=SAMPLE_NAMESPACE)


@pytest.fixture
def waiter(core_v1):
    return ReadinessWaiter(PodManager(core_v1), poll_interval=0.01, poll_timeout=2.0)


class TestPodPhase:
    def test_running(self):
        assert pod_phase(make_pod("Running")) == "Running"

    def test_pending(self):
        assert pod_phase(make_pod("Pending")) == "Pending"

    def test_missing_status_is_pending(self):
        """Test a pod without status yet counts as pending."""
        pod = V1Pod(metadata=V1ObjectMeta(name="p"), status=None)

        assert pod_phase(pod) == "Pending"

    @pytest.mark.parametrize("phase", ["Failed", "Succeeded", "Unknown"])
    def test_terminal_phases(self, phase):
        """Test phases that can never reach Running."""
        with pytest.raises(PodFailedError) as exc_info:
            pod_phase(make_pod(phase))

        assert exc_info.value.phase == phase
        assert phase in str(exc_info.value)

    @pytest.mark.parametrize("reason", ["ErrImagePull", "ImagePullBackOff"])
    def test_image_pull_failure(self, reason):
        """Test image pull failures while pending are terminal."""
        with pytest.raises(PodFailedError) as exc_info:
            pod_phase(make_pod("Pending", waiting_reason=reason))

        assert exc_info.value.phase == reason

    def test_container_creating_is_not_terminal(self):
        """Test ordinary waiting reasons keep the pod pending."""
        assert (
            pod_phase(make_pod("Pending", waiting_reason="ContainerCreating"))
            == "Pending"
        )

    def test_unschedulable(self):
        """Test failed scheduling is terminal."""
        pod = make_pod("Pending", conditions=[unschedulable_condition()])

        with pytest.raises(PodFailedError) as exc_info:
            pod_phase(pod)

        assert exc_info.value.phase == "Unschedulable"
        assert "Insufficient cpu" in str(exc_info.value)


class TestReadinessWaiter:
    async def test_already_running(self, waiter, handle, core_v1):
        """Test a running pod returns after one read."""
        await waiter.wait(handle, CancellationToken())

        assert core_v1.read_namespaced_pod.call_count == 1

    async def test_pending_then_running(self, waiter, handle, core_v1):
        """Test status is reported to the trace while pending."""
        core_v1.read_namespaced_pod.side_effect = [
            make_pod("Pending"),
            make_pod("Pending"),
            make_pod("Running"),
        ]
        trace = io.StringIO()

        await waiter.wait(handle, CancellationToken(), trace=trace)

        assert core_v1.read_namespaced_pod.call_count == 3
        assert trace.getvalue().count(
            f"Waiting for pod {SAMPLE_NAMESPACE}/{SAMPLE_POD_NAME} to be running, "
            "status is Pending"
        ) == 2

    async def test_brief_running_state_is_observed(self, waiter, handle, core_v1):
        """Test each poll uses a fresh read, so a short Running window counts."""
        core_v1.read_namespaced_pod.side_effect = [
            make_pod("Pending"),
            make_pod("Running"),
            make_pod("Failed"),
        ]

        await waiter.wait(handle, CancellationToken())

        assert core_v1.read_namespaced_pod.call_count == 2

    async def test_terminal_failure(self, waiter, handle, core_v1):
        """Test a failed pod stops waiting with the observed phase."""
        core_v1.read_namespaced_pod.side_effect = [
            make_pod("Pending"),
            make_pod("Failed"),
        ]

        with pytest.raises(PodFailedError) as exc_info:
            await waiter.wait(handle, CancellationToken())

        assert exc_info.value.phase == "Failed"

    async def test_timeout(self, core_v1, handle):
        """Test a pod stuck pending raises a distinct timeout error."""
        core_v1.read_namespaced_pod.return_value = make_pod("Pending")
        waiter = ReadinessWaiter(
            PodManager(core_v1), poll_interval=0.01, poll_timeout=0.05
        )

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await waiter.wait(handle, CancellationToken())

        assert exc_info.value.timeout == 0.05
        assert not isinstance(exc_info.value, PodFailedError)
        assert core_v1.read_namespaced_pod.call_count >= 2

    async def test_cancelled_while_waiting(self, core_v1, handle):
        """Test cancellation stops polling promptly."""
        core_v1.read_namespaced_pod.return_value = make_pod("Pending")
        waiter = ReadinessWaiter(PodManager(core_v1), poll_interval=5, poll_timeout=60)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel)

        with pytest.raises(ReadinessCancelledError) as exc_info:
            await asyncio.wait_for(waiter.wait(handle, token), timeout=2)

        assert isinstance(exc_info.value, JobCancelledError)
        assert core_v1.read_namespaced_pod.call_count == 1

    async def test_cancelled_before_start(self, waiter, handle, core_v1):
        """Test an already cancelled token never polls."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ReadinessCancelledError):
            await waiter.wait(handle, token)

        core_v1.read_namespaced_pod.assert_not_called()

    async def test_pod_disappeared(self, waiter, handle, core_v1):
        """Test a deleted pod is a terminal failure."""
        core_v1.read_namespaced_pod.side_effect = ApiException(status=404)

        with pytest.raises(PodFailedError) as exc_info:
            await waiter.wait(handle, CancellationToken())

        assert exc_info.value.phase == "NotFound"

    async def test_api_error(self, waiter, handle, core_v1):
        """Test other API errors surface as readiness errors."""
        core_v1.read_namespaced_pod.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )

        with pytest.raises(ReadinessError):
            await waiter.wait(handle, CancellationToken())

    def test_poll_interval_must_be_positive(self, core_v1):
        with pytest.raises(ValueError):
            ReadinessWaiter(PodManager(core_v1), poll_interval=0)
