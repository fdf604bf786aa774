# Test data and fakes for the Kubernetes API
import json
import time

from kubernetes.client import (
    V1ContainerState,
    V1ContainerStateWaiting,
    V1ContainerStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodCondition,
    V1PodStatus,
)
from kubernetes.stream.ws_client import ERROR_CHANNEL

SAMPLE_BUILD_DIR = "/builds/group/project"
SAMPLE_POD_NAME = "runner-abc-project-1-concurrent-0-x7k2p"
SAMPLE_NAMESPACE = "ci"

EXEC_SUCCESS_STATUS = json.dumps({"metadata": {}, "status": "Success"})


def exec_exit_status(exit_code: int) -> str:
    return json.dumps(
        {
            "metadata": {},
            "status": "Failure",
            "message": f"command terminated with non-zero exit code: {exit_code}",
            "reason": "NonZeroExitCode",
            "details": {"causes": [{"reason": "ExitCode", "message": str(exit_code)}]},
        }
    )


def make_pod(
    phase="Pending",
    name=SAMPLE_POD_NAME,
    namespace=SAMPLE_NAMESPACE,
    waiting_reason=None,
    conditions=None,
):
    container_statuses = None
    if waiting_reason:
        container_statuses = [
            V1ContainerStatus(
                name="build",
                image="alpine",
                image_id="",
                ready=False,
                restart_count=0,
                state=V1ContainerState(
                    waiting=V1ContainerStateWaiting(
                        reason=waiting_reason, message="Back-off pulling image"
                    )
                ),
            )
        ]
    return V1Pod(
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        status=V1PodStatus(
            phase=phase,
            container_statuses=container_statuses,
            conditions=conditions,
        ),
    )


def unschedulable_condition():
    return V1PodCondition(
        type="PodScheduled",
        status="False",
        reason="Unschedulable",
        message="0/3 nodes are available: 3 Insufficient cpu.",
    )


class FakeExecStream:
    """Scripted stand-in for kubernetes.stream.ws_client.WSClient."""

    def __init__(
        self,
        stdout=(),
        stderr=(),
        status=EXEC_SUCCESS_STATUS,
        hang=False,
        update_error=None,
    ):
        self._stdout_chunks = list(stdout)
        self._stderr_chunks = list(stderr)
        self._stdout = []
        self._stderr = []
        self.status = status
        self.hang = hang
        self.update_error = update_error
        self.stdin = []
        self.updates = 0
        self.closed = False
        self._open = True

    def write_stdin(self, data):
        self.stdin.append(data)

    def is_open(self):
        return self._open

    def update(self, timeout=0):
        self.updates += 1
        if self.update_error is not None:
            raise self.update_error
        if self._stdout_chunks:
            self._stdout.append(self._stdout_chunks.pop(0))
            return
        if self._stderr_chunks:
            self._stderr.append(self._stderr_chunks.pop(0))
            return
        if self.hang:
            time.sleep(min(timeout, 0.01))
            return
        self._open = False

    def peek_stdout(self):
        return bool(self._stdout)

    def read_stdout(self):
        data = "".join(self._stdout)
        self._stdout.clear()
        return data

    def peek_stderr(self):
        return bool(self._stderr)

    def read_stderr(self):
        data = "".join(self._stderr)
        self._stderr.clear()
        return data

    def read_channel(self, channel):
        if channel == ERROR_CHANNEL:
            return self.status
        return ""

    def close(self):
        self._open = False
        self.closed = True
