"""
Wait for the build pod to reach the Running phase.
"""

import asyncio
import time
from typing import Any, Optional

from kubernetes.client.rest import ApiException

from kube_executor.core.constants import FATAL_WAITING_REASONS, PodPhase
from kube_executor.core.exceptions import (
    PodFailedError,
    ReadinessCancelledError,
    ReadinessError,
    ReadinessTimeoutError,
)
from kube_executor.core.telemetry import get_logger
from kube_executor.execution.kubernetes.cancellation import CancellationToken
from kube_executor.execution.kubernetes.lifecycle import PodHandle, PodManager

logger = get_logger(__name__)

_TERMINAL_PHASES = {PodPhase.SUCCEEDED, PodPhase.FAILED, PodPhase.UNKNOWN}


def pod_phase(pod) -> str:
    """
    Classify a pod for readiness.

    Returns:
        The pod phase when it is Running or may still become Running

    Raises:
        PodFailedError: The pod can no longer reach the Running phase
    """
    status = pod.status
    phase = (status.phase if status else None) or PodPhase.PENDING.value

    if phase == PodPhase.RUNNING.value:
        return phase

    if phase in {p.value for p in _TERMINAL_PHASES}:
        raise PodFailedError(f"pod failed to enter running state: {phase}", phase)

    for container_status in (status.container_statuses if status else None) or []:
        waiting = container_status.state.waiting if container_status.state else None
        if waiting is not None and waiting.reason in FATAL_WAITING_REASONS:
            raise PodFailedError(
                f"pod failed to enter running state: container "
                f"{container_status.name} is {waiting.reason}: {waiting.message}",
                waiting.reason,
            )

    for condition in (status.conditions if status else None) or []:
        if (
            condition.type == "PodScheduled"
            and condition.status == "False"
            and condition.reason == "Unschedulable"
        ):
            raise PodFailedError(
                f"pod failed to enter running state: Unschedulable: {condition.message}",
                "Unschedulable",
            )

    return phase


class ReadinessWaiter:
    """Polls the pod until it runs, fails, times out or is cancelled."""

    def __init__(
        self,
        pod_manager: PodManager,
        poll_interval: float = 3.0,
        poll_timeout: float = 180.0,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.pod_manager = pod_manager
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    def _read(self, handle: PodHandle):
        try:
            return self.pod_manager.read(handle)
        except ApiException as e:
            if e.status == 404:
                raise PodFailedError(
                    f"pod {handle} not found while waiting for it to run", "NotFound"
                ) from e
            raise ReadinessError(
                f"Failed to check pod {handle} status: {e.status} {e.reason}"
            ) from e

    async def wait(
        self,
        handle: PodHandle,
        token: CancellationToken,
        trace: Optional[Any] = None,
    ) -> None:
        """
        Block until the pod is Running.

        Raises:
            PodFailedError: Terminal phase or unrecoverable container state
            ReadinessTimeoutError: Not running within poll_timeout
            ReadinessCancelledError: The token fired while waiting
        """
        deadline = time.monotonic() + self.poll_timeout

        while True:
            if token.cancelled:
                raise ReadinessCancelledError(f"cancelled waiting for pod {handle}")

            pod = await asyncio.to_thread(self._read, handle)
            phase = pod_phase(pod)
            if phase == PodPhase.RUNNING.value:
                logger.info(f"Build pod {handle} is running")
                return

            message = f"Waiting for pod {handle} to be running, status is {phase}"
            logger.info(message)
            if trace is not None:
                trace.write(message + "\n")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadinessTimeoutError(
                    f"timed out after {self.poll_timeout}s waiting for pod {handle} "
                    f"to be running, status is {phase}",
                    self.poll_timeout,
                )

            if await token.wait(min(self.poll_interval, remaining)):
                raise ReadinessCancelledError(f"cancelled waiting for pod {handle}")
