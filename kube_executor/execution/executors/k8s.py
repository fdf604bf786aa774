"""
Kubernetes executor for CI jobs.

Runs every command of a job inside one ephemeral build pod:
- prepare() validates configuration and resolves limits (no API calls)
- the first run() creates the pod, later runs reuse it
- each run() waits for the pod to be running, then execs the command in the
  build or helper container, raced against the command's abort event
- cleanup() deletes the pod
"""

import asyncio
from typing import Callable, Optional

from kubernetes import client

from kube_executor.core.config import KubernetesSettings
from kube_executor.core.constants import (
    BUILD_CONTAINER,
    DEFAULT_HELPER_IMAGE,
    DEFAULT_NAMESPACE,
    HELPER_CONTAINER,
    HelperLimitsSource,
)
from kube_executor.core.exceptions import (
    ClusterConnectionError,
    ConfigurationError,
    ExecutorStateError,
)
from kube_executor.core.telemetry import get_logger, trace_span
from kube_executor.execution.executors.base import JobExecutor
from kube_executor.execution.job_spec import ExecutorCommand, JobConfig
from kube_executor.execution.kubernetes.cancellation import (
    CancellationToken,
    race_with_abort,
)
from kube_executor.execution.kubernetes.client import get_core_v1_api
from kube_executor.execution.kubernetes.exec_stream import ExecStreamRunner
from kube_executor.execution.kubernetes.lifecycle import PodHandle, PodManager
from kube_executor.execution.kubernetes.limits import ResourceLimits, resolve_limits
from kube_executor.execution.kubernetes.pod_builder import PodBuilder, PodSpec
from kube_executor.execution.kubernetes.readiness import ReadinessWaiter

logger = get_logger(__name__)

ClientFactory = Callable[[KubernetesSettings], client.CoreV1Api]


class KubernetesExecutor(JobExecutor):
    """Executor running a job's commands inside a Kubernetes build pod."""

    def __init__(self, client_factory: ClientFactory = get_core_v1_api):
        self.client_factory = client_factory

        self.settings: Optional[KubernetesSettings] = None
        self.job_config: Optional[JobConfig] = None

        self.build_limits: Optional[ResourceLimits] = None
        self.service_limits: Optional[ResourceLimits] = None
        self.helper_limits: Optional[ResourceLimits] = None

        self.pod_manager: Optional[PodManager] = None
        self.readiness: Optional[ReadinessWaiter] = None
        self.exec_runner: Optional[ExecStreamRunner] = None

        self.pod_spec: Optional[PodSpec] = None
        self.pod: Optional[PodHandle] = None
        self._pod_creation: Optional[asyncio.Future] = None

    @staticmethod
    def _helper_limits(
        settings: KubernetesSettings,
        build_limits: ResourceLimits,
        service_limits: ResourceLimits,
    ) -> ResourceLimits:
        source = settings.helper_limits_source
        if source == HelperLimitsSource.BUILD:
            return build_limits
        if source == HelperLimitsSource.HELPER:
            return resolve_limits(settings.helper_cpus, settings.helper_memory, "helper")
        return service_limits

    @trace_span
    def prepare(self, settings: KubernetesSettings, job_config: JobConfig) -> None:
        """Validate the job and resolve limits. Makes no Kubernetes API calls."""
        if job_config.privileged and not settings.allow_privileged:
            raise ConfigurationError("Runner does not allow privileged containers")

        service_limits = resolve_limits(
            settings.service_cpus, settings.service_memory, "service"
        )
        build_limits = resolve_limits(settings.cpus, settings.memory, "build")
        helper_limits = self._helper_limits(settings, build_limits, service_limits)

        image = job_config.image or settings.image
        if not image:
            raise ConfigurationError("no image specified and no default set in config")

        settings = settings.model_copy(
            update={
                "helper_image": settings.helper_image or DEFAULT_HELPER_IMAGE,
                "namespace": settings.namespace or DEFAULT_NAMESPACE,
            }
        )
        job_config = job_config.model_copy(update={"image": image})

        try:
            core_v1 = self.client_factory(settings)
        except Exception as e:
            raise ClusterConnectionError(f"Error connecting to Kubernetes: {e}") from e

        self.settings = settings
        self.job_config = job_config
        self.build_limits = build_limits
        self.service_limits = service_limits
        self.helper_limits = helper_limits

        self.pod_manager = PodManager(core_v1, request_timeout=settings.request_timeout)
        self.readiness = ReadinessWaiter(
            self.pod_manager,
            poll_interval=settings.poll_interval,
            poll_timeout=settings.poll_timeout,
        )
        self.exec_runner = ExecStreamRunner(
            core_v1, update_timeout=settings.stream_update_timeout
        )

        logger.info(f"Using Kubernetes executor with image {image} ...")

    def _setup_build_pod(self) -> None:
        # Assigned on the worker thread so the handle survives a cancelled run
        self.pod_spec = PodBuilder(
            self.settings,
            self.job_config,
            build_limits=self.build_limits,
            service_limits=self.service_limits,
            helper_limits=self.helper_limits,
        ).build()
        self.pod = self.pod_manager.create(self.pod_spec)

    @trace_span
    async def run(self, command: ExecutorCommand) -> None:
        if self.settings is None:
            raise ExecutorStateError("run called before prepare")

        logger.debug("Starting Kubernetes command...")

        if self.pod is None:
            if self._pod_creation is None or self._pod_creation.done():
                self._pod_creation = asyncio.ensure_future(
                    asyncio.to_thread(self._setup_build_pod)
                )
            await asyncio.shield(self._pod_creation)

        pod = self.pod
        container = HELPER_CONTAINER if command.predefined else BUILD_CONTAINER
        shell = list(self.settings.shell_command)

        async def run_in_container(token: CancellationToken) -> None:
            await self.readiness.wait(pod, token, trace=command.stdout)
            await self.exec_runner.run(
                pod,
                container,
                shell,
                command.script,
                command.stdout,
                command.error_sink,
                token,
            )

        await race_with_abort(run_in_container, command.abort)

    @trace_span
    async def cleanup(self) -> None:
        if self._pod_creation is not None and not self._pod_creation.done():
            await asyncio.wait([self._pod_creation])

        if self.pod is None:
            return

        pod, self.pod = self.pod, None
        if not await asyncio.to_thread(self.pod_manager.delete, pod):
            logger.error(f"Build pod {pod} was not deleted")
