"""
Base executor interface.

Host integrations hold an executor and drive it through prepare -> run* ->
cleanup. prepare is called once, run zero or more times, cleanup exactly once.
"""

from abc import ABC, abstractmethod

from kube_executor.core.config import KubernetesSettings
from kube_executor.execution.job_spec import ExecutorCommand, JobConfig


class JobExecutor(ABC):
    """Abstract base class for job executors."""

    @abstractmethod
    def prepare(self, settings: KubernetesSettings, job_config: JobConfig) -> None:
        """
        Validate configuration and resolve everything needed to run the job.

        Args:
            settings: Runner-level executor settings
            job_config: Per-job configuration

        Raises:
            ConfigurationError: Invalid configuration, nothing was created
        """
        pass

    @abstractmethod
    async def run(self, command: ExecutorCommand) -> None:
        """
        Run one command, streaming its output to the command's sinks.

        Args:
            command: Script, target selection, sinks and abort event
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """
        Release all job resources. Never raises.
        """
        pass
