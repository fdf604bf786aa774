"""
Job executors.
"""

from kube_executor.execution.executors.base import JobExecutor
from kube_executor.execution.executors.k8s import KubernetesExecutor

__all__ = ["JobExecutor", "KubernetesExecutor"]
