"""
Build pod specification.

Turns a prepared job into the declarative multi-container pod the job runs in:
- build container running the job image
- helper ("pre") container for predefined commands
- one container per service image
- shared build volume plus the host's TLS trust store on every container
"""

import os
import re
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel, ConfigDict, Field

from kube_executor.core.config import KubernetesSettings
from kube_executor.core.constants import (
    BUILD_CONTAINER,
    CA_CERTIFICATES_PATH,
    CA_CERTIFICATES_VOLUME,
    HELPER_CONTAINER,
    REPO_VOLUME,
    SERVICE_CONTAINER_PREFIX,
    SSL_CERTS_PATH,
    SSL_CERTS_VOLUME,
)
from kube_executor.execution.job_spec import JobConfig
from kube_executor.execution.kubernetes.limits import ResourceLimits

POD_TEMPLATE = "build_pod.yaml.j2"

# generateName gets a 5 character random suffix, names are capped at 63
_MAX_GENERATE_NAME = 58
_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")

_template_dir = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "job_templates"
)
_jinja_env = Environment(
    loader=FileSystemLoader(_template_dir), trim_blocks=True, lstrip_blocks=True
)


class EnvVar(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class VolumeMount(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mount_path: str
    read_only: bool = False


class Volume(BaseModel):
    """Pod volume. Without a host path it is an emptyDir."""

    model_config = ConfigDict(frozen=True)

    name: str
    host_path: Optional[str] = None


class ContainerSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    command: List[str] = Field(default_factory=list)
    env: List[EnvVar] = Field(default_factory=list)
    limits: ResourceLimits = Field(default_factory=ResourceLimits)
    volume_mounts: List[VolumeMount] = Field(default_factory=list)
    privileged: bool = False
    stdin: bool = True


class PodSpec(BaseModel):
    """Complete build pod description, ready to submit."""

    model_config = ConfigDict(frozen=True)

    generate_name: str
    namespace: str
    containers: List[ContainerSpec]
    volumes: List[Volume]
    restart_policy: str = "Never"

    def container(self, name: str) -> ContainerSpec:
        for container in self.containers:
            if container.name == name:
                return container
        raise KeyError(name)

    def to_manifest(self) -> Dict[str, Any]:
        """Render the pod manifest body accepted by create_namespaced_pod."""
        template = _jinja_env.get_template(POD_TEMPLATE)
        manifest_yaml = template.render(
            generate_name=self.generate_name,
            namespace=self.namespace,
            restart_policy=self.restart_policy,
            volumes=self.volumes,
            containers=self.containers,
        )
        return yaml.safe_load(manifest_yaml)


def build_dir_parent(build_dir: str) -> str:
    """Strip the last path segment, e.g. /builds/group/project -> /builds/group."""
    parent = "/".join(build_dir.split("/")[:-1])
    return parent or "/"


def pod_name_prefix(project_unique_name: str) -> str:
    """Sanitise a project name into a DNS-1123 generateName prefix."""
    name = _INVALID_NAME_CHARS.sub("-", project_unique_name.lower()).strip("-")
    name = name[: _MAX_GENERATE_NAME - 1].rstrip("-") or "build"
    return f"{name}-"


class PodBuilder:
    """Builds the job's PodSpec. Pure transformation, no API calls."""

    def __init__(
        self,
        settings: KubernetesSettings,
        job_config: JobConfig,
        build_limits: ResourceLimits,
        service_limits: ResourceLimits,
        helper_limits: ResourceLimits,
    ):
        self.settings = settings
        self.job_config = job_config
        self.build_limits = build_limits
        self.service_limits = service_limits
        self.helper_limits = helper_limits

    def volumes(self) -> List[Volume]:
        return [
            Volume(name=REPO_VOLUME),
            Volume(name=SSL_CERTS_VOLUME, host_path=SSL_CERTS_PATH),
            Volume(name=CA_CERTIFICATES_VOLUME, host_path=CA_CERTIFICATES_PATH),
        ]

    def volume_mounts(self) -> List[VolumeMount]:
        return [
            VolumeMount(
                name=REPO_VOLUME, mount_path=build_dir_parent(self.job_config.build_dir)
            ),
            VolumeMount(name=SSL_CERTS_VOLUME, mount_path=SSL_CERTS_PATH, read_only=True),
            VolumeMount(
                name=CA_CERTIFICATES_VOLUME,
                mount_path=CA_CERTIFICATES_PATH,
                read_only=True,
            ),
        ]

    def environment(self) -> List[EnvVar]:
        # Secret variables never reach the pod spec
        return [
            EnvVar(name=v.key, value=v.value)
            for v in self.job_config.variables.public_or_internal()
        ]

    def container(
        self,
        name: str,
        image: str,
        limits: ResourceLimits,
        command: Optional[List[str]] = None,
    ) -> ContainerSpec:
        return ContainerSpec(
            name=name,
            image=image,
            command=command or [],
            env=self.environment(),
            limits=limits,
            volume_mounts=self.volume_mounts(),
            privileged=self.job_config.privileged,
            stdin=True,
        )

    def build(self) -> PodSpec:
        """Build the PodSpec, expanding image references against job variables."""
        variables = self.job_config.variables
        shell = list(self.settings.shell_command)

        services = [
            self.container(
                f"{SERVICE_CONTAINER_PREFIX}{i}",
                variables.expand_value(image),
                self.service_limits,
            )
            for i, image in enumerate(self.job_config.services)
        ]

        containers = [
            self.container(
                BUILD_CONTAINER,
                variables.expand_value(self.job_config.image),
                self.build_limits,
                shell,
            ),
            self.container(
                HELPER_CONTAINER, self.settings.helper_image, self.helper_limits, shell
            ),
            *services,
        ]

        return PodSpec(
            generate_name=pod_name_prefix(self.job_config.project_unique_name),
            namespace=self.settings.namespace,
            containers=containers,
            volumes=self.volumes(),
        )
