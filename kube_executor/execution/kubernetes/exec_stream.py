"""
Run a script inside one container of the build pod over an exec stream.

The script is fed to the container's shell on stdin and stdout/stderr are
copied to the caller's sinks until the remote shell exits. The outcome is read
from the exec status channel. One attempt per call, no retries.
"""

import asyncio
from typing import Any, List

import yaml
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
from kubernetes.stream.ws_client import ERROR_CHANNEL
from websocket import WebSocketException

from kube_executor.core.exceptions import (
    ExecCancelledError,
    ExecTransportError,
    NonZeroExitError,
)
from kube_executor.core.telemetry import get_logger
from kube_executor.execution.kubernetes.cancellation import CancellationToken
from kube_executor.execution.kubernetes.lifecycle import PodHandle

logger = get_logger(__name__)


def script_payload(script: str) -> str:
    """Stdin payload: the script, then an exit so the shell returns its status."""
    if not script.endswith("\n"):
        script += "\n"
    return script + "exit\n"


def check_exec_status(raw: str) -> None:
    """
    Translate the exec status channel into a result.

    Raises:
        NonZeroExitError: The command exited with a non-zero code
        ExecTransportError: No status, or a failure not caused by the command
    """
    if not raw:
        raise ExecTransportError("exec stream closed without reporting a status")

    try:
        status = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ExecTransportError(f"unreadable exec status: {raw!r}") from e

    if not isinstance(status, dict):
        raise ExecTransportError(f"unreadable exec status: {raw!r}")

    if status.get("status") == "Success":
        return

    details = status.get("details") or {}
    for cause in details.get("causes") or []:
        if cause.get("reason") == "ExitCode":
            try:
                exit_code = int(cause.get("message"))
            except (TypeError, ValueError) as e:
                raise ExecTransportError(f"invalid exit code in status: {raw!r}") from e
            raise NonZeroExitError(
                f"command terminated with exit code {exit_code}", exit_code
            )

    raise ExecTransportError(f"exec failed: {status.get('message') or raw}")


class ExecStreamRunner:
    """Attaches to a container and streams a script through its shell."""

    def __init__(self, core_v1: client.CoreV1Api, update_timeout: float = 1.0):
        self.core_v1 = core_v1
        self.update_timeout = update_timeout

    def _connect(self, handle: PodHandle, container: str, command: List[str]):
        try:
            return stream(
                self.core_v1.connect_get_namespaced_pod_exec,
                handle.name,
                handle.namespace,
                container=container,
                command=command,
                stdin=True,
                stdout=True,
                stderr=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            raise ExecTransportError(
                f"Failed to attach to container {container} in pod {handle}: "
                f"{e.status} {e.reason}"
            ) from e
        except (WebSocketException, OSError) as e:
            raise ExecTransportError(
                f"Failed to attach to container {container} in pod {handle}: {e}"
            ) from e

    @staticmethod
    def _drain(ws, stdout: Any, stderr: Any) -> None:
        if ws.peek_stdout():
            stdout.write(ws.read_stdout())
        if ws.peek_stderr():
            stderr.write(ws.read_stderr())

    def _execute(
        self,
        handle: PodHandle,
        container: str,
        command: List[str],
        script: str,
        stdout: Any,
        stderr: Any,
        token: CancellationToken,
    ) -> None:
        if token.cancelled:
            raise ExecCancelledError(f"cancelled before attaching to {container}")

        ws = self._connect(handle, container, command)
        try:
            ws.write_stdin(script_payload(script))
            while ws.is_open():
                if token.cancelled:
                    raise ExecCancelledError(
                        f"cancelled command in container {container} of pod {handle}"
                    )
                ws.update(timeout=self.update_timeout)
                self._drain(ws, stdout, stderr)
            self._drain(ws, stdout, stderr)
            raw_status = ws.read_channel(ERROR_CHANNEL)
        except (WebSocketException, OSError) as e:
            raise ExecTransportError(
                f"exec stream to container {container} of pod {handle} failed: {e}"
            ) from e
        finally:
            ws.close()

        check_exec_status(raw_status)

    async def run(
        self,
        handle: PodHandle,
        container: str,
        command: List[str],
        script: str,
        stdout: Any,
        stderr: Any,
        token: CancellationToken,
    ) -> None:
        """
        Execute `script` through `command` (the container shell) in `container`.

        Raises:
            NonZeroExitError: Remote command failed
            ExecTransportError: Stream could not be established or broke
            ExecCancelledError: The token fired while the command ran
        """
        logger.info(f"Executing command in container {container} of pod {handle}")
        await asyncio.to_thread(
            self._execute, handle, container, command, script, stdout, stderr, token
        )
