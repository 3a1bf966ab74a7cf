from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from pydantic import BaseModel, Field

from wordpressify.environment.command_runner import CommandResult, CommandRunner, SubprocessCommandRunner
from wordpressify.provisioning.resources import EnvironmentResource, TemplateResourceProvisioner
from wordpressify.utils.diagnostics import (
    EnvironmentBusyError,
    ExternalProcessError,
    MissingPrerequisiteError,
)

logger = logging.getLogger(__name__)


class EnvironmentState(str, Enum):
    """Lifecycle of the docker compose environment."""

    UNPROVISIONED = "unprovisioned"
    PROVISIONED_STOPPED = "provisioned_stopped"
    RUNNING = "running"


class EnvironmentProbeResult(BaseModel):
    """Result payload from probing the environment on disk and in docker."""

    state: EnvironmentState
    running_containers: List[str] = Field(default_factory=list)
    reason: str


class ExternalEnvironmentController:
    """
    Drives the docker compose stack. Every call blocks until compose exits; a non-zero
    exit raises ExternalProcessError and leaves the stack as compose left it.
    """

    def __init__(
        self,
        root_dir: Path,
        provisioner: TemplateResourceProvisioner,
        resources: Sequence[EnvironmentResource],
        runner: Optional[CommandRunner] = None,
        compose_command: Sequence[str] = ("docker", "compose"),
    ) -> None:
        self.root_dir = root_dir
        self.provisioner = provisioner
        self.resources = list(resources)
        self.runner = runner or SubprocessCommandRunner()
        self.compose_command = list(compose_command)
        self._lock = threading.Lock()
        self.state = (
            EnvironmentState.PROVISIONED_STOPPED
            if self.provisioner.is_provisioned(self.resources)
            else EnvironmentState.UNPROVISIONED
        )

    def provision(self) -> List[EnvironmentResource]:
        """Ensure every resource exists; returns the ones created on this call."""
        with self._exclusive("provision"):
            created = self.provisioner.ensure_all(self.resources)
            if self.state == EnvironmentState.UNPROVISIONED:
                self.state = EnvironmentState.PROVISIONED_STOPPED
            return created

    def start(self) -> CommandResult:
        with self._exclusive("start"):
            self._require_provisioned("start")
            result = self._compose("up", "-d")
            self.state = EnvironmentState.RUNNING
            return result

    def build(self) -> CommandResult:
        with self._exclusive("build"):
            self._require_provisioned("build")
            result = self._compose("up", "--build", "--no-start")
            self.state = EnvironmentState.PROVISIONED_STOPPED
            return result

    def rebuild(self) -> CommandResult:
        with self._exclusive("rebuild"):
            self._require_provisioned("rebuild")
            result = self._compose("up", "-d", "--build", "--force-recreate")
            self.state = EnvironmentState.RUNNING
            return result

    def restart(self, service_name: str) -> CommandResult:
        with self._exclusive("restart"):
            if self.state != EnvironmentState.RUNNING:
                self.state = self._probe().state
            if self.state != EnvironmentState.RUNNING:
                raise MissingPrerequisiteError(
                    f"Cannot restart '{service_name}': the environment is not running.",
                    hint="Run `wordpressify env:start` first.",
                )
            return self._compose("restart", service_name)

    def stop(self) -> CommandResult:
        """Bring the stack down. compose treats `down` on a stopped stack as a no-op."""
        with self._exclusive("stop"):
            result = self._compose("down")
            self.state = (
                EnvironmentState.PROVISIONED_STOPPED
                if self.provisioner.is_provisioned(self.resources)
                else EnvironmentState.UNPROVISIONED
            )
            return result

    def teardown_and_clean(self) -> List[EnvironmentResource]:
        """Stop the stack and delete every provisioned resource."""
        with self._exclusive("teardown"):
            self._compose("down")
            removed = self.provisioner.remove_all(self.resources)
            self.state = EnvironmentState.UNPROVISIONED
            return removed

    def probe(self) -> EnvironmentProbeResult:
        """Refresh the in-memory state from disk and `compose ps`."""
        with self._exclusive("probe"):
            result = self._probe()
            self.state = result.state
            return result

    def _probe(self) -> EnvironmentProbeResult:
        if not self.provisioner.is_provisioned(self.resources):
            return EnvironmentProbeResult(
                state=EnvironmentState.UNPROVISIONED,
                reason="Environment resources are missing.",
            )

        result = self.runner.run(
            [*self.compose_command, "ps", "-q", "--status", "running"],
            cwd=self.root_dir,
            stream=False,
        )
        if not result.ok:
            raise ExternalProcessError(result)

        containers = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if containers:
            return EnvironmentProbeResult(
                state=EnvironmentState.RUNNING,
                running_containers=containers,
                reason=f"{len(containers)} container(s) running.",
            )
        return EnvironmentProbeResult(
            state=EnvironmentState.PROVISIONED_STOPPED,
            reason="No running containers.",
        )

    def _require_provisioned(self, operation: str) -> None:
        if not self.provisioner.is_provisioned(self.resources):
            raise MissingPrerequisiteError(
                f"Cannot {operation} the environment before it is provisioned.",
                hint="Run `wordpressify env:start` or `wordpressify env:build`.",
            )

    def _compose(self, *args: str) -> CommandResult:
        command = [*self.compose_command, *args]
        logger.info("running %s", " ".join(command))
        result = self.runner.run(command, cwd=self.root_dir)
        if not result.ok:
            raise ExternalProcessError(result)
        return result

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise EnvironmentBusyError(
                f"Environment operation '{operation}' requested while another one is running."
            )
        try:
            yield
        finally:
            self._lock.release()
