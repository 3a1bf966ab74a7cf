"""Blocking invocation of external commands, returning a result instead of raising."""
from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    command: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    streamed: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.command)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        stream: bool = True,
    ) -> CommandResult:
        raise NotImplementedError


class SubprocessCommandRunner(CommandRunner):
    """Runs commands with :mod:`subprocess`, blocking until they exit."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        stream: bool = True,
    ) -> CommandResult:
        logger.debug("exec %s (cwd=%s)", " ".join(command), cwd)
        try:
            if stream:
                # Output goes straight to the terminal, like docker's own progress output.
                process = subprocess.run(command, cwd=str(cwd) if cwd else None, check=False)
                return CommandResult(command=list(command), returncode=process.returncode, streamed=True)

            process = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            return CommandResult(command=list(command), returncode=127, stderr=str(exc))

        return CommandResult(
            command=list(command),
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )


@dataclass
class RecordingCommandRunner(CommandRunner):
    """Records commands instead of executing them, answering with canned return codes and output."""

    returncodes: dict = field(default_factory=dict)
    outputs: dict = field(default_factory=dict)
    commands: List[List[str]] = field(default_factory=list)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        stream: bool = True,
    ) -> CommandResult:
        self.commands.append(list(command))
        key = " ".join(command)
        return CommandResult(
            command=list(command),
            returncode=self.returncodes.get(key, 0),
            stdout=self.outputs.get(key, ""),
        )
