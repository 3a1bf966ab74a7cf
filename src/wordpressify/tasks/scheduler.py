"""
Task composition and execution.

A Task wraps one action. Sequence and Parallel compose tasks (and each other)
into named units; TaskScheduler runs a unit and returns a TaskResult.

Failure policy depends on the task kind:
- fatal tasks (provisioning, containers): an exception fails the enclosing
  composite; a Sequence skips its remaining members.
- stream tasks (file transforms): exceptions and per-item failures become
  PipelineDiagnostic entries, are reported, and the composite carries on.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from wordpressify.tasks.registry import Registry
from wordpressify.utils.diagnostics import PipelineDiagnostic, PipelineError

logger = logging.getLogger(__name__)


class TaskKind(str, Enum):
    FATAL = "fatal"
    STREAM = "stream"


class TaskStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Task:
    """A named unit of work. Stream actions may return a list of PipelineDiagnostic."""

    name: str
    action: Callable[[], Any]
    kind: TaskKind = TaskKind.FATAL
    description: Optional[str] = None


@dataclass(frozen=True)
class Sequence:
    """Members run strictly in order."""

    name: str
    members: Tuple["Node", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))


@dataclass(frozen=True)
class Parallel:
    """Members start together; completes when all of them have."""

    name: str
    members: Tuple["Node", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))


Node = Union[Task, Sequence, Parallel]


def series(name: str, *members: Node) -> Sequence:
    return Sequence(name=name, members=members)


def parallel(name: str, *members: Node) -> Parallel:
    return Parallel(name=name, members=members)


def stream_task(name: str, action: Callable[[], Any], description: Optional[str] = None) -> Task:
    return Task(name=name, action=action, kind=TaskKind.STREAM, description=description)


@dataclass
class TaskResult:
    """Outcome of running a task or composite."""

    status: TaskStatus
    task_name: str
    error: Optional[BaseException] = None
    failed_task: Optional[str] = None
    diagnostics: List[PipelineDiagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.SUCCESS

    @property
    def clean(self) -> bool:
        """Succeeded without any reported pipeline failure."""
        return self.ok and not self.diagnostics


DiagnosticHandler = Callable[[PipelineDiagnostic], None]


def _log_diagnostic(diagnostic: PipelineDiagnostic) -> None:
    logger.warning("%s", diagnostic)


class TaskScheduler:
    """Runs tasks and composites on the current asyncio loop."""

    def __init__(
        self,
        registry: Optional[Registry[Node]] = None,
        on_diagnostic: Optional[DiagnosticHandler] = None,
    ) -> None:
        self.registry = registry if registry is not None else Registry()
        self.on_diagnostic = on_diagnostic or _log_diagnostic

    def resolve(self, task: Union[str, Node]) -> Node:
        if isinstance(task, str):
            return self.registry.get(task)
        return task

    async def run(self, task: Union[str, Node]) -> TaskResult:
        """Run a task, composite, or registered name to completion."""
        return await self._run_node(self.resolve(task))

    def run_sync(self, task: Union[str, Node]) -> TaskResult:
        """Run from synchronous code with a fresh event loop."""
        return asyncio.run(self.run(task))

    async def _run_node(self, node: Node) -> TaskResult:
        if isinstance(node, Task):
            return await self._run_task(node)
        if isinstance(node, Sequence):
            return await self._run_sequence(node)
        if isinstance(node, Parallel):
            return await self._run_parallel(node)
        raise TypeError(f"Not a task or composite: {node!r}")

    async def _run_task(self, task: Task) -> TaskResult:
        logger.debug("starting '%s'", task.name)
        try:
            if inspect.iscoroutinefunction(task.action):
                outcome = await task.action()
            else:
                outcome = await asyncio.to_thread(task.action)
        except Exception as exc:
            if task.kind == TaskKind.STREAM:
                if isinstance(exc, PipelineError):
                    diagnostic = exc.to_diagnostic(task.name)
                else:
                    diagnostic = PipelineDiagnostic(task_name=task.name, message=str(exc) or type(exc).__name__)
                self._report([diagnostic])
                return TaskResult(status=TaskStatus.SUCCESS, task_name=task.name, diagnostics=[diagnostic])

            logger.error("'%s' failed: %s", task.name, exc)
            return TaskResult(
                status=TaskStatus.FAILURE,
                task_name=task.name,
                error=exc,
                failed_task=task.name,
            )

        diagnostics: List[PipelineDiagnostic] = []
        if task.kind == TaskKind.STREAM and isinstance(outcome, list):
            diagnostics = [item for item in outcome if isinstance(item, PipelineDiagnostic)]
            self._report(diagnostics)

        logger.debug("finished '%s'", task.name)
        return TaskResult(status=TaskStatus.SUCCESS, task_name=task.name, diagnostics=diagnostics)

    async def _run_sequence(self, sequence: Sequence) -> TaskResult:
        diagnostics: List[PipelineDiagnostic] = []
        for member in sequence.members:
            result = await self._run_node(member)
            diagnostics.extend(result.diagnostics)
            if not result.ok:
                return TaskResult(
                    status=TaskStatus.FAILURE,
                    task_name=sequence.name,
                    error=result.error,
                    failed_task=result.failed_task,
                    diagnostics=diagnostics,
                )
        return TaskResult(status=TaskStatus.SUCCESS, task_name=sequence.name, diagnostics=diagnostics)

    async def _run_parallel(self, group: Parallel) -> TaskResult:
        completed: List[TaskResult] = []

        async def track(member: Node) -> None:
            completed.append(await self._run_node(member))

        await asyncio.gather(*(track(member) for member in group.members))

        diagnostics = [diag for result in completed for diag in result.diagnostics]
        failures = [result for result in completed if not result.ok]
        if not failures:
            return TaskResult(status=TaskStatus.SUCCESS, task_name=group.name, diagnostics=diagnostics)

        first = failures[0]
        for other in failures[1:]:
            logger.error("'%s' also failed in '%s': %s", other.failed_task, group.name, other.error)
        return TaskResult(
            status=TaskStatus.FAILURE,
            task_name=group.name,
            error=first.error,
            failed_task=first.failed_task,
            diagnostics=diagnostics,
        )

    def _report(self, diagnostics: Iterable[PipelineDiagnostic]) -> None:
        for diagnostic in diagnostics:
            self.on_diagnostic(diagnostic)
