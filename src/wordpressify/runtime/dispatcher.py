"""
Maps filesystem changes to task runs and reload signals.

Each binding gets its own runner: a change while the binding's task is still
running marks it pending, and exactly one more run follows the current one,
no matter how many changes arrived in between.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from wordpressify.runtime.polling_watcher import PollingWatcher
from wordpressify.runtime.reload import ReloadMode, ReloadSignal
from wordpressify.tasks.scheduler import Node, TaskResult, TaskScheduler, TaskStatus
from wordpressify.utils.globs import glob_match

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchBinding:
    """Glob pattern (relative to the watched root), task to run, reload mode."""

    pattern: str
    task: Union[str, Node]
    mode: ReloadMode = ReloadMode.FULL
    # What scoped clients should refresh; defaults to the watched pattern.
    reload_match: Optional[str] = None

    @property
    def task_name(self) -> str:
        return self.task if isinstance(self.task, str) else self.task.name

    def matches(self, relative_path: str) -> bool:
        return glob_match(relative_path, self.pattern)


@dataclass(frozen=True)
class BindingRunEvent:
    """One finished run of a binding's task."""

    binding: WatchBinding
    result: TaskResult
    reloaded: bool


class _BindingRunner:
    def __init__(self, binding: WatchBinding, dispatcher: "WatchDispatcher") -> None:
        self.binding = binding
        self.dispatcher = dispatcher
        self.pending = False
        self.task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def trigger(self) -> None:
        if self.running:
            self.pending = True
            return
        self.task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            self.pending = False
            self.runs += 1
            await self.dispatcher._run_binding(self.binding)
            if not self.pending:
                return


class WatchDispatcher:
    """Watches a source tree and runs the bound task group for every change."""

    def __init__(
        self,
        root_dir: Path,
        scheduler: TaskScheduler,
        reload_signal: ReloadSignal,
        interval_ms: int = 500,
        debounce_ms: int = 100,
        exclude_patterns: Optional[List[str]] = None,
        on_run: Optional[Callable[[BindingRunEvent], None]] = None,
        on_run_start: Optional[Callable[[WatchBinding], None]] = None,
    ) -> None:
        self.root_dir = root_dir
        self.scheduler = scheduler
        self.reload_signal = reload_signal
        self.interval_ms = interval_ms
        self.debounce_ms = debounce_ms
        self.exclude_patterns = exclude_patterns or []
        self.on_run = on_run
        self.on_run_start = on_run_start

        self.bindings: List[WatchBinding] = []
        self._runners: Dict[WatchBinding, _BindingRunner] = {}
        self.watcher: Optional[PollingWatcher] = None

    def register(self, binding: WatchBinding) -> None:
        if binding in self._runners:
            raise ValueError(f"Binding for '{binding.pattern}' -> '{binding.task_name}' is already registered.")
        self.bindings.append(binding)
        self._runners[binding] = _BindingRunner(binding, self)

    def start(self, bindings: Optional[List[WatchBinding]] = None) -> None:
        """Register the given bindings and take the initial snapshot of the watched tree."""
        for binding in bindings or []:
            self.register(binding)

        if self.watcher is not None:
            return

        self.watcher = PollingWatcher(
            root_dir=self.root_dir,
            include_patterns=[binding.pattern for binding in self.bindings],
            interval_ms=self.interval_ms,
            debounce_ms=self.debounce_ms,
            exclude_patterns=self.exclude_patterns,
        )
        self.watcher.start()
        logger.info("watching %d pattern(s) under %s", len(self.bindings), self.root_dir)

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

    def dispatch(self, changed_paths: List[str]) -> List[WatchBinding]:
        """Trigger every binding matched by at least one changed path. Needs a running loop."""
        matched = [
            binding
            for binding in self.bindings
            if any(binding.matches(path) for path in changed_paths)
        ]
        for binding in matched:
            logger.debug("change in %s triggers '%s'", binding.pattern, binding.task_name)
            self._runners[binding].trigger()
        return matched

    def poll_once(self, now: float) -> List[WatchBinding]:
        """Run a single watcher poll cycle; returns the bindings it triggered."""
        if self.watcher is None:
            return []

        poll_result = self.watcher.poll(now=now)
        if not poll_result.should_dispatch:
            return []

        try:
            return self.dispatch(poll_result.changed_paths)
        finally:
            self.watcher.complete_dispatch()

    async def serve(self, stop_event: asyncio.Event) -> None:
        """Poll until stop_event is set. Started bindings keep running in the background."""
        if self.watcher is None:
            self.start()

        interval_seconds = max(self.interval_ms / 1000.0, 0.05)
        while not stop_event.is_set():
            self.poll_once(now=time.monotonic())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def drain(self) -> None:
        """Wait for every in-flight binding run, including queued trailing runs."""
        while True:
            tasks = [runner.task for runner in self._runners.values() if runner.running]
            if not tasks:
                return
            await asyncio.gather(*tasks)

    def run_count(self, binding: WatchBinding) -> int:
        return self._runners[binding].runs

    async def _run_binding(self, binding: WatchBinding) -> None:
        if self.on_run_start is not None:
            self.on_run_start(binding)
        try:
            result = await self.scheduler.run(binding.task)
        except Exception as exc:
            # Unknown task names and the like still count as a finished, failed run.
            result = TaskResult(
                status=TaskStatus.FAILURE,
                task_name=binding.task_name,
                error=exc,
                failed_task=binding.task_name,
            )
        reloaded = False
        if result.clean:
            self.reload_signal.notify(binding.mode, binding.reload_match or binding.pattern)
            reloaded = True
        elif not result.ok:
            logger.error("'%s' failed in '%s': %s", binding.task_name, result.failed_task, result.error)
        else:
            logger.warning("'%s' finished with %d error(s); not reloading", binding.task_name, len(result.diagnostics))

        if self.on_run is not None:
            self.on_run(BindingRunEvent(binding=binding, result=result, reloaded=reloaded))
