"""
The `dev` session: state machine, pending completion and interrupt handling.

Only the Supervisor installs a process signal handler, and all that handler
does is call InterruptCoordinator.on_interrupt().
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Callable, Optional, Union

from wordpressify.environment.controller import ExternalEnvironmentController
from wordpressify.runtime.contracts import WorkflowState, transition_workflow_state
from wordpressify.runtime.dispatcher import BindingRunEvent, WatchBinding, WatchDispatcher
from wordpressify.tasks.scheduler import Node, TaskScheduler
from wordpressify.utils.diagnostics import WordpressifyError

logger = logging.getLogger(__name__)


class PendingCompletion:
    """Resolvable-once marker for "the serve session has not finished yet"."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self._event.is_set()

    def resolve(self, reason: str = "completed") -> bool:
        """Resolve the completion; returns False if it was already resolved."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> str:
        await self._event.wait()
        return self.reason or "completed"


class DevSession:
    """Owns the pending completion of one serve session."""

    def __init__(self) -> None:
        self.pending: Optional[PendingCompletion] = None

    @property
    def has_outstanding(self) -> bool:
        return self.pending is not None and not self.pending.is_resolved

    def begin(self) -> PendingCompletion:
        if self.has_outstanding:
            raise RuntimeError("A serve session is already waiting for completion.")
        self.pending = PendingCompletion()
        return self.pending

    def complete(self, reason: str = "completed") -> bool:
        if self.pending is None:
            return False
        return self.pending.resolve(reason)


class InterruptCoordinator:
    """
    Handles the first interrupt: resolve the outstanding completion, stop the
    environment, exit. Later interrupts are ignored.
    """

    def __init__(
        self,
        session: DevSession,
        controller: ExternalEnvironmentController,
        exit_fn: Callable[[int], None] = sys.exit,
        on_teardown: Optional[Callable[[], None]] = None,
    ) -> None:
        self.session = session
        self.controller = controller
        self.exit_fn = exit_fn
        self.on_teardown = on_teardown
        self.triggered = False

    def on_interrupt(self) -> None:
        if self.triggered:
            return
        self.triggered = True

        self.session.complete("interrupted")
        if self.on_teardown is not None:
            self.on_teardown()

        status = 0
        try:
            self.controller.stop()
        except WordpressifyError as exc:
            logger.error("could not stop the environment: %s", exc)
            status = 1

        self.exit_fn(status)


class Supervisor:
    """Runs the `dev` workflow: provision, start, build once, serve until interrupted."""

    def __init__(
        self,
        controller: ExternalEnvironmentController,
        scheduler: TaskScheduler,
        dispatcher: WatchDispatcher,
        initial_build: Union[str, Node],
        reload_server=None,
        install_signal_handlers: bool = True,
        on_state: Optional[Callable[[WorkflowState], None]] = None,
        on_binding_run: Optional[Callable[[BindingRunEvent], None]] = None,
    ) -> None:
        self.controller = controller
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.initial_build = initial_build
        self.reload_server = reload_server
        self.install_signal_handlers = install_signal_handlers
        self.on_state = on_state
        self.on_binding_run = on_binding_run

        self.state = WorkflowState.IDLE
        self.session = DevSession()
        self.coordinator = InterruptCoordinator(
            self.session,
            controller,
            exit_fn=self._terminate,
            on_teardown=lambda: self._transition(WorkflowState.TEARDOWN),
        )
        self.exit_code: Optional[int] = None
        self._active_runs = 0
        self._remove_signal_handler: Optional[Callable[[], None]] = None

        self.dispatcher.on_run_start = self._binding_started
        self.dispatcher.on_run = self._binding_finished

    async def run_dev(self) -> int:
        """Run the session; returns the process exit status."""
        try:
            self._transition(WorkflowState.PROVISIONING)
            await asyncio.to_thread(self.controller.provision)
            self._transition(WorkflowState.ENVIRONMENT_STARTING)
            await asyncio.to_thread(self.controller.start)
            self._transition(WorkflowState.ENVIRONMENT_READY)
        except WordpressifyError:
            self._transition(WorkflowState.TERMINATED)
            self.exit_code = 1
            raise

        # The containers are up from here on, so an interrupt must reach stop().
        pending = self.session.begin()
        if self.install_signal_handlers:
            self._install_interrupt_handler()
        try:
            if not await self._initial_build(pending):
                return self.exit_code
            failure = await self._serve(pending)
        finally:
            if self._remove_signal_handler is not None:
                self._remove_signal_handler()
                self._remove_signal_handler = None

        if self.exit_code is None:
            # The serve loop ended without an interrupt; tear down like an interrupt would.
            if failure is not None:
                logger.error("watch loop crashed: %s", failure)
            self._teardown(1 if failure is not None else 0)

        return self.exit_code

    async def _initial_build(self, pending: PendingCompletion) -> bool:
        """Build once; returns False when an interrupt ended the session first."""
        self._transition(WorkflowState.INITIAL_BUILD)
        loop = asyncio.get_running_loop()
        build = loop.create_task(self.scheduler.run(self.initial_build))
        interrupted = loop.create_task(pending.wait())
        await asyncio.wait({build, interrupted}, return_when=asyncio.FIRST_COMPLETED)
        interrupted.cancel()
        await asyncio.gather(interrupted, return_exceptions=True)

        if self.coordinator.triggered:
            # The coordinator already stopped the environment.
            build.cancel()
            await asyncio.gather(build, return_exceptions=True)
            return False

        try:
            result = build.result()
        except Exception:
            self._teardown(1)
            raise
        if not result.ok:
            self._teardown(1)
            raise result.error
        return True

    async def _serve(self, pending: PendingCompletion) -> Optional[BaseException]:
        """Watch and rebuild until the session completes; returns the watch loop's crash, if any."""
        if self.reload_server is not None:
            try:
                self.reload_server.start()
            except OSError as exc:
                self._teardown(1)
                raise WordpressifyError(f"Cannot accept reload clients: {exc}") from exc

        self._transition(WorkflowState.SERVING)
        stop_event = asyncio.Event()
        self.dispatcher.start()
        serve_task = asyncio.get_running_loop().create_task(self.dispatcher.serve(stop_event))
        serve_task.add_done_callback(lambda _task: self.session.complete("serve loop ended"))

        try:
            await pending.wait()
        finally:
            stop_event.set()
            await asyncio.gather(serve_task, return_exceptions=True)
            self.dispatcher.stop()
            if self.reload_server is not None:
                self.reload_server.shutdown()

        if serve_task.cancelled():
            return None
        return serve_task.exception()

    def interrupt(self) -> None:
        """Deliver an interrupt as the signal handler would."""
        self.coordinator.on_interrupt()

    def _teardown(self, status: int) -> None:
        self._transition(WorkflowState.TEARDOWN)
        try:
            self.controller.stop()
        except WordpressifyError as exc:
            logger.error("could not stop the environment: %s", exc)
            status = 1
        self._terminate(status)

    def _terminate(self, status: int) -> None:
        self.exit_code = status
        self._transition(WorkflowState.TERMINATED)

    def _transition(self, target: WorkflowState) -> None:
        self.state = transition_workflow_state(self.state, target)
        logger.debug("dev session -> %s", self.state.value)
        if self.on_state is not None:
            self.on_state(self.state)

    def _binding_started(self, binding: WatchBinding) -> None:
        self._active_runs += 1
        if self.state == WorkflowState.SERVING:
            self._transition(WorkflowState.REBUILDING)

    def _binding_finished(self, event: BindingRunEvent) -> None:
        self._active_runs -= 1
        if self._active_runs == 0 and self.state == WorkflowState.REBUILDING:
            self._transition(WorkflowState.SERVING)
        if self.on_binding_run is not None:
            self.on_binding_run(event)

    def _install_interrupt_handler(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.coordinator.on_interrupt)
            self._remove_signal_handler = lambda: loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler.
            previous = signal.signal(
                signal.SIGINT,
                lambda _signum, _frame: loop.call_soon_threadsafe(self.coordinator.on_interrupt),
            )
            self._remove_signal_handler = lambda: signal.signal(signal.SIGINT, previous)
