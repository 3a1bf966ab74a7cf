from __future__ import annotations

from enum import Enum
from typing import Dict, Set, Tuple


class WatcherState(str, Enum):
    """High-level states for polling watcher lifecycle and dispatch progression."""

    STOPPED = "stopped"
    WATCHING = "watching"
    CHANGE_DETECTED = "change_detected"
    DEBOUNCING = "debouncing"
    DISPATCHING = "dispatching"


class WatcherEvent(str, Enum):
    """Events that drive watcher state transitions."""

    START = "start"
    FILE_CHANGE = "file_change"
    DEBOUNCE_WINDOW_OPEN = "debounce_window_open"
    DEBOUNCE_ELAPSED = "debounce_elapsed"
    DISPATCH_COMPLETE = "dispatch_complete"
    STOP = "stop"


WATCHER_TRANSITIONS: Dict[Tuple[WatcherState, WatcherEvent], WatcherState] = {
    (WatcherState.STOPPED, WatcherEvent.START): WatcherState.WATCHING,
    (WatcherState.WATCHING, WatcherEvent.FILE_CHANGE): WatcherState.CHANGE_DETECTED,
    (WatcherState.CHANGE_DETECTED, WatcherEvent.DEBOUNCE_WINDOW_OPEN): WatcherState.DEBOUNCING,
    # A change inside the window restarts it.
    (WatcherState.DEBOUNCING, WatcherEvent.FILE_CHANGE): WatcherState.CHANGE_DETECTED,
    (WatcherState.DEBOUNCING, WatcherEvent.DEBOUNCE_ELAPSED): WatcherState.DISPATCHING,
    (WatcherState.DISPATCHING, WatcherEvent.DISPATCH_COMPLETE): WatcherState.WATCHING,
}


def transition_watcher_state(current: WatcherState, event: WatcherEvent) -> WatcherState:
    """Next watcher state; STOP is accepted from anywhere, anything off the table raises ValueError."""
    if event == WatcherEvent.STOP:
        return WatcherState.STOPPED
    try:
        return WATCHER_TRANSITIONS[(current, event)]
    except KeyError:
        raise ValueError(f"Invalid watcher transition: {current} -> {event}") from None


class WorkflowState(str, Enum):
    """States of the top-level `dev` session."""

    IDLE = "idle"
    PROVISIONING = "provisioning"
    ENVIRONMENT_STARTING = "environment_starting"
    ENVIRONMENT_READY = "environment_ready"
    INITIAL_BUILD = "initial_build"
    SERVING = "serving"
    REBUILDING = "rebuilding"
    TEARDOWN = "teardown"
    TERMINATED = "terminated"


WORKFLOW_TRANSITIONS: Dict[WorkflowState, Set[WorkflowState]] = {
    WorkflowState.IDLE: {WorkflowState.PROVISIONING},
    WorkflowState.PROVISIONING: {WorkflowState.ENVIRONMENT_STARTING},
    WorkflowState.ENVIRONMENT_STARTING: {WorkflowState.ENVIRONMENT_READY},
    WorkflowState.ENVIRONMENT_READY: {WorkflowState.INITIAL_BUILD},
    WorkflowState.INITIAL_BUILD: {WorkflowState.SERVING},
    WorkflowState.SERVING: {WorkflowState.REBUILDING},
    WorkflowState.REBUILDING: {WorkflowState.SERVING},
    WorkflowState.TEARDOWN: {WorkflowState.TERMINATED},
    WorkflowState.TERMINATED: set(),
}


def transition_workflow_state(current: WorkflowState, target: WorkflowState) -> WorkflowState:
    """Validate one step of the dev session state machine.

    Any state before TERMINATED may move to TEARDOWN (interrupt or fatal error);
    provisioning, startup and initial build may also fail straight to TERMINATED.
    Invalid transitions raise ValueError.
    """

    if target == WorkflowState.TEARDOWN and current not in {WorkflowState.TEARDOWN, WorkflowState.TERMINATED}:
        return target

    if target == WorkflowState.TERMINATED and current in {
        WorkflowState.IDLE,
        WorkflowState.PROVISIONING,
        WorkflowState.ENVIRONMENT_STARTING,
        WorkflowState.ENVIRONMENT_READY,
        WorkflowState.INITIAL_BUILD,
    }:
        return target

    if target in WORKFLOW_TRANSITIONS[current]:
        return target

    raise ValueError(f"Invalid workflow transition: {current} -> {target}")
