import itertools

import pytest

from wordpressify.runtime.contracts import (
    WATCHER_TRANSITIONS,
    WatcherEvent,
    WatcherState,
    WorkflowState,
    transition_watcher_state,
    transition_workflow_state,
)


def test_watcher_lifecycle_happy_path():
    state = WatcherState.STOPPED
    for event, expected in [
        (WatcherEvent.START, WatcherState.WATCHING),
        (WatcherEvent.FILE_CHANGE, WatcherState.CHANGE_DETECTED),
        (WatcherEvent.DEBOUNCE_WINDOW_OPEN, WatcherState.DEBOUNCING),
        (WatcherEvent.FILE_CHANGE, WatcherState.CHANGE_DETECTED),
        (WatcherEvent.DEBOUNCE_WINDOW_OPEN, WatcherState.DEBOUNCING),
        (WatcherEvent.DEBOUNCE_ELAPSED, WatcherState.DISPATCHING),
        (WatcherEvent.DISPATCH_COMPLETE, WatcherState.WATCHING),
        (WatcherEvent.STOP, WatcherState.STOPPED),
    ]:
        state = transition_watcher_state(state, event)
        assert state == expected


def test_watcher_invalid_transition_raises():
    with pytest.raises(ValueError, match="Invalid watcher transition"):
        transition_watcher_state(WatcherState.WATCHING, WatcherEvent.DEBOUNCE_ELAPSED)


@pytest.mark.parametrize("state", list(WatcherState))
def test_stop_is_accepted_from_every_watcher_state(state):
    assert transition_watcher_state(state, WatcherEvent.STOP) == WatcherState.STOPPED


def test_only_tabled_watcher_transitions_are_accepted():
    for state, event in itertools.product(WatcherState, WatcherEvent):
        if event == WatcherEvent.STOP:
            continue
        if (state, event) in WATCHER_TRANSITIONS:
            assert transition_watcher_state(state, event) == WATCHER_TRANSITIONS[(state, event)]
        else:
            with pytest.raises(ValueError, match="Invalid watcher transition"):
                transition_watcher_state(state, event)


def test_workflow_happy_path_and_rebuild_loop():
    state = WorkflowState.IDLE
    for target in [
        WorkflowState.PROVISIONING,
        WorkflowState.ENVIRONMENT_STARTING,
        WorkflowState.ENVIRONMENT_READY,
        WorkflowState.INITIAL_BUILD,
        WorkflowState.SERVING,
        WorkflowState.REBUILDING,
        WorkflowState.SERVING,
        WorkflowState.TEARDOWN,
        WorkflowState.TERMINATED,
    ]:
        state = transition_workflow_state(state, target)
    assert state == WorkflowState.TERMINATED


@pytest.mark.parametrize("current", [WorkflowState.SERVING, WorkflowState.REBUILDING, WorkflowState.INITIAL_BUILD])
def test_teardown_reachable_while_active(current):
    assert transition_workflow_state(current, WorkflowState.TEARDOWN) == WorkflowState.TEARDOWN


def test_startup_failure_can_terminate_directly():
    assert transition_workflow_state(WorkflowState.PROVISIONING, WorkflowState.TERMINATED) == WorkflowState.TERMINATED


@pytest.mark.parametrize(
    "current, target",
    [
        (WorkflowState.SERVING, WorkflowState.TERMINATED),
        (WorkflowState.TERMINATED, WorkflowState.TEARDOWN),
        (WorkflowState.TEARDOWN, WorkflowState.TEARDOWN),
        (WorkflowState.IDLE, WorkflowState.SERVING),
    ],
)
def test_invalid_workflow_transitions(current, target):
    with pytest.raises(ValueError, match="Invalid workflow transition"):
        transition_workflow_state(current, target)
