"""Watch, reload and dev-session runtime components."""

from wordpressify.runtime.dispatcher import BindingRunEvent, WatchBinding, WatchDispatcher
from wordpressify.runtime.reload import ReloadBroadcastServer, ReloadMode, ReloadSignal
from wordpressify.runtime.session import (
    DevSession,
    InterruptCoordinator,
    PendingCompletion,
    Supervisor,
)

__all__ = [
    "BindingRunEvent",
    "DevSession",
    "InterruptCoordinator",
    "PendingCompletion",
    "ReloadBroadcastServer",
    "ReloadMode",
    "ReloadSignal",
    "Supervisor",
    "WatchBinding",
    "WatchDispatcher",
]
