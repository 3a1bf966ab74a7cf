"""Local WordPress theme development workflow."""

from wordpressify.tasks.scheduler import Parallel, Sequence, Task, TaskKind, TaskScheduler, parallel, series, stream_task

__version__ = "0.5.0"

__all__ = [
    "Parallel",
    "Sequence",
    "Task",
    "TaskKind",
    "TaskScheduler",
    "parallel",
    "series",
    "stream_task",
]
