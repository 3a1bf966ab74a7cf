"""
Snapshot polling over a source tree.

Each poll walks the tree, fingerprints every tracked file by (mtime, size) and
diffs against the previous walk. Changes accumulate until the tree has been
quiet for `debounce_ms`; the accumulated paths are then handed out once.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from wordpressify.runtime.contracts import (
    WatcherEvent,
    WatcherState,
    transition_watcher_state,
)
from wordpressify.utils.globs import matches_any

FileStamp = Tuple[int, int]


@dataclass(frozen=True)
class WatcherPollResult:
    """What one poll produced: nothing yet, or a settled batch of changed paths."""

    should_dispatch: bool
    changed_paths: List[str]


_NOTHING = WatcherPollResult(should_dispatch=False, changed_paths=[])


class PollingWatcher:
    """Watches the files under root_dir that match include_patterns and none of exclude_patterns."""

    def __init__(
        self,
        root_dir: Path,
        include_patterns: List[str],
        interval_ms: int = 500,
        debounce_ms: int = 100,
        exclude_patterns: Optional[List[str]] = None,
    ) -> None:
        self.root_dir = root_dir
        self.include_patterns = list(include_patterns)
        self.exclude_patterns = list(exclude_patterns or [])
        self.interval_ms = interval_ms
        self.debounce_ms = debounce_ms

        self.state: WatcherState = WatcherState.STOPPED
        self._stamps: Dict[str, FileStamp] = {}
        self._batch: Set[str] = set()
        self._quiet_since: Optional[float] = None

    def start(self) -> None:
        self.state = transition_watcher_state(self.state, WatcherEvent.START)
        self._stamps = self._scan()

    def stop(self) -> None:
        self.state = transition_watcher_state(self.state, WatcherEvent.STOP)
        self._batch.clear()
        self._quiet_since = None

    def complete_dispatch(self) -> None:
        """Resume watching once the last batch was handed off."""
        if self.state == WatcherState.DISPATCHING:
            self.state = transition_watcher_state(self.state, WatcherEvent.DISPATCH_COMPLETE)

    def tracked_paths(self) -> Set[str]:
        return set(self._stamps)

    def poll(self, now: float) -> WatcherPollResult:
        if self.state == WatcherState.STOPPED:
            raise RuntimeError("PollingWatcher is not started. Call start() before poll().")
        if self.state == WatcherState.DISPATCHING:
            return _NOTHING

        stamps = self._scan()
        changed = _diff(self._stamps, stamps)
        self._stamps = stamps

        if changed:
            self._batch |= changed
            self._quiet_since = now
            # Every new change restarts the debounce window.
            self.state = transition_watcher_state(self.state, WatcherEvent.FILE_CHANGE)
            self.state = transition_watcher_state(self.state, WatcherEvent.DEBOUNCE_WINDOW_OPEN)
            return _NOTHING

        if not self._settled(now):
            return _NOTHING

        self.state = transition_watcher_state(self.state, WatcherEvent.DEBOUNCE_ELAPSED)
        batch = sorted(self._batch)
        self._batch.clear()
        self._quiet_since = None
        return WatcherPollResult(should_dispatch=True, changed_paths=batch)

    def _settled(self, now: float) -> bool:
        if self.state != WatcherState.DEBOUNCING or self._quiet_since is None:
            return False
        return (now - self._quiet_since) * 1000.0 >= self.debounce_ms

    def _scan(self) -> Dict[str, FileStamp]:
        stamps: Dict[str, FileStamp] = {}
        for relative, path in self._walk():
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Gone between listing and stat; the next scan reports it.
                continue
            stamps[relative] = (stat.st_mtime_ns, stat.st_size)
        return stamps

    def _walk(self) -> Iterator[Tuple[str, Path]]:
        if not self.root_dir.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            base = Path(dirpath)
            prefix = base.relative_to(self.root_dir).as_posix()
            prefix = "" if prefix == "." else prefix + "/"
            # Prune excluded directories (node_modules and the like) instead of listing them.
            dirnames[:] = [
                name for name in dirnames
                if not matches_any(f"{prefix}{name}/", self.exclude_patterns)
            ]
            for name in filenames:
                relative = prefix + name
                if matches_any(relative, self.include_patterns) and not matches_any(relative, self.exclude_patterns):
                    yield relative, base / name


def _diff(before: Dict[str, FileStamp], after: Dict[str, FileStamp]) -> Set[str]:
    appeared_or_vanished = set(before).symmetric_difference(after)
    modified = {path for path in set(before) & set(after) if before[path] != after[path]}
    return appeared_or_vanished | modified
