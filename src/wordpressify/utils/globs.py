import re
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Iterable


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    """
    Translate a path glob into a regex.

    `**` spans directories (and may match nothing), `*` and `?` stay within
    one path segment, `[...]` is a character class.
    """
    pattern = pattern[2:] if pattern.startswith("./") else pattern
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif char == "*":
            parts.append("[^/]*")
            i += 1
        elif char == "?":
            parts.append("[^/]")
            i += 1
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
                i += 1
            else:
                parts.append("[" + pattern[i + 1:end].replace("\\", "\\\\") + "]")
                i = end + 1
        else:
            parts.append(re.escape(char))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def glob_match(relative_path: str, pattern: str) -> bool:
    """Match a posix relative path, or its file name, against a glob."""
    regex = compile_glob(pattern)
    if regex.match(relative_path):
        return True
    name = PurePosixPath(relative_path).name
    return "/" not in pattern and bool(regex.match(name))


def matches_any(relative_path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(relative_path, pattern) for pattern in patterns)


def glob_base(pattern: str) -> str:
    """Leading directory of a glob before its first wildcard segment."""
    pattern = pattern[2:] if pattern.startswith("./") else pattern
    base = []
    segments = pattern.split("/")
    for segment in segments[:-1]:
        if any(ch in segment for ch in "*?["):
            break
        base.append(segment)
    else:
        # No wildcard in the directory part: the base is the file's directory.
        return "/".join(segments[:-1])
    return "/".join(base)
