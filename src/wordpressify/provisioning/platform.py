from __future__ import annotations

import os
import sys
from typing import Callable, Dict, Iterable, Optional

from wordpressify.environment.command_runner import CommandRunner, SubprocessCommandRunner
from wordpressify.utils.diagnostics import ProvisioningError

# Docker network gateway declared in docker-compose.yml for Linux hosts.
LINUX_DOCKER_HOST = "172.29.0.1"
DOCKER_DESKTOP_HOST = "host.docker.internal"


class PlatformAdapter:
    """Supplies the identity and host-address values written into provisioned templates."""

    name = "abstract"

    def __init__(self, host_override: Optional[str] = None) -> None:
        self.host_override = host_override

    def uid(self) -> str:
        raise NotImplementedError

    def gid(self) -> str:
        raise NotImplementedError

    def default_host_address(self) -> str:
        raise NotImplementedError

    def host_address(self) -> str:
        return self.host_override or self.default_host_address()

    def resolvers(self) -> Dict[str, Callable[[], str]]:
        """Template tokens mapped to the call that produces each value."""
        return {
            "UID": self.uid,
            "GID": self.gid,
            "WPFY_UID": self.uid,
            "WPFY_GID": self.gid,
            "XDEBUG_CLIENT_HOST": self.host_address,
        }

    def values(self, tokens: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """Placeholder values keyed by template token; only the requested tokens are computed."""
        resolvers = self.resolvers()
        wanted = resolvers if tokens is None else tokens
        return {token: resolvers[token]() for token in wanted if token in resolvers}


class PosixPlatform(PlatformAdapter):
    name = "linux"

    def uid(self) -> str:
        return str(os.getuid())

    def gid(self) -> str:
        return str(os.getgid())

    def default_host_address(self) -> str:
        return LINUX_DOCKER_HOST


class DarwinPlatform(PosixPlatform):
    name = "darwin"

    def default_host_address(self) -> str:
        return DOCKER_DESKTOP_HOST


class WindowsPlatform(PlatformAdapter):
    """Windows has no os.getuid; ask the `id` tool shipped with Git Bash/WSL."""

    name = "win32"

    def __init__(self, host_override: Optional[str] = None, runner: Optional[CommandRunner] = None) -> None:
        super().__init__(host_override)
        self.runner = runner or SubprocessCommandRunner()
        self._cache: Dict[str, str] = {}

    def _id(self, flag: str) -> str:
        if flag not in self._cache:
            result = self.runner.run(["id", flag], stream=False)
            if not result.ok:
                raise ProvisioningError("id " + flag, result.stderr.strip() or f"exit code {result.returncode}")
            self._cache[flag] = result.stdout.strip()
        return self._cache[flag]

    def uid(self) -> str:
        return self._id("-u")

    def gid(self) -> str:
        return self._id("-g")

    def default_host_address(self) -> str:
        return DOCKER_DESKTOP_HOST


def select_platform(
    platform: Optional[str] = None,
    host_override: Optional[str] = None,
    runner: Optional[CommandRunner] = None,
) -> PlatformAdapter:
    """Pick the adapter for the running platform (or the given sys.platform value)."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsPlatform(host_override=host_override, runner=runner)
    if platform == "darwin":
        return DarwinPlatform(host_override=host_override)
    return PosixPlatform(host_override=host_override)
