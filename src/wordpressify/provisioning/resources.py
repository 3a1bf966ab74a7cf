from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from wordpressify.provisioning.platform import PlatformAdapter
from wordpressify.utils.diagnostics import ProvisioningError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryResource:
    """A directory that must exist before the containers start."""

    path: str


@dataclass(frozen=True)
class TemplateResource:
    """A file generated once from `template` by replacing `{{TOKEN}}` placeholders."""

    path: str
    template: str
    placeholders: Tuple[str, ...]


EnvironmentResource = Union[DirectoryResource, TemplateResource]


def default_resources(build_dir: str = "build") -> List[EnvironmentResource]:
    """Resources needed by the docker compose stack, in provisioning order."""
    return [
        DirectoryResource(build_dir),
        DirectoryResource(f"{build_dir}/wordpress"),
        DirectoryResource("xdebug"),
        TemplateResource("Dockerfile", "Dockerfile.in", ("UID", "GID")),
        TemplateResource("config/php.ini", "config/php.ini.in", ("XDEBUG_CLIENT_HOST",)),
        TemplateResource(".env", ".env.in", ("WPFY_UID", "WPFY_GID")),
    ]


def substitute_placeholders(content: str, values: dict, placeholders: Iterable[str]) -> str:
    """Replace every {{TOKEN}} for the declared tokens; anything else is left alone."""
    for token in placeholders:
        pattern = re.compile(r"\{\{" + re.escape(token) + r"\}\}")
        content = pattern.sub(lambda _match: str(values[token]), content)
    return content


class TemplateResourceProvisioner:
    """Materializes environment resources under a project root, each exactly once."""

    def __init__(self, root_dir: Path, platform: PlatformAdapter) -> None:
        self.root_dir = root_dir
        self.platform = platform

    def target(self, resource: EnvironmentResource) -> Path:
        return self.root_dir / resource.path

    def exists(self, resource: EnvironmentResource) -> bool:
        return self.target(resource).exists()

    def ensure(self, resource: EnvironmentResource) -> bool:
        """Create the resource if absent. Returns True when something was written."""
        target = self.target(resource)
        if target.exists():
            return False

        try:
            if isinstance(resource, DirectoryResource):
                target.mkdir(parents=True, exist_ok=True)
            else:
                template = self.root_dir / resource.template
                content = template.read_text(encoding="utf-8")
                rendered = substitute_placeholders(
                    content,
                    self._values_for(resource.placeholders),
                    resource.placeholders,
                )
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(rendered, encoding="utf-8")
        except OSError as exc:
            raise ProvisioningError(resource.path, str(exc)) from exc

        logger.info("provisioned %s", resource.path)
        return True

    def ensure_all(self, resources: Iterable[EnvironmentResource]) -> List[EnvironmentResource]:
        """Ensure every resource in order; returns the ones that were created."""
        return [resource for resource in resources if self.ensure(resource)]

    def is_provisioned(self, resources: Iterable[EnvironmentResource]) -> bool:
        return all(self.exists(resource) for resource in resources)

    def remove_all(self, resources: Iterable[EnvironmentResource]) -> List[EnvironmentResource]:
        """Delete provisioned resources; returns the ones that existed."""
        removed: List[EnvironmentResource] = []
        # Reverse order so nested directories go before their parents.
        for resource in reversed(list(resources)):
            target = self.target(resource)
            if not target.exists():
                continue
            try:
                if target.is_dir():
                    shutil.rmtree(target)
                else:
                    target.unlink()
            except OSError as exc:
                raise ProvisioningError(resource.path, str(exc)) from exc
            removed.append(resource)
            logger.info("removed %s", resource.path)
        return removed

    def _values_for(self, placeholders: Iterable[str]) -> dict:
        tokens = list(placeholders)
        values = self.platform.values(tokens)
        missing = [token for token in tokens if token not in values]
        if missing:
            raise ProvisioningError(", ".join(missing), "no platform value for placeholder")
        return values
