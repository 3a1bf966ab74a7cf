from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from wordpressify.config.loader import CONFIG_FILE_NAME, load_config
from wordpressify.core.models import (
    EnvironmentSettings,
    FrameworkSettings,
    PathSettings,
    ServerSettings,
    WatchSettings,
)


class WorkflowContext(BaseModel):
    """
    Project-wide settings and resolved paths shared by every command.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    root_dir: Path

    # Framework Settings (Maps to 'wordpressify' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # Dev server ports (Maps to 'server' section, SERVER_PORT/PROXY_PORT env vars)
    server: ServerSettings = Field(default_factory=ServerSettings)

    # Container environment (Maps to 'environment' section)
    environment: EnvironmentSettings = Field(default_factory=EnvironmentSettings)

    # Project layout (Maps to 'paths' section)
    paths: PathSettings = Field(default_factory=PathSettings)

    # Watcher tuning (Maps to 'watch' section)
    watch: WatchSettings = Field(default_factory=WatchSettings)

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally seeding sections from a config dictionary.
        """
        if config_dict:
            if 'settings' not in data:
                data['settings'] = FrameworkSettings(**config_dict.get('wordpressify', {}))
            if 'environment' not in data:
                data['environment'] = EnvironmentSettings(**config_dict.get('environment', {}))
            if 'paths' not in data:
                data['paths'] = PathSettings(**config_dict.get('paths', {}))
            if 'watch' not in data:
                data['watch'] = WatchSettings(**config_dict.get('watch', {}))
            if 'server' not in data:
                data['server'] = ServerSettings(**config_dict.get('server', {}))

        super().__init__(**data)

    @classmethod
    def load(cls, root_dir: Path) -> "WorkflowContext":
        """Build a context from <root>/wordpressify.yaml and <root>/.env."""
        root = root_dir.expanduser().resolve()
        config_data = load_config(root / CONFIG_FILE_NAME)
        env_file = root / ".env"
        server = ServerSettings(
            _env_file=env_file if env_file.exists() else None,
            **config_data.get('server', {}),
        )
        return cls(config_dict=config_data, root_dir=root, server=server)

    @property
    def theme_name(self) -> str:
        return self.settings.theme_name

    @property
    def src_dir(self) -> Path:
        return self.root_dir / self.paths.src

    @property
    def build_dir(self) -> Path:
        return self.root_dir / self.paths.build

    @property
    def wordpress_dir(self) -> Path:
        return self.build_dir / "wordpress"

    @property
    def theme_build_dir(self) -> Path:
        return self.wordpress_dir / "wp-content" / "themes" / self.theme_name

    @property
    def plugins_build_dir(self) -> Path:
        return self.wordpress_dir / "wp-content" / "plugins"

    @property
    def dist_dir(self) -> Path:
        return self.root_dir / self.paths.dist

    @property
    def theme_dist_dir(self) -> Path:
        return self.dist_dir / "themes" / self.theme_name

    @property
    def archive_path(self) -> Path:
        return self.dist_dir / f"{self.theme_name}.zip"

    @property
    def backups_dir(self) -> Path:
        return self.root_dir / self.paths.backups
