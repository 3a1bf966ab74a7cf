from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'wordpressify' section in wordpressify.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='WORDPRESSIFY_', extra='ignore')

    theme_name: str = Field(default="wordpressify", pattern=r'^[a-zA-Z0-9][a-zA-Z0-9_-]*$')
    log_level: str = "INFO"


class ServerSettings(BaseSettings):
    """
    Development server ports (the 'server' section, SERVER_PORT/PROXY_PORT and the project .env).
    """
    model_config = SettingsConfigDict(extra='ignore', populate_by_name=True)

    # Environment override is WORDPRESSIFY_HOST, never plain HOST.
    host: str = Field(default="127.0.0.1", validation_alias="WORDPRESSIFY_HOST")
    server_port: int = Field(default=3020, ge=1, le=65535)
    proxy_port: int = Field(default=3010, ge=1, le=65535)

    @property
    def proxy_target(self) -> str:
        return f"{self.host}:{self.server_port}"


class EnvironmentSettings(BaseModel):
    """
    Container environment settings (the 'environment' section).
    """
    model_config = ConfigDict(extra='ignore')

    compose_command: List[str] = Field(default_factory=lambda: ["docker", "compose"])
    service: str = "wordpress"
    # Overrides the platform default host used by xdebug inside the container.
    xdebug_client_host: Optional[str] = None


class PathSettings(BaseModel):
    """
    Project layout, relative to the project root (the 'paths' section).
    """
    model_config = ConfigDict(extra='ignore')

    src: str = "src"
    build: str = "build"
    dist: str = "dist"
    backups: str = "backups"


class WatchSettings(BaseModel):
    """
    Watcher settings (the 'watch' section).
    """
    model_config = ConfigDict(extra='ignore')

    interval_ms: int = Field(default=500, ge=50)
    debounce_ms: int = Field(default=100, ge=0)
    exclude_patterns: List[str] = Field(default_factory=lambda: ["**/.DS_Store", "**/*~"])
