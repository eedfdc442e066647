"""Configuration management."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .global_config import Path as GlobalPath
from .util.error import ConfigError
from .util.log import Log, LogLevel


def _default_args() -> List[str]:
    return [
        "--logLevel=Information",
        f"--extensionLogDirectory={GlobalPath.server_log}",
        "--stdio",
    ]


class ConfigModel(BaseModel):
    """Configuration model."""

    log_level: Optional[LogLevel] = None
    # When false, watcher registrations from the server are emptied
    filewatching: bool = True
    # Always start on the selected solution once one has been chosen
    lock_target: bool = False
    # Search below the git root for solutions, not only upwards
    broad_search: bool = False
    exe: List[str] = Field(default_factory=lambda: ["Microsoft.CodeAnalysis.LanguageServer"])
    args: List[str] = Field(default_factory=_default_args)
    settings: Dict[str, Any] = Field(default_factory=dict)
    init_options: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True

    def command(self) -> List[str]:
        """Server command line."""
        return [*self.exe, *self.args]


class Config:
    """Configuration manager."""

    _log = Log.create({"service": "config"})
    _config_path = GlobalPath.config / "config.json"
    _cached_config: Optional[ConfigModel] = None

    @classmethod
    async def get(cls) -> ConfigModel:
        """Get current configuration."""
        if cls._cached_config is not None:
            return cls._cached_config

        try:
            if cls._config_path.exists():
                with open(cls._config_path, 'r') as f:
                    data = json.load(f)
                cls._cached_config = ConfigModel(**data)
            else:
                cls._cached_config = ConfigModel()
        except Exception as e:
            cls._log.error("Failed to load config", {"path": str(cls._config_path), "error": str(e)})
            cls._cached_config = ConfigModel()

        return cls._cached_config

    @classmethod
    async def save(cls, config: ConfigModel) -> None:
        """Save configuration."""
        try:
            cls._config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(cls._config_path, 'w') as f:
                json.dump(config.model_dump(mode="json", exclude_none=True), f, indent=2)
        except OSError as e:
            cls._log.error("Failed to save config", {"error": str(e)})
            raise ConfigError({"path": str(cls._config_path)}, "Failed to save config", e) from e
        cls._cached_config = config
        cls._log.info("Configuration saved")

    @classmethod
    async def update(cls, updates: Dict[str, Any]) -> ConfigModel:
        """Update configuration with new values; unknown keys are ignored."""
        config = await cls.get()
        known = {k: v for k, v in updates.items() if k in ConfigModel.model_fields}
        config = ConfigModel(**{**config.model_dump(), **known})
        await cls.save(config)
        return config

    @classmethod
    def clear_cache(cls) -> None:
        """Clear cached configuration."""
        cls._cached_config = None
