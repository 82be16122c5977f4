"""pgshark configuration management.

Handles persistent settings stored in ~/.pgshark/config.json
(or $PGSHARK_HOME/config.json).
"""

import json
import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path

from pgshark.models import DEFAULT_EXCLUDED_SCHEMAS, SchemaFilter


# Default configuration values
DEFAULT_THEME = "textual-dark"
DEFAULT_EXPORT_FORMAT = "markdown"  # markdown, yaml
DEFAULT_CONNECT_TIMEOUT = 5  # seconds
DEFAULT_QUERY_TIMEOUT = 30  # seconds
DEFAULT_LOG_LEVEL = "INFO"


def get_home_dir() -> Path:
    """Directory holding config, credentials and logs."""
    override = os.environ.get("PGSHARK_HOME")
    if override:
        return Path(override)
    return Path.home() / ".pgshark"


@dataclass
class PgsharkConfig:
    """pgshark application configuration."""

    # Appearance
    theme: str = DEFAULT_THEME

    # Export preferences
    export_format: str = DEFAULT_EXPORT_FORMAT

    # Introspection scope
    include_schemas: list[str] = field(default_factory=list)
    exclude_schemas: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_SCHEMAS))

    # Timeouts
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    query_timeout: int = DEFAULT_QUERY_TIMEOUT

    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the path to the config file."""
        return get_home_dir() / "config.json"

    @property
    def credentials_path(self) -> Path:
        return get_home_dir() / "credentials.enc"

    @property
    def log_dir(self) -> Path:
        return get_home_dir()

    @classmethod
    def load(cls) -> "PgsharkConfig":
        """Load configuration from file, or return defaults if not found."""
        config_path = cls.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                # Only use known fields to avoid issues with old config versions
                known_fields = {f.name for f in fields(cls)}
                filtered_data = {k: v for k, v in data.items() if k in known_fields}
                config = cls(**filtered_data)
                config._drop_unknown_choices()
                return config
            except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
                # Invalid config, return defaults
                pass

        return cls()

    def _drop_unknown_choices(self) -> None:
        """Fall back to defaults for choices a hand-edited file got wrong."""
        if self.theme not in dict(AVAILABLE_THEMES):
            self.theme = DEFAULT_THEME
        if self.export_format not in dict(EXPORT_FORMAT_OPTIONS):
            self.export_format = DEFAULT_EXPORT_FORMAT

    def save(self) -> None:
        """Save configuration to file."""
        config_path = self.get_config_path()

        # Ensure directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        defaults = PgsharkConfig()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))

    def schema_filter(self) -> SchemaFilter:
        return SchemaFilter(include=list(self.include_schemas), exclude=list(self.exclude_schemas))

    def set_value(self, key: str, value: str) -> None:
        """Set a field from its string form, as given on the command line.

        List fields take comma-separated values; integers are parsed.
        """
        known = {f.name: f for f in fields(self)}
        if key not in known:
            raise KeyError(key)

        current = getattr(self, key)
        if isinstance(current, list):
            parsed = [item.strip() for item in value.split(",") if item.strip()]
        elif isinstance(current, int):
            parsed = int(value)
        else:
            parsed = value

        if key == "theme" and parsed not in dict(AVAILABLE_THEMES):
            raise ValueError(f"theme must be one of: {', '.join(dict(AVAILABLE_THEMES))}")
        if key == "export_format" and parsed not in dict(EXPORT_FORMAT_OPTIONS):
            raise ValueError(f"export_format must be one of: {', '.join(dict(EXPORT_FORMAT_OPTIONS))}")
        if key in ("connect_timeout", "query_timeout") and parsed <= 0:
            raise ValueError(f"{key} must be positive")
        setattr(self, key, parsed)


# Available options for settings
AVAILABLE_THEMES = [
    ("textual-dark", "Textual Dark"),
    ("textual-light", "Textual Light"),
    ("nord", "Nord"),
    ("gruvbox", "Gruvbox"),
    ("dracula", "Dracula"),
    ("tokyo-night", "Tokyo Night"),
    ("monokai", "Monokai"),
]

EXPORT_FORMAT_OPTIONS = [
    ("markdown", "Markdown (.md)"),
    ("yaml", "YAML (.yaml)"),
]
