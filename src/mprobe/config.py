"""Configuration system for mprobe."""

from dataclasses import dataclass, field, fields
from pathlib import Path

import tomlkit

from mprobe.models import SortColumn

MIN_UPDATE_INTERVAL = 50  # ms
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of backup log files to keep


@dataclass
class Config:
    """Main configuration container."""

    update_interval: int = 250  # Milliseconds between refreshes
    no_color: bool = False
    sort_by: str = "cpu"  # pid, name, cpu, memory
    sort_ascending: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "mprobe"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "mprobe"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "mprobe.log"

    @property
    def sort_column(self) -> SortColumn:
        """``sort_by`` as a SortColumn."""
        return SortColumn(self.sort_by)

    def save(self, path: Path | None = None) -> Path:
        """Save config to TOML file, returning the path written."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add(tomlkit.comment("mprobe configuration"))
        doc.add("update_interval", self.update_interval)
        doc.add("no_color", self.no_color)
        doc.add("sort_by", self.sort_by)
        doc.add("sort_ascending", self.sort_ascending)
        doc.add(tomlkit.nl())

        table = tomlkit.table()
        for f in fields(self.logging):
            table.add(f.name, getattr(self.logging, f.name))
        doc.add("logging", table)

        path.write_text(tomlkit.dumps(doc))
        return path

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: The file is not valid TOML or holds an invalid value.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            update_interval=data.get("update_interval", defaults.update_interval),
            no_color=data.get("no_color", defaults.no_color),
            sort_by=data.get("sort_by", defaults.sort_by),
            sort_ascending=data.get("sort_ascending", defaults.sort_ascending),
            logging=_load_logging_config(data.get("logging", {})),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError for out-of-range or wrongly typed values."""
        if not _is_int(self.update_interval) or self.update_interval < MIN_UPDATE_INTERVAL:
            raise ValueError(
                f"update_interval must be an integer >= {MIN_UPDATE_INTERVAL}, "
                f"got {self.update_interval!r}"
            )
        for name in ("no_color", "sort_ascending"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")
        valid_sorts = [c.value for c in SortColumn]
        if self.sort_by not in valid_sorts:
            raise ValueError(f"Invalid sort_by: {self.sort_by!r}. Must be one of {valid_sorts}")
        level = self.logging.level
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid logging level: {level!r}. Must be one of {LOG_LEVELS}")
        for name in ("max_bytes", "backup_count"):
            value = getattr(self.logging, name)
            if not _is_int(value) or value < 0:
                raise ValueError(f"logging {name} must be a non-negative integer, got {value!r}")


def _is_int(value: object) -> bool:
    # TOML booleans load as bool, which is an int subclass
    return isinstance(value, int) and not isinstance(value, bool)


def _load_logging_config(data: object) -> LoggingConfig:
    """Load logging config from TOML data, using dataclass defaults for missing fields."""
    if not isinstance(data, dict):
        raise ValueError(f"[logging] must be a table, got {data!r}")
    d = LoggingConfig()
    return LoggingConfig(
        level=data.get("level", d.level),
        max_bytes=data.get("max_bytes", d.max_bytes),
        backup_count=data.get("backup_count", d.backup_count),
    )
