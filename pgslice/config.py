"""
Configuration management for pgslice.

Loads and validates configuration from pgslice.toml files using Pydantic.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgslice.exceptions import ConfigError

CONFIG_FILENAME = "pgslice.toml"


class DatabaseConfig(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(env_prefix="PGSLICE_DATABASE_")

    url: str = Field(
        default="",
        description="PostgreSQL connection URL",
    )
    schema: str = Field(
        default="public",
        description="Schema to introspect and extract from",
    )


class ExtractionConfig(BaseSettings):
    """Traversal and ordering configuration."""

    model_config = SettingsConfigDict(env_prefix="PGSLICE_EXTRACTION_")

    default_primary_key: str = Field(
        default="id", description="Identifying column when a table declares no primary key"
    )
    multiple_match: Literal["latest", "error"] = Field(
        default="latest",
        description="What to do when a unique lookup matches several rows",
    )
    statement_timeout: Optional[float] = Field(
        default=None, description="Per-lookup time limit in seconds"
    )
    skip_tables: list[str] = Field(
        default_factory=list, description="Tables excluded from the schema graph"
    )
    deferred_foreign_keys: list[str] = Field(
        default_factory=list,
        description="Foreign keys (table.column) ignored when ordering inserts",
    )


class TableConfig(BaseModel):
    """Per-table overrides."""

    primary_key: Optional[str] = None


class Config(BaseSettings):
    """Main configuration for pgslice."""

    model_config = SettingsConfigDict(env_prefix="PGSLICE_")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    tables: dict[str, TableConfig] = Field(default_factory=dict)

    @classmethod
    def from_toml(cls, path: Path | str) -> Config:
        """
        Load configuration from TOML file.

        Args:
            path: Path to pgslice.toml file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If config file is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls(**data)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Unable to parse config file {config_path}: {e}") from e
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {config_path}:\n{e}") from e

    @classmethod
    def find_and_load(cls, start_dir: Optional[Path] = None) -> Config:
        """
        Find and load configuration from pgslice.toml.

        Searches for pgslice.toml starting from start_dir and walking up
        parent directories until found or reaching filesystem root.

        Raises:
            FileNotFoundError: If no config file found
        """
        if start_dir is None:
            start_dir = Path.cwd()

        current = Path(start_dir).resolve()

        # Walk up directory tree
        while True:
            config_path = current / CONFIG_FILENAME
            if config_path.exists():
                return cls.from_toml(config_path)

            parent = current.parent
            if parent == current:
                break
            current = parent

        raise FileNotFoundError(
            f"No {CONFIG_FILENAME} found in {start_dir} or parent directories. "
            f"Run 'pgslice inspect > {CONFIG_FILENAME}' to create one."
        )

    def primary_keys(self) -> dict[str, str]:
        """Per-table identifying column overrides."""
        return {
            name: table.primary_key
            for name, table in self.tables.items()
            if table.primary_key
        }

    def to_toml(self) -> str:
        """Render configuration as TOML text."""
        timeout = (
            f"statement_timeout = {self.extraction.statement_timeout}\n"
            if self.extraction.statement_timeout is not None
            else "# statement_timeout = 30\n"
        )
        toml_content = f"""# pgslice configuration

[database]
url = {_toml_str(self.database.url)}
schema = {_toml_str(self.database.schema)}

[extraction]
default_primary_key = {_toml_str(self.extraction.default_primary_key)}
multiple_match = {_toml_str(self.extraction.multiple_match)}
{timeout}skip_tables = {_toml_list(self.extraction.skip_tables)}
deferred_foreign_keys = {_toml_list(self.extraction.deferred_foreign_keys)}
"""
        for name in sorted(self.tables):
            toml_content += f"\n[tables.{_toml_str(name)}]\n"
            primary_key = self.tables[name].primary_key
            if primary_key:
                toml_content += f"primary_key = {_toml_str(primary_key)}\n"

        return toml_content

    def write_toml(self, path: Path | str) -> None:
        """Write configuration to a TOML file."""
        Path(path).write_text(self.to_toml())


def _toml_str(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _toml_list(values: list[str]) -> str:
    return "[" + ", ".join(_toml_str(v) for v in values) + "]"
