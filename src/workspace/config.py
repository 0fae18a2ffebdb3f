"""Run configuration: feature flags and the optional YAML config file.

Feature flags are an explicit value threaded through the workspace, publisher
and unpublisher. The YAML config file carries the same settings as the CLI
options; options given on the command line take precedence.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from .errors import ConfigError


@dataclass(frozen=True)
class FeatureFlags:
    """Opt-in / opt-out switches for a run.

    Attributes:
        disable_workspace_folder_publish: Skip folder publish, folder moves and folder unpublish
        enable_lakehouse_unpublish: Allow deleting orphaned lakehouses
        enable_warehouse_unpublish: Allow deleting orphaned warehouses
        enable_sqldatabase_unpublish: Allow deleting orphaned SQL databases
    """
    disable_workspace_folder_publish: bool = False
    enable_lakehouse_unpublish: bool = False
    enable_warehouse_unpublish: bool = False
    enable_sqldatabase_unpublish: bool = False

    @classmethod
    def from_names(cls, names: Optional[Iterable[str]]) -> "FeatureFlags":
        """Build flags from a list of flag names.

        Raises:
            ConfigError: If a name is not a known flag
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for name in names or []:
            if name not in known:
                raise ConfigError(
                    f"Unknown feature flag '{name}'. Must be one of {', '.join(sorted(known))}",
                    "feature_flags",
                )
            values[name] = True
        return cls(**values)

    def is_enabled(self, name: str) -> bool:
        return bool(getattr(self, name, False))

    @property
    def folder_publish_enabled(self) -> bool:
        return not self.disable_workspace_folder_publish


@dataclass
class WorkspaceConfig:
    """Settings for one publish or unpublish run.

    Attributes:
        repository_directory: Local repository root
        workspace_id: Target workspace guid (takes precedence over the name)
        workspace_name: Target workspace display name
        environment: Environment key used by the parameter file
        item_types: Item types in scope (None means all accepted types)
        feature_flags: Enabled feature flags
        item_name_exclude_regex: Regex of item names to skip
        parameter_file: Parameter file path (defaults to parameter.yml in the repository)
    """
    repository_directory: Optional[str] = None
    workspace_id: Optional[str] = None
    workspace_name: Optional[str] = None
    environment: str = "N/A"
    item_types: Optional[List[str]] = None
    feature_flags: FeatureFlags = field(default_factory=FeatureFlags)
    item_name_exclude_regex: Optional[str] = None
    parameter_file: Optional[str] = None


class ConfigLoader:
    """Loads the optional YAML run configuration.

    Configuration file structure:
        workspace_id: "00000000-0000-0000-0000-000000000000"
        repository_directory: "./workspace"
        environment: "PROD"
        item_types: ["Notebook", "DataPipeline"]
        feature_flags: ["enable_lakehouse_unpublish"]
        item_name_exclude_regex: "^DEV_"
        parameter_file: "./workspace/parameter.yml"
    """

    ALLOWED_FIELDS = {
        'workspace_id',
        'workspace_name',
        'repository_directory',
        'environment',
        'item_types',
        'feature_flags',
        'item_name_exclude_regex',
        'parameter_file',
    }

    DEFAULTS = {
        'environment': 'N/A',
    }

    @classmethod
    def load(cls, config_path: str) -> WorkspaceConfig:
        """Load and parse configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            WorkspaceConfig with parsed configuration

        Raises:
            ConfigError: If the file cannot be read or is invalid
        """
        try:
            content = Path(config_path).read_text(encoding='utf-8')
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found at {config_path}")
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            return WorkspaceConfig()

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        return cls._parse_config(config_dict)

    @classmethod
    def _parse_config(cls, config_dict: Dict[str, Any]) -> WorkspaceConfig:
        unknown = set(config_dict.keys()) - cls.ALLOWED_FIELDS
        if unknown:
            raise ConfigError(f"Unknown fields: {', '.join(sorted(unknown))}")

        item_types = cls._optional_str_list(config_dict, 'item_types')
        flags = FeatureFlags.from_names(cls._optional_str_list(config_dict, 'feature_flags'))

        return WorkspaceConfig(
            repository_directory=cls._optional_str(config_dict, 'repository_directory'),
            workspace_id=cls._optional_str(config_dict, 'workspace_id'),
            workspace_name=cls._optional_str(config_dict, 'workspace_name'),
            environment=str(config_dict.get('environment', cls.DEFAULTS['environment'])),
            item_types=item_types,
            feature_flags=flags,
            item_name_exclude_regex=cls._optional_str(config_dict, 'item_name_exclude_regex'),
            parameter_file=cls._optional_str(config_dict, 'parameter_file'),
        )

    @staticmethod
    def _optional_str(config_dict: Dict[str, Any], key: str) -> Optional[str]:
        value = config_dict.get(key)
        if value is None:
            return None
        if not isinstance(value, str) or not value.strip():
            raise ConfigError("must be a non-empty string", key)
        return value.strip()

    @staticmethod
    def _optional_str_list(config_dict: Dict[str, Any], key: str) -> Optional[List[str]]:
        value = config_dict.get(key)
        if value is None:
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError("must be a list of strings", key)
        return list(value)
