"""Loading and validation of the parameter file (parameter.yml).

File structure:
    find_replace:
      - find_value: "db52be81-c2b2-4261-84fa-840c67f4bbd0"
        replace_value:
          PPE: "81bbb339-8d0b-46e8-bfa6-289a159c0733"
          PROD: "$items.Lakehouse.Sales.id"
        item_type: "Notebook"
    key_value_replace:
      - find_key: "$.properties.activities[*].typeProperties.connection"
        replace_value:
          PROD: "$ENV:PROD_CONNECTION_ID"
    spark_pool:
      - instance_pool_id: "72c68dbc-0775-4d59-909d-a47896f4573b"
        replace_value:
          PROD:
            type: "Capacity"
            name: "CapacityPool_Large"
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ParameterFileError
from .models import RULE_TYPES, EnvironmentParameter

logger = logging.getLogger(__name__)

ENV_VARIABLE_PATTERN = re.compile(r"\$ENV:([A-Za-z_][A-Za-z0-9_]*)")


def replace_env_variables(raw_text: str) -> str:
    """Replace ``$ENV:NAME`` tokens with environment variable values.

    Raises:
        ParameterFileError: If a referenced variable is not set
    """
    missing: List[str] = []

    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            missing.append(name)
            return match.group(0)
        return value

    result = ENV_VARIABLE_PATTERN.sub(substitute, raw_text)
    if missing:
        raise ParameterFileError(
            f"Environment variable(s) not set: {', '.join(sorted(set(missing)))}"
        )
    return result


class ParameterFile:
    """A parameter file on disk.

    Loading is all-or-nothing: any structural problem raises
    ParameterFileError and no rule is returned.

    Example:
        >>> parameters = ParameterFile(Path("./workspace/parameter.yml")).load()
        >>> parameters.find_replace[0].find_value
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> EnvironmentParameter:
        """Read, interpolate and validate the parameter file.

        Returns:
            EnvironmentParameter (empty when the file does not exist)

        Raises:
            ParameterFileError: If the file is unreadable or invalid
        """
        if not self.path.is_file():
            logger.warning(f"Parameter file not found at {self.path}, skipping parameterization")
            return EnvironmentParameter()

        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParameterFileError(f"Cannot read file: {e}", str(self.path)) from e

        if not raw_text.strip():
            raise ParameterFileError("YAML content is empty", str(self.path))

        raw_text = replace_env_variables(raw_text)

        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as e:
            raise ParameterFileError(f"Invalid YAML syntax: {e}", str(self.path)) from e

        parameters = self._parse(data)
        logger.info(
            f"Parameter file loaded with categories: {', '.join(parameters.categories) or 'none'}"
        )
        return parameters

    def _parse(self, data: Any) -> EnvironmentParameter:
        if not isinstance(data, dict):
            raise ParameterFileError(
                f"Top level must be a mapping, got {type(data).__name__}", str(self.path)
            )

        unknown = set(data.keys()) - set(RULE_TYPES)
        if unknown:
            raise ParameterFileError(
                f"Unknown parameter categories: {', '.join(sorted(str(k) for k in unknown))}",
                str(self.path),
            )

        rules: Dict[str, list] = {}
        for category, entries in data.items():
            if not isinstance(entries, list):
                raise ParameterFileError(f"'{category}' must be a list", str(self.path))
            rule_type = RULE_TYPES[category]
            try:
                rules[category] = [rule_type.from_dict(entry) for entry in entries]
            except ParameterFileError as e:
                raise ParameterFileError(e.original_message, str(self.path)) from e

        return EnvironmentParameter(**rules)
