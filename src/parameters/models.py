"""Typed records for parameter file rules.

Each category of the parameter file maps to one rule dataclass. Rules are
validated while they are built, so a loaded EnvironmentParameter only ever
holds well-formed rules.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from .errors import ParameterFileError

SPARK_POOL_TYPES = ("Capacity", "Workspace")


def _check_keys(category: str, data: Any, minimum: FrozenSet[str], maximum: FrozenSet[str]) -> None:
    if not isinstance(data, dict):
        raise ParameterFileError(f"'{category}' entries must be mappings, got {type(data).__name__}")

    keys = set(data.keys())
    missing = minimum - keys
    if missing:
        raise ParameterFileError(
            f"'{category}' entry is missing required key(s): {', '.join(sorted(missing))}"
        )
    unexpected = keys - maximum
    if unexpected:
        raise ParameterFileError(
            f"'{category}' entry has unsupported key(s): {', '.join(sorted(str(k) for k in unexpected))}"
        )


def _str_value(category: str, data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ParameterFileError(f"'{category}.{key}' must be a non-empty string")
    return value


def _filter_value(category: str, data: Dict[str, Any], key: str) -> Optional[List[str]]:
    """Filters accept a single string or a list of strings."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    raise ParameterFileError(f"'{category}.{key}' must be a string or a list of strings")


def _env_mapping(category: str, data: Dict[str, Any]) -> Dict[str, str]:
    value = data["replace_value"]
    if not isinstance(value, dict) or not value:
        raise ParameterFileError(f"'{category}.replace_value' must map environments to values")

    mapping = {}
    for env, env_value in value.items():
        if isinstance(env_value, (dict, list)) or env_value is None:
            raise ParameterFileError(
                f"'{category}.replace_value.{env}' must be a scalar value"
            )
        mapping[str(env)] = str(env_value)
    return mapping


@dataclass
class FindReplaceRule:
    """Replace a literal (or regex-captured) value in text files.

    Attributes:
        find_value: Text to find, or a regex with one capturing group
        replace_value: Environment -> replacement value
        is_regex: Treat find_value as a regex
        item_type: Only apply to these item types
        item_name: Only apply to these item names
        file_path: Only apply to these files (repository-relative or absolute)
    """
    CATEGORY: ClassVar[str] = "find_replace"
    MINIMUM_KEYS: ClassVar[FrozenSet[str]] = frozenset({"find_value", "replace_value"})
    MAXIMUM_KEYS: ClassVar[FrozenSet[str]] = MINIMUM_KEYS | {"is_regex", "item_type", "item_name", "file_path"}

    find_value: str
    replace_value: Dict[str, str]
    is_regex: bool = False
    item_type: Optional[List[str]] = None
    item_name: Optional[List[str]] = None
    file_path: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "FindReplaceRule":
        _check_keys(cls.CATEGORY, data, cls.MINIMUM_KEYS, cls.MAXIMUM_KEYS)

        is_regex = data.get("is_regex", False)
        if isinstance(is_regex, str) and is_regex.lower() in ("true", "false"):
            is_regex = is_regex.lower() == "true"
        if not isinstance(is_regex, bool):
            raise ParameterFileError(f"'{cls.CATEGORY}.is_regex' must be a boolean")

        return cls(
            find_value=_str_value(cls.CATEGORY, data, "find_value"),
            replace_value=_env_mapping(cls.CATEGORY, data),
            is_regex=is_regex,
            item_type=_filter_value(cls.CATEGORY, data, "item_type"),
            item_name=_filter_value(cls.CATEGORY, data, "item_name"),
            file_path=_filter_value(cls.CATEGORY, data, "file_path"),
        )


@dataclass
class KeyValueReplaceRule:
    """Set the value of a JSON key addressed by a JSONPath expression.

    Attributes:
        find_key: JSONPath such as ``$.properties.activities[*].typeProperties.connection``
        replace_value: Environment -> new value
        item_type: Only apply to these item types
        item_name: Only apply to these item names
        file_path: Only apply to these files
    """
    CATEGORY: ClassVar[str] = "key_value_replace"
    MINIMUM_KEYS: ClassVar[FrozenSet[str]] = frozenset({"find_key", "replace_value"})
    MAXIMUM_KEYS: ClassVar[FrozenSet[str]] = MINIMUM_KEYS | {"item_type", "item_name", "file_path"}

    find_key: str
    replace_value: Dict[str, str]
    item_type: Optional[List[str]] = None
    item_name: Optional[List[str]] = None
    file_path: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "KeyValueReplaceRule":
        _check_keys(cls.CATEGORY, data, cls.MINIMUM_KEYS, cls.MAXIMUM_KEYS)

        find_key = _str_value(cls.CATEGORY, data, "find_key")
        if not find_key.startswith("$"):
            raise ParameterFileError(f"'{cls.CATEGORY}.find_key' must be a JSONPath starting with '$'")

        return cls(
            find_key=find_key,
            replace_value=_env_mapping(cls.CATEGORY, data),
            item_type=_filter_value(cls.CATEGORY, data, "item_type"),
            item_name=_filter_value(cls.CATEGORY, data, "item_name"),
            file_path=_filter_value(cls.CATEGORY, data, "file_path"),
        )


@dataclass
class SparkPoolRule:
    """Swap a Spark instance pool id for a named pool of the target environment.

    Attributes:
        instance_pool_id: Pool id found in the repository files
        replace_value: Environment -> ``{"type": "Capacity"|"Workspace", "name": pool name}``
        item_name: Only apply to these Environment items
    """
    CATEGORY: ClassVar[str] = "spark_pool"
    MINIMUM_KEYS: ClassVar[FrozenSet[str]] = frozenset({"instance_pool_id", "replace_value"})
    MAXIMUM_KEYS: ClassVar[FrozenSet[str]] = MINIMUM_KEYS | {"item_name"}

    instance_pool_id: str
    replace_value: Dict[str, Dict[str, str]]
    item_name: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "SparkPoolRule":
        _check_keys(cls.CATEGORY, data, cls.MINIMUM_KEYS, cls.MAXIMUM_KEYS)

        replace_value = data["replace_value"]
        if not isinstance(replace_value, dict) or not replace_value:
            raise ParameterFileError(f"'{cls.CATEGORY}.replace_value' must map environments to pools")

        pools = {}
        for env, pool in replace_value.items():
            if not isinstance(pool, dict) or set(pool.keys()) != {"type", "name"}:
                raise ParameterFileError(
                    f"'{cls.CATEGORY}.replace_value.{env}' must have exactly the keys 'type' and 'name'"
                )
            if pool["type"] not in SPARK_POOL_TYPES:
                raise ParameterFileError(
                    f"'{cls.CATEGORY}.replace_value.{env}.type' must be one of {', '.join(SPARK_POOL_TYPES)}"
                )
            if not isinstance(pool["name"], str) or not pool["name"]:
                raise ParameterFileError(f"'{cls.CATEGORY}.replace_value.{env}.name' must be a non-empty string")
            pools[str(env)] = {"type": pool["type"], "name": pool["name"]}

        return cls(
            instance_pool_id=_str_value(cls.CATEGORY, data, "instance_pool_id"),
            replace_value=pools,
            item_name=_filter_value(cls.CATEGORY, data, "item_name"),
        )


RULE_TYPES = {
    FindReplaceRule.CATEGORY: FindReplaceRule,
    KeyValueReplaceRule.CATEGORY: KeyValueReplaceRule,
    SparkPoolRule.CATEGORY: SparkPoolRule,
}


@dataclass
class EnvironmentParameter:
    """All rules of a loaded parameter file, grouped by category."""
    find_replace: List[FindReplaceRule] = field(default_factory=list)
    key_value_replace: List[KeyValueReplaceRule] = field(default_factory=list)
    spark_pool: List[SparkPoolRule] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.find_replace or self.key_value_replace or self.spark_pool)

    @property
    def categories(self) -> List[str]:
        return [name for name in RULE_TYPES if getattr(self, name)]
