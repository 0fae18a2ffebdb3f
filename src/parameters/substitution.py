"""Application of parameter rules to item files.

Rules come from a loaded EnvironmentParameter. Replacement values may be
literals or expressions resolved against the target workspace:

- ``$workspace.id``: the target workspace id
- ``$items.<type>.<name>.<attr>``: an attribute (``id`` or ``sqlendpoint``)
  of a deployed item
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

import dpath

from src.workspace.errors import InputError, ParsingError
from src.workspace.models import FileItem, Item

from .models import EnvironmentParameter, FindReplaceRule, KeyValueReplaceRule, SparkPoolRule

logger = logging.getLogger(__name__)

WORKSPACE_ID_EXPRESSION = "$workspace.id"
ITEMS_EXPRESSION_PREFIX = "$items."


@dataclass
class SubstitutionContext:
    """What rule application needs to know about the target workspace.

    Attributes:
        workspace_id: Target workspace id
        environment: Environment key selecting rule values
        repository_directory: Repository root, for relative file_path filters
        item_attribute_lookup: (type, name, attr) -> value of a deployed item attribute
        spark_pool_lookup: (pool name, pool type) -> pool id
    """
    workspace_id: str
    environment: str
    repository_directory: Path
    item_attribute_lookup: Callable[[str, str, str], str]
    spark_pool_lookup: Callable[[str, str], str]


def resolve_replace_value(value: str, context: SubstitutionContext) -> str:
    """Resolve a replacement value, expanding workspace and item expressions.

    Raises:
        ParsingError: If an ``$items`` expression is malformed or cannot be resolved
    """
    if value == WORKSPACE_ID_EXPRESSION:
        return context.workspace_id

    if value.startswith(ITEMS_EXPRESSION_PREFIX):
        expression = value[len(ITEMS_EXPRESSION_PREFIX):]
        item_type, _, rest = expression.partition(".")
        item_name, _, attribute = rest.rpartition(".")
        if not item_type or not item_name or not attribute:
            raise ParsingError(f"Invalid $items variable syntax: {value}")
        return context.item_attribute_lookup(item_type, item_name, attribute.lower())

    return value


def _matches(values: Optional[Iterable[str]], candidate: str) -> bool:
    return values is None or candidate in values


def _file_matches(file_paths: Optional[Iterable[str]], file: FileItem, repository_directory: Path) -> bool:
    if file_paths is None:
        return True

    target = Path(file.file_path).resolve()
    for file_path in file_paths:
        candidate = Path(file_path)
        if not candidate.is_absolute():
            candidate = Path(repository_directory) / candidate
        if candidate.resolve() == target:
            return True
    return False


def check_filters(rule, item: Item, file: FileItem, repository_directory: Path) -> bool:
    """Return True if the rule's item type, item name and file path filters all match."""
    return (
        _matches(getattr(rule, "item_type", None), item.type)
        and _matches(getattr(rule, "item_name", None), item.name)
        and _file_matches(getattr(rule, "file_path", None), file, repository_directory)
    )


def extract_find_value(rule: FindReplaceRule, contents: str) -> Optional[str]:
    """Return the text a find_replace rule should replace in ``contents``.

    For a regex rule this is the text captured by its single group, or None
    when the pattern does not match.

    Raises:
        InputError: If the regex is invalid, does not have exactly one
            capturing group, or captures an empty value
    """
    if not rule.is_regex:
        return rule.find_value

    try:
        pattern = re.compile(rule.find_value)
    except re.error as e:
        raise InputError(f"Regex pattern '{rule.find_value}' is invalid: {e}")

    match = pattern.search(contents)
    if match is None:
        return None
    if pattern.groups != 1:
        raise InputError(f"Regex pattern '{rule.find_value}' must contain exactly one capturing group.")
    if not match.group(1):
        raise InputError(f"Regex pattern '{rule.find_value}' captured an empty value.")
    return match.group(1)


def apply_find_replace(rule: FindReplaceRule, item: Item, file: FileItem, context: SubstitutionContext) -> bool:
    if not isinstance(file.contents, str) or context.environment not in rule.replace_value:
        return False
    if not check_filters(rule, item, file, context.repository_directory):
        return False

    find_value = extract_find_value(rule, file.contents)
    if not find_value or find_value not in file.contents:
        return False

    replace_value = resolve_replace_value(rule.replace_value[context.environment], context)
    file.replace_text(find_value, replace_value)
    logger.debug(f"Replacing '{find_value}' with '{replace_value}' in {item.name}.{item.type}")
    return True


def jsonpath_to_glob(find_key: str) -> str:
    """Convert a JSONPath expression into a dpath glob.

    Example:
        >>> jsonpath_to_glob("$.properties.activities[*].typeProperties['connection']")
        'properties/activities/*/typeProperties/connection'
    """
    path = find_key.strip()
    if path.startswith("$"):
        path = path[1:]
    path = re.sub(r"\[['\"]([^'\"]+)['\"]\]", r".\1", path)
    path = re.sub(r"\[(\*|\d+)\]", r".\1", path)
    return "/".join(segment for segment in path.split(".") if segment)


def apply_key_value_replace(
    rule: KeyValueReplaceRule, item: Item, file: FileItem, context: SubstitutionContext
) -> bool:
    if file.json_body is None or context.environment not in rule.replace_value:
        return False
    if not check_filters(rule, item, file, context.repository_directory):
        return False

    glob = jsonpath_to_glob(rule.find_key)
    if not glob:
        return False
    if not dpath.search(file.json_body, glob):
        return False

    replace_value = resolve_replace_value(rule.replace_value[context.environment], context)
    changed = dpath.set(file.json_body, glob, replace_value)
    if changed:
        file.sync_contents_from_json()
        logger.debug(f"Replacing '{rule.find_key}' with '{replace_value}' in {item.name}.{item.type}")
    return bool(changed)


def apply_spark_pool(rule: SparkPoolRule, item: Item, file: FileItem, context: SubstitutionContext) -> bool:
    if item.type != "Environment" or not _matches(rule.item_name, item.name):
        return False
    if context.environment not in rule.replace_value:
        return False
    if not file.contains(rule.instance_pool_id):
        return False

    pool = rule.replace_value[context.environment]
    pool_id = context.spark_pool_lookup(pool["name"], pool["type"])
    file.replace_text(rule.instance_pool_id, pool_id)
    logger.debug(f"Replacing spark pool '{rule.instance_pool_id}' with '{pool_id}' in {item.name}.{item.type}")
    return True


def apply_parameters(item: Item, parameters: EnvironmentParameter, context: SubstitutionContext) -> int:
    """Apply every parameter rule to every file of an item.

    Within a file, key_value_replace rules run first, then find_replace, then
    spark_pool.

    Returns:
        Number of (rule, file) pairs that changed a file
    """
    if parameters.is_empty():
        return 0

    changed = 0
    for file in item.item_files:
        for kv_rule in parameters.key_value_replace:
            changed += apply_key_value_replace(kv_rule, item, file, context)
        for fr_rule in parameters.find_replace:
            changed += apply_find_replace(fr_rule, item, file, context)
        for sp_rule in parameters.spark_pool:
            changed += apply_spark_pool(sp_rule, item, file, context)
    return changed
