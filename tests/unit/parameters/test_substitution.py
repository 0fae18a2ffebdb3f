"""Unit tests for parameters.substitution module."""

import json

import pytest

from src.parameters.models import EnvironmentParameter, FindReplaceRule, KeyValueReplaceRule, SparkPoolRule
from src.parameters.substitution import (
    SubstitutionContext,
    apply_find_replace,
    apply_key_value_replace,
    apply_parameters,
    apply_spark_pool,
    extract_find_value,
    jsonpath_to_glob,
    resolve_replace_value,
)
from src.workspace.errors import InputError, ParsingError
from src.workspace.models import Item
from tests.helpers.repo_builder import write_item


def make_item(root, item_type, name, files):
    item_dir = write_item(root, f"{name}.{item_type}", item_type, name, f"lid-{name}", files)
    item = Item(type=item_type, name=name, description="", path=item_dir)
    item.collect_item_files()
    return item


@pytest.fixture
def context(tmp_path):
    attributes = {("Lakehouse", "Sales", "id"): "lh-guid", ("Lakehouse", "Sales.Bronze", "sqlendpoint"): "bronze.sql"}

    def lookup(item_type, item_name, attribute):
        if (item_type, item_name, attribute) not in attributes:
            raise ParsingError(f"Item '{item_name}' not found as a deployed {item_type}")
        return attributes[(item_type, item_name, attribute)]

    return SubstitutionContext(
        workspace_id="ws-guid",
        environment="PROD",
        repository_directory=tmp_path,
        item_attribute_lookup=lookup,
        spark_pool_lookup=lambda name, pool_type: f"{pool_type}-{name}-id",
    )


class TestResolveReplaceValue:
    """Test cases for resolve_replace_value."""

    def test_literal_is_returned_unchanged(self, context):
        assert resolve_replace_value("plain-value", context) == "plain-value"

    def test_workspace_id(self, context):
        assert resolve_replace_value("$workspace.id", context) == "ws-guid"

    def test_items_expression(self, context):
        assert resolve_replace_value("$items.Lakehouse.Sales.id", context) == "lh-guid"

    def test_items_name_may_contain_dots(self, context):
        """The type is the first segment and the attribute the last; the rest is the name."""
        assert resolve_replace_value("$items.Lakehouse.Sales.Bronze.SQLEndpoint", context) == "bronze.sql"

    def test_malformed_items_expression(self, context):
        with pytest.raises(ParsingError, match="Invalid \\$items variable syntax"):
            resolve_replace_value("$items.Lakehouse", context)

    def test_unknown_item_propagates(self, context):
        with pytest.raises(ParsingError, match="not found"):
            resolve_replace_value("$items.Lakehouse.Missing.id", context)


class TestExtractFindValue:
    """Test cases for extract_find_value."""

    def test_literal_rule(self):
        rule = FindReplaceRule(find_value="abc", replace_value={"PROD": "x"})

        assert extract_find_value(rule, "anything") == "abc"

    def test_regex_returns_group(self):
        rule = FindReplaceRule(find_value=r'"lakehouse":\s*"([0-9a-f-]+)"', replace_value={"PROD": "x"}, is_regex=True)

        assert extract_find_value(rule, '{"lakehouse": "ab-12"}') == "ab-12"

    def test_regex_without_match_returns_none(self):
        rule = FindReplaceRule(find_value=r"id=(\d+)", replace_value={"PROD": "x"}, is_regex=True)

        assert extract_find_value(rule, "nothing here") is None

    def test_regex_needs_exactly_one_group(self):
        rule = FindReplaceRule(find_value=r"(a)(b)", replace_value={"PROD": "x"}, is_regex=True)

        with pytest.raises(InputError, match="exactly one capturing group"):
            extract_find_value(rule, "ab")

    def test_regex_empty_capture_raises(self):
        rule = FindReplaceRule(find_value=r"id=(\d*);", replace_value={"PROD": "x"}, is_regex=True)

        with pytest.raises(InputError, match="captured an empty value"):
            extract_find_value(rule, "id=;")


class TestApplyFindReplace:
    """Test cases for apply_find_replace."""

    def test_replaces_in_text_file(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '{"lakehouse": "lh-dev"}'})
        file = item.get_file("pipeline-content.json")
        rule = FindReplaceRule(find_value="lh-dev", replace_value={"PROD": "$items.Lakehouse.Sales.id"})

        assert apply_find_replace(rule, item, file, context) is True
        assert file.contents == '{"lakehouse": "lh-guid"}'
        assert file.json_body == {"lakehouse": "lh-guid"}

    def test_binary_file_untouched(self, tmp_path, context):
        item = make_item(tmp_path, "Notebook", "Hello", {"notebook-content.py": "lh-dev"})
        file = item.get_file("notebook-content.py")
        rule = FindReplaceRule(find_value="lh-dev", replace_value={"PROD": "lh-prod"})

        assert apply_find_replace(rule, item, file, context) is False
        assert file.contents == b"lh-dev"

    def test_other_environment_untouched(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '"lh-dev"'})
        file = item.get_file("pipeline-content.json")
        rule = FindReplaceRule(find_value="lh-dev", replace_value={"PPE": "lh-ppe"})

        assert apply_find_replace(rule, item, file, context) is False

    def test_item_type_filter(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '"lh-dev"'})
        file = item.get_file("pipeline-content.json")
        rule = FindReplaceRule(find_value="lh-dev", replace_value={"PROD": "lh-prod"}, item_type=["Notebook"])

        assert apply_find_replace(rule, item, file, context) is False

    def test_file_path_filter_relative_to_repository(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {
            "pipeline-content.json": '"lh-dev"',
            "other.json": '"lh-dev"',
        })
        rule = FindReplaceRule(
            find_value="lh-dev",
            replace_value={"PROD": "lh-prod"},
            file_path=["Load.DataPipeline/pipeline-content.json"],
        )

        assert apply_find_replace(rule, item, item.get_file("pipeline-content.json"), context) is True
        assert apply_find_replace(rule, item, item.get_file("other.json"), context) is False


class TestJsonpathToGlob:
    """Test cases for jsonpath_to_glob."""

    @pytest.mark.parametrize("find_key, expected", [
        ("$.properties.connection", "properties/connection"),
        ("$.properties.activities[*].typeProperties.connection", "properties/activities/*/typeProperties/connection"),
        ("$.items[0]['name']", "items/0/name"),
        ("$", ""),
    ])
    def test_conversion(self, find_key, expected):
        assert jsonpath_to_glob(find_key) == expected


class TestApplyKeyValueReplace:
    """Test cases for apply_key_value_replace."""

    def test_sets_every_matching_key(self, tmp_path, context):
        body = {"properties": {"activities": [
            {"typeProperties": {"connection": "dev-1"}},
            {"typeProperties": {"connection": "dev-2"}},
        ]}}
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": json.dumps(body)})
        file = item.get_file("pipeline-content.json")
        rule = KeyValueReplaceRule(
            find_key="$.properties.activities[*].typeProperties.connection",
            replace_value={"PROD": "$workspace.id"},
        )

        assert apply_key_value_replace(rule, item, file, context) is True
        connections = [a["typeProperties"]["connection"] for a in json.loads(file.contents)["properties"]["activities"]]
        assert connections == ["ws-guid", "ws-guid"]

    def test_missing_key_is_noop(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '{"properties": {}}'})
        file = item.get_file("pipeline-content.json")
        rule = KeyValueReplaceRule(find_key="$.properties.connection", replace_value={"PROD": "x"})

        assert apply_key_value_replace(rule, item, file, context) is False
        assert file.contents == '{"properties": {}}'

    def test_non_json_file_is_noop(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"notes.txt": "connection: dev"})
        file = item.get_file("notes.txt")
        rule = KeyValueReplaceRule(find_key="$.connection", replace_value={"PROD": "x"})

        assert apply_key_value_replace(rule, item, file, context) is False


class TestApplySparkPool:
    """Test cases for apply_spark_pool."""

    def test_replaces_pool_id_in_environment(self, tmp_path, context):
        item = make_item(tmp_path, "Environment", "Spark", {"Setting/Sparkcompute.yml": "instance_pool_id: pool-dev\n"})
        file = item.get_file("Setting/Sparkcompute.yml")
        rule = SparkPoolRule(instance_pool_id="pool-dev", replace_value={"PROD": {"type": "Capacity", "name": "Large"}})

        assert apply_spark_pool(rule, item, file, context) is True
        assert file.contents == b"instance_pool_id: Capacity-Large-id\n"

    def test_only_environment_items(self, tmp_path, context):
        item = make_item(tmp_path, "Notebook", "Hello", {"notebook-content.py": "pool-dev"})
        rule = SparkPoolRule(instance_pool_id="pool-dev", replace_value={"PROD": {"type": "Capacity", "name": "Large"}})

        assert apply_spark_pool(rule, item, item.get_file("notebook-content.py"), context) is False

    def test_pool_not_referenced(self, tmp_path, context):
        item = make_item(tmp_path, "Environment", "Spark", {"Setting/Sparkcompute.yml": "instance_pool_id: other\n"})
        rule = SparkPoolRule(instance_pool_id="pool-dev", replace_value={"PROD": {"type": "Capacity", "name": "Large"}})

        assert apply_spark_pool(rule, item, item.get_file("Setting/Sparkcompute.yml"), context) is False


class TestApplyParameters:
    """Test cases for apply_parameters."""

    def test_empty_parameters(self, tmp_path, context):
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '"lh-dev"'})

        assert apply_parameters(item, EnvironmentParameter(), context) == 0

    def test_key_value_runs_before_find_replace(self, tmp_path, context):
        """find_replace sees the value written by key_value_replace."""
        item = make_item(tmp_path, "DataPipeline", "Load", {"pipeline-content.json": '{"connection": "dev"}'})
        parameters = EnvironmentParameter(
            find_replace=[FindReplaceRule(find_value="staged", replace_value={"PROD": "final"})],
            key_value_replace=[KeyValueReplaceRule(find_key="$.connection", replace_value={"PROD": "staged"})],
        )

        changed = apply_parameters(item, parameters, context)

        assert changed == 2
        assert item.get_file("pipeline-content.json").json_body == {"connection": "final"}
