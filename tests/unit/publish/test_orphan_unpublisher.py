"""Unit tests for publish.unpublisher module."""

import re

import pytest

from src.fabric_client.errors import ApiError
from src.publish.unpublisher import OrphanUnpublisher
from src.workspace.config import FeatureFlags
from src.workspace.errors import InputError
from tests.helpers.fabric_api import ok
from tests.helpers.repo_builder import write_item


def deployed(*entries):
    return ok({"value": [
        {"id": guid, "type": item_type, "displayName": name, "description": ""}
        for guid, item_type, name in entries
    ]})


def deleted_guids(fake_endpoint):
    return [call[1].rsplit("/", 1)[-1] for call in fake_endpoint.calls_for("DELETE", "/items/")]


class TestFindOrphans:
    """Test cases for OrphanUnpublisher.find_orphans."""

    def test_orphans_are_deployed_minus_repository_minus_excluded(self, tmp_path, make_workspace, fake_endpoint):
        """{A, B, C} deployed with B in the repository leaves {A, C}, then the regex removes C."""
        write_item(tmp_path, "B.Notebook", "Notebook", "B", "lid-b", {"b.py": ""})
        fake_endpoint.route("GET", "/items", deployed(
            ("g-a", "Notebook", "A"), ("g-b", "Notebook", "B"), ("g-c", "Notebook", "C"),
        ))
        workspace = make_workspace()
        workspace.refresh_deployed_items()
        workspace.refresh_repository_items()
        unpublisher = OrphanUnpublisher(workspace)

        assert unpublisher.find_orphans("Notebook", re.compile("^$")) == ["A", "C"]
        assert unpublisher.find_orphans("Notebook", re.compile("^C")) == ["A"]
        assert unpublisher.find_orphans("Report", re.compile("^$")) == []


class TestUnpublishOrphans:
    """Test cases for OrphanUnpublisher.unpublish_orphans."""

    def test_deletes_orphans(self, tmp_path, make_workspace, fake_endpoint):
        write_item(tmp_path, "B.Notebook", "Notebook", "B", "lid-b", {"b.py": ""})
        fake_endpoint.route("GET", "/items", deployed(
            ("g-a", "Notebook", "A"), ("g-b", "Notebook", "B"), ("g-c", "Notebook", "C"),
        ))

        deleted = OrphanUnpublisher(make_workspace()).unpublish_orphans()

        assert deleted == ["Notebook/A", "Notebook/C"]
        assert deleted_guids(fake_endpoint) == ["g-a", "g-c"]

    def test_exclude_regex_keeps_matching_items(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/items", deployed(("g-a", "Notebook", "A"), ("g-c", "Notebook", "C")))

        deleted = OrphanUnpublisher(make_workspace()).unpublish_orphans(exclude_regex="^C")

        assert deleted == ["Notebook/A"]

    def test_exclude_regex_matches_anywhere_in_name(self, make_workspace, fake_endpoint):
        """A pattern found mid-name still protects the item from deletion."""
        fake_endpoint.route("GET", "/items", deployed(("g-s", "Notebook", "Sales_DEBUG"), ("g-o", "Notebook", "Old")))

        deleted = OrphanUnpublisher(make_workspace()).unpublish_orphans(exclude_regex="DEBUG")

        assert deleted == ["Notebook/Old"]
        assert deleted_guids(fake_endpoint) == ["g-o"]

    def test_consumers_deleted_before_dependencies(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/items", deployed(
            ("nb-1", "Notebook", "Transform"), ("pl-1", "DataPipeline", "Load"),
        ))

        OrphanUnpublisher(make_workspace()).unpublish_orphans()

        assert deleted_guids(fake_endpoint) == ["pl-1", "nb-1"]

    def test_out_of_scope_types_are_kept(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/items", deployed(
            ("nb-1", "Notebook", "Transform"), ("pl-1", "DataPipeline", "Load"),
        ))

        deleted = OrphanUnpublisher(make_workspace(item_types=["Notebook"])).unpublish_orphans()

        assert deleted == ["Notebook/Transform"]

    def test_delete_failure_is_a_warning(self, make_workspace, fake_endpoint, caplog):
        """A failed delete is logged and the remaining orphans are still processed."""
        fake_endpoint.route("DELETE", "/items/g-a", ApiError("Conflict", status_code=409))
        fake_endpoint.route("GET", "/items", deployed(("g-a", "Notebook", "A"), ("g-c", "Notebook", "C")))

        with caplog.at_level("WARNING", logger="src.publish.unpublisher"):
            deleted = OrphanUnpublisher(make_workspace()).unpublish_orphans()

        assert deleted == ["Notebook/C"]
        assert "Failed to unpublish Notebook 'A'" in caplog.text

    def test_data_items_need_feature_flag(self, make_workspace, fake_endpoint, caplog):
        fake_endpoint.route("GET", "/items", deployed(("lh-1", "Lakehouse", "Sales")))

        with caplog.at_level("WARNING", logger="src.publish.unpublisher"):
            deleted = OrphanUnpublisher(make_workspace()).unpublish_orphans()

        assert deleted == []
        assert not fake_endpoint.calls_for("DELETE")
        assert "enable_lakehouse_unpublish" in caplog.text

    def test_data_items_deleted_with_feature_flag(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/items", deployed(("lh-1", "Lakehouse", "Sales")))
        flags = FeatureFlags.from_names(["enable_lakehouse_unpublish"])

        deleted = OrphanUnpublisher(make_workspace(feature_flags=flags)).unpublish_orphans()

        assert deleted == ["Lakehouse/Sales"]

    def test_orphan_folders_removed_after_items(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/items", deployed(("g-a", "Notebook", "A")))
        fake_endpoint.route("GET", "/folders", ok({"value": [{"id": "f-old", "displayName": "Old"}]}))

        OrphanUnpublisher(make_workspace()).unpublish_orphans()

        methods = [(call[0], call[1].rsplit("/", 1)[-1]) for call in fake_endpoint.calls_for("DELETE")]
        assert methods == [("DELETE", "g-a"), ("DELETE", "f-old")]

    def test_folders_untouched_when_folder_publish_disabled(self, make_workspace, fake_endpoint):
        fake_endpoint.route("GET", "/folders", ok({"value": [{"id": "f-old", "displayName": "Old"}]}))
        flags = FeatureFlags.from_names(["disable_workspace_folder_publish"])

        OrphanUnpublisher(make_workspace(feature_flags=flags)).unpublish_orphans()

        assert not fake_endpoint.calls_for("DELETE")

    def test_invalid_regex_raises(self, make_workspace):
        with pytest.raises(InputError):
            OrphanUnpublisher(make_workspace()).unpublish_orphans(exclude_regex="([")
