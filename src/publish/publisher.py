"""Reconciler for a single repository item.

ItemPublisher turns one repository item into the API calls that make the
workspace match it: create when the item has no guid yet, otherwise update
its definition (or patch its metadata for shell-only types), then move it
when its folder changed.
"""

import logging
from typing import Any, Dict, Optional

from src.fabric_client.errors import ApiError, OperationCancelledError, SyncError
from src.parameters.substitution import apply_parameters
from src.workspace.constants import (
    DEFAULT_MAX_RETRIES,
    INDENT,
    ITEM_MARKER_FILE,
    MAX_RETRY_OVERRIDE,
    NO_MATCH_REGEX,
    SHELL_ONLY_PUBLISH,
)
from src.workspace.errors import ItemPublishError, ParsingError
from src.workspace.fabric_workspace import FabricWorkspace
from src.workspace.models import Item
from src.workspace.validate_input import validate_regex

logger = logging.getLogger(__name__)


class ItemPublisher:
    """Publishes repository items into the workspace.

    Example:
        >>> publisher = ItemPublisher(workspace, item_name_exclude_regex="^DEV_")
        >>> publisher.publish(workspace.repository_items["Notebook"]["Hello World"])
    """

    def __init__(
        self,
        workspace: FabricWorkspace,
        item_name_exclude_regex: Optional[str] = None,
        exclude_path: str = NO_MATCH_REGEX,
    ):
        """Initialize the publisher.

        Args:
            workspace: Workspace snapshot to publish into
            item_name_exclude_regex: Items whose name matches are skipped
            exclude_path: Regex of item-relative file paths left out of definitions

        Raises:
            InputError: If a regex does not compile
        """
        self.workspace = workspace
        self.feature_flags = workspace.feature_flags
        self.exclude_name = (
            validate_regex(item_name_exclude_regex, "item_name_exclude_regex")
            if item_name_exclude_regex
            else None
        )
        self.exclude_path = validate_regex(exclude_path, "exclude_path")

    def publish(self, item: Item) -> None:
        """Create or update one item in the workspace.

        Args:
            item: Repository item; its guid is set when the item is created

        Raises:
            ItemPublishError: If any step fails, chained to the underlying error
            OperationCancelledError: If the run was cancelled
        """
        if self.exclude_name and self.exclude_name.search(item.name):
            item.skip_publish = True
            logger.info(f"Skipping publishing of {item.type} '{item.name}' due to exclusion regex.")
            return

        logger.info(f"Publishing {item.type} '{item.name}'")
        try:
            self._publish(item)
        except OperationCancelledError:
            raise
        except SyncError as e:
            raise ItemPublishError(item.type, item.name, str(e)) from e
        logger.info(f"{INDENT}Published")

    def _publish(self, item: Item) -> None:
        self._substitute(item)

        max_retries = MAX_RETRY_OVERRIDE.get(item.type, DEFAULT_MAX_RETRIES)
        shell_only = item.type in SHELL_ONLY_PUBLISH
        base_url = self.workspace.base_api_url

        metadata_body: Dict[str, Any] = {"displayName": item.name, "type": item.type}
        if item.description:
            metadata_body["description"] = item.description

        definition_body: Dict[str, Any] = {}
        if not shell_only:
            definition_body = {"definition": {"parts": self._definition_parts(item)}}

        is_deployed = bool(item.guid)

        if not is_deployed:
            body = {**metadata_body, **definition_body, "folderId": item.folder_id}
            response = self.workspace.endpoint.invoke("POST", f"{base_url}/items", body=body, max_retries=max_retries)
            item_guid = response.body.get("id") if isinstance(response.body, dict) else None
            if not item_guid:
                raise ApiError(
                    "Create item response did not contain an id",
                    status_code=response.status_code,
                    body=response.body,
                    url=f"{base_url}/items",
                )
            item.guid = item_guid
        elif not shell_only:
            self.workspace.endpoint.invoke(
                "POST",
                f"{base_url}/items/{item.guid}/updateDefinition?updateMetadata=True",
                body=definition_body,
                max_retries=max_retries,
            )
        else:
            patch_body = {key: value for key, value in metadata_body.items() if key != "type"}
            self.workspace.endpoint.invoke(
                "PATCH", f"{base_url}/items/{item.guid}", body=patch_body, max_retries=max_retries
            )

        if is_deployed and self.feature_flags.folder_publish_enabled:
            deployed = self.workspace.deployed_items.get(item.type, {}).get(item.name)
            if deployed is not None and deployed.folder_id != item.folder_id:
                self.workspace.endpoint.invoke(
                    "POST",
                    f"{base_url}/items/{item.guid}/move",
                    body={"targetFolderId": item.folder_id},
                    max_retries=max_retries,
                )
                logger.debug(f"Moved {item.guid} from folder_id {deployed.folder_id} to folder_id {item.folder_id}")

    def _substitute(self, item: Item) -> None:
        """Rewrite item files for the target workspace.

        Order: own logical id, references to other items, workspace id,
        then parameter rules.
        """
        item.replace_in_body("logicalId", item.logical_id)
        self._replace_logical_ids(item)
        item.replace_in_body("workspaceId", self.workspace.workspace_id)
        apply_parameters(item, self.workspace.environment_parameter, self.workspace.substitution_context())

    def _replace_logical_ids(self, item: Item) -> None:
        for items in self.workspace.repository_items.values():
            for other in items.values():
                if other is item or not other.logical_id:
                    continue
                for item_file in item.item_files:
                    if item_file.type != "text" or item_file.name == ITEM_MARKER_FILE:
                        continue
                    if not item_file.contains(other.logical_id):
                        continue
                    if not other.guid:
                        raise ParsingError(
                            f"Cannot replace logical ID '{other.logical_id}' as referenced item "
                            f"{other.type} '{other.name}' is not yet deployed.",
                            str(item_file.file_path),
                        )
                    item_file.replace_text(other.logical_id, other.guid)

    def _definition_parts(self, item: Item):
        parts = []
        for item_file in item.item_files:
            if item_file.name == ITEM_MARKER_FILE:
                continue
            if self.exclude_path.search(item_file.relative_path):
                continue
            parts.append(item_file.base64_payload)
        return parts
