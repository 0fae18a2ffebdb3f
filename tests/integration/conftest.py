"""Pytest configuration and fixtures for integration tests.

Integration tests drive the real FabricEndpoint against an in-memory
Fabric workspace service, so requests, long-running operations and
state changes go through the same code paths as a live run.
"""

import json
import uuid
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch
from urllib.parse import urlparse

import pytest

from src.fabric_client.auth import TokenProvider
from src.fabric_client.endpoint import FabricEndpoint
from tests.helpers.fabric_api import make_response

API_ROOT = "https://api.fabric.microsoft.com"


class InMemoryFabricService:
    """Minimal Fabric workspace API backed by dictionaries.

    Item creation is answered as a long-running operation (202, then an
    operation poll, then the result URL) like the real service does for
    items with definitions.
    """

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id
        self.items: Dict[str, Dict[str, Any]] = {}
        self.folders: Dict[str, Dict[str, Any]] = {}
        self.definitions: Dict[str, List[Dict[str, str]]] = {}
        self.operations: Dict[str, Dict[str, Any]] = {}
        self.requests: List[tuple] = []

    @property
    def base(self) -> str:
        return f"/v1/workspaces/{self.workspace_id}"

    def request(self, method, url, headers=None, data=None, files=None, timeout=None):
        self.requests.append((method, url))
        path = urlparse(url).path
        body = json.loads(data) if data else None

        if path.startswith("/v1/operations/"):
            return self._operation(path, url)
        if path == f"{self.base}/items":
            if method == "GET":
                return make_response(200, {"value": list(self.items.values())}, url=url)
            return self._create_item(body, url)
        if path == f"{self.base}/folders":
            if method == "GET":
                return make_response(200, {"value": list(self.folders.values())}, url=url)
            return self._create_folder(body, url)
        if path.startswith(f"{self.base}/folders/") and method == "DELETE":
            self.folders.pop(path.rsplit("/", 1)[-1], None)
            return make_response(200, url=url)
        if path.startswith(f"{self.base}/lakehouses/"):
            return make_response(200, {"properties": {"sqlEndpointProperties": {
                "connectionString": f"{path.rsplit('/', 1)[-1]}.datawarehouse.fabric.microsoft.com"
            }}}, url=url)
        if path.startswith(f"{self.base}/items/"):
            return self._item_request(method, path, body, url)
        return make_response(404, {"errorCode": "NotFound"}, url=url)

    def _create_item(self, body, url):
        guid = str(uuid.uuid4())
        self.items[guid] = {
            "id": guid,
            "type": body["type"],
            "displayName": body["displayName"],
            "description": body.get("description", ""),
            "folderId": body.get("folderId") or None,
        }
        self.definitions[guid] = (body.get("definition") or {}).get("parts", [])

        operation_id = str(uuid.uuid4())
        self.operations[operation_id] = {"result": self.items[guid], "polled": False}
        return make_response(202, None, {"Location": f"{API_ROOT}/v1/operations/{operation_id}"}, url=url)

    def _operation(self, path, url):
        parts = path.strip("/").split("/")
        operation = self.operations[parts[2]]
        if len(parts) == 4 and parts[3] == "result":
            return make_response(200, operation["result"], url=url)
        if not operation["polled"]:
            operation["polled"] = True
            return make_response(200, {"status": "Running"}, {"Location": url}, url=url)
        return make_response(200, {"status": "Succeeded"}, {"Location": f"{url}/result"}, url=url)

    def _create_folder(self, body, url):
        folder_id = str(uuid.uuid4())
        folder = {"id": folder_id, "displayName": body["displayName"]}
        if body.get("parentFolderId"):
            folder["parentFolderId"] = body["parentFolderId"]
        self.folders[folder_id] = folder
        return make_response(201, folder, url=url)

    def _item_request(self, method, path, body, url):
        segments = path[len(f"{self.base}/items/"):].split("/")
        guid = segments[0]
        if guid not in self.items:
            return make_response(404, {"errorCode": "ItemNotFound"}, url=url)

        if method == "DELETE":
            del self.items[guid]
            return make_response(200, url=url)
        if method == "PATCH":
            self.items[guid].update(body)
            return make_response(200, self.items[guid], url=url)
        if segments[-1] == "updateDefinition":
            self.definitions[guid] = body["definition"]["parts"]
            return make_response(200, url=url)
        if segments[-1] == "move":
            self.items[guid]["folderId"] = body["targetFolderId"] or None
            return make_response(200, url=url)
        return make_response(400, {"errorCode": "BadRequest"}, url=url)

    def find(self, item_type: str, name: str) -> Optional[Dict[str, Any]]:
        for item in self.items.values():
            if item["type"] == item_type and item["displayName"] == name:
                return item
        return None

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for m, url in self.requests if m == method and urlparse(url).path.endswith(suffix))


@pytest.fixture
def fabric_service(workspace_id):
    return InMemoryFabricService(workspace_id)


@pytest.fixture
def live_endpoint(fabric_service):
    """FabricEndpoint wired to the in-memory service, with sleeps disabled."""
    token_provider = Mock(spec=TokenProvider)
    token_provider.get_token.return_value = "integration-token"
    with patch('time.sleep'):
        yield FabricEndpoint(token_provider, session=fabric_service)
