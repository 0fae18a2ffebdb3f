"""Constants shared by the workspace, publish and parameter packages."""

VERSION = "0.1.0"

DEFAULT_API_ROOT_URL = "https://api.fabric.microsoft.com"

# Item types
ACCEPTED_ITEM_TYPES = (
    "DataPipeline",
    "Environment",
    "Notebook",
    "Report",
    "SemanticModel",
    "Lakehouse",
    "MirroredDatabase",
    "VariableLibrary",
    "CopyJob",
    "Eventhouse",
    "KQLDatabase",
    "KQLQueryset",
    "Reflex",
    "Eventstream",
    "Warehouse",
    "SQLDatabase",
    "KQLDashboard",
    "Dataflow",
)

# Publish order: upstream dependencies before their consumers
PUBLISH_ORDER = (
    "VariableLibrary",
    "Warehouse",
    "Lakehouse",
    "SQLDatabase",
    "MirroredDatabase",
    "Environment",
    "Notebook",
    "SemanticModel",
    "Report",
    "CopyJob",
    "Eventhouse",
    "KQLDatabase",
    "KQLQueryset",
    "Reflex",
    "Eventstream",
    "KQLDashboard",
    "Dataflow",
    "DataPipeline",
)

# Unpublish order: consumers before the items they depend on
UNPUBLISH_ORDER = (
    "DataPipeline",
    "Dataflow",
    "Eventstream",
    "Reflex",
    "KQLDashboard",
    "KQLQueryset",
    "KQLDatabase",
    "Eventhouse",
    "CopyJob",
    "Report",
    "SemanticModel",
    "Notebook",
    "Environment",
    "MirroredDatabase",
    "SQLDatabase",
    "Lakehouse",
    "Warehouse",
    "VariableLibrary",
)

MAX_RETRY_OVERRIDE = {
    "SemanticModel": 10,
    "Report": 10,
    "Eventstream": 10,
    "KQLDatabase": 10,
    "SQLDatabase": 10,
    "Warehouse": 10,
    "Dataflow": 10,
    "VariableLibrary": 7,
}
DEFAULT_MAX_RETRIES = 5

# Types whose remote representation has no uploadable definition
SHELL_ONLY_PUBLISH = ("Environment", "Lakehouse", "Warehouse", "SQLDatabase")

# Feature flags
FLAG_DISABLE_FOLDER_PUBLISH = "disable_workspace_folder_publish"
FLAG_ENABLE_LAKEHOUSE_UNPUBLISH = "enable_lakehouse_unpublish"
FLAG_ENABLE_WAREHOUSE_UNPUBLISH = "enable_warehouse_unpublish"
FLAG_ENABLE_SQLDATABASE_UNPUBLISH = "enable_sqldatabase_unpublish"

UNPUBLISH_FLAG_MAPPING = {
    "Lakehouse": FLAG_ENABLE_LAKEHOUSE_UNPUBLISH,
    "Warehouse": FLAG_ENABLE_WAREHOUSE_UNPUBLISH,
    "SQLDatabase": FLAG_ENABLE_SQLDATABASE_UNPUBLISH,
}

# Repository layout
ITEM_MARKER_FILE = ".platform"
FOLDER_MANIFEST_FILE = ".workspace_folders.json"
PARAMETER_FILE_NAME = "parameter.yml"
TEXT_FILE_EXTENSIONS = (".json", ".txt")

# Regex
VALID_GUID_REGEX = r"^[a-fA-F0-9]{8}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{12}$"
INVALID_FOLDER_CHAR_REGEX = r"[~\"#.%&*:<>?/\\{|}]"
NO_MATCH_REGEX = r"^(?!.*)"

# Item attributes resolvable through $items.<type>.<name>.<attr>
ITEM_ATTR_LOOKUP = ("id", "sqlendpoint")

# Extra properties fetched for deployed items, by type
PROPERTY_PATH_MAPPING = {
    "Lakehouse": "properties/sqlEndpointProperties/connectionString",
}

INDENT = "->"
