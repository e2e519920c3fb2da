"""Project-wide constants for the Firebase MCP server."""

SERVER_NAME = "firebase-mcp"
DEFAULT_CONFIG_FILE_NAME = "firebase-mcp-config.yaml"

DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100
DEFAULT_RATE_LIMIT_WINDOW_MS = 60_000

MAX_BATCH_OPERATIONS = 500
DEFAULT_QUERY_LIMIT = 50
DEFAULT_DELETE_BATCH_SIZE = 100
DEFAULT_LIST_USERS_MAX_RESULTS = 1000
DEFAULT_LIST_FILES_MAX_RESULTS = 1000

DEFAULT_SIGNED_URL_EXPIRY_SECONDS = 3600
DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"

QUERY_OPERATORS = frozenset(
    {
        "==",
        "!=",
        "<",
        "<=",
        ">",
        ">=",
        "array-contains",
        "array-contains-any",
        "in",
        "not-in",
    }
)
ORDER_DIRECTIONS = frozenset({"asc", "desc"})
BATCH_OPERATION_TYPES = frozenset({"set", "update", "delete"})

ADMIN_ROLE = "admin"
ANONYMOUS_CALLER = "anonymous"
