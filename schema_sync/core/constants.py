"""
Constants for the schema synchronization core.
"""

from typing import Tuple, FrozenSet


# ============================================================================
# Connection Error Patterns
# ============================================================================
# Used for retry logic - these errors indicate transient connection issues
# that may be resolved by retrying

CONNECTION_ERROR_PATTERNS: Tuple[str, ...] = (
    "lost connection to mysql server",
    "mysql server has gone away",
    "can't connect to mysql server",
    "connection timeout",
    "broken pipe",
    "connection refused",
    "connection reset",
    "network is unreachable",
    "no route to host",
    "connection timed out",
)


def is_connection_error(error_message: str) -> bool:
    """
    Check if an error message indicates a connection-related issue.

    Args:
        error_message: The error message to check

    Returns:
        True if the error appears to be connection-related
    """
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in CONNECTION_ERROR_PATTERNS)


# ============================================================================
# Permission Failure Patterns
# ============================================================================
# These errors never go away on retry

PERMISSION_ERROR_PATTERNS: Tuple[str, ...] = (
    "access denied",
    "command denied",
    "permission denied",
)


def is_permission_error(error_message: str) -> bool:
    """Check if an error message indicates missing privileges"""
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in PERMISSION_ERROR_PATTERNS)


# ============================================================================
# MySQL Server Error Codes
# ============================================================================

MYSQL_DB_ACCESS_DENIED: int = 1044
MYSQL_ACCESS_DENIED: int = 1045
MYSQL_UNKNOWN_DATABASE: int = 1049
MYSQL_UNKNOWN_COLUMN: int = 1054
MYSQL_DUPLICATE_ENTRY: int = 1062
MYSQL_SYNTAX_ERROR: int = 1064
MYSQL_TABLE_ACCESS_DENIED: int = 1142
MYSQL_NO_SUCH_TABLE: int = 1146
MYSQL_LOCK_WAIT_TIMEOUT: int = 1205
MYSQL_CANT_CONNECT: int = 2003
MYSQL_SERVER_GONE: int = 2006
MYSQL_SERVER_LOST: int = 2013


# ============================================================================
# Retry Configuration
# ============================================================================

DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY_SECONDS: float = 1.0
DEFAULT_RETRY_MULTIPLIER: float = 2.0
MAX_RETRY_DELAY_SECONDS: float = 30.0


def calculate_retry_delay(
    attempt: int,
    base_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    multiplier: float = DEFAULT_RETRY_MULTIPLIER,
    max_delay: float = MAX_RETRY_DELAY_SECONDS,
) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        attempt: Attempt that just failed (1-indexed)
        base_delay: Delay after the first failed attempt, in seconds
        multiplier: Growth factor between consecutive attempts
        max_delay: Upper bound for the delay

    Returns:
        Delay in seconds (capped at max_delay)
    """
    delay = base_delay * (multiplier ** (max(attempt, 1) - 1))
    return min(delay, max_delay)


# ============================================================================
# MySQL Dialect
# ============================================================================

VALID_MYSQL_DATA_TYPES: FrozenSet[str] = frozenset({
    # Numeric types
    "tinyint", "smallint", "mediumint", "int", "integer", "bigint",
    "decimal", "numeric", "float", "double", "bit", "bool", "boolean",
    # String types
    "char", "varchar", "binary", "varbinary",
    "tinyblob", "blob", "mediumblob", "longblob",
    "tinytext", "text", "mediumtext", "longtext",
    # Date and time types
    "date", "time", "datetime", "timestamp", "year",
    # JSON type
    "json",
    # Enum and Set
    "enum", "set",
    # Geometry types
    "geometry", "point", "linestring", "polygon",
    "multipoint", "multilinestring", "multipolygon", "geometrycollection",
})

VALID_INDEX_TYPES: FrozenSet[str] = frozenset({"BTREE", "HASH", "RTREE", "FULLTEXT"})

DEFAULT_INDEX_TYPE: str = "BTREE"

# Base type narrowings that can truncate existing data
SHRINKING_TYPE_CHANGES = {
    "text": ("varchar", "char"),
    "longtext": ("text", "mediumtext", "varchar", "char"),
    "mediumtext": ("text", "varchar", "char"),
    "bigint": ("int", "mediumint", "smallint", "tinyint"),
    "int": ("mediumint", "smallint", "tinyint"),
    "mediumint": ("smallint", "tinyint"),
    "smallint": ("tinyint",),
    "double": ("float",),
}

# Minimum column similarity for two tables to be considered a rename
RENAME_SIMILARITY_THRESHOLD: float = 0.8
