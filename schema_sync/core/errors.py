"""
Error taxonomy for schema synchronization.

Every failure that leaves the pipeline is an AppError carrying a kind, a
recoverable flag, and key/value context for diagnostics. Raw driver, network,
filesystem and cancellation errors are mapped onto the taxonomy by
ErrorClassifier.
"""

import asyncio
import errno
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pymysql.err import MySQLError
from sqlalchemy.exc import DBAPIError

from . import constants
from .context import DeadlineExceeded, OperationCancelled

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Kinds of classified errors"""
    CONNECTION = "connection"
    SQL = "sql"
    SCHEMA = "schema"
    VALIDATION = "validation"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    INTERRUPTION = "interruption"
    UNKNOWN = "unknown"


class AppError(Exception):
    """Classified application error"""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        cause: Optional[BaseException] = None,
        recoverable: bool = False,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.cause = cause
        self.recoverable = recoverable
        self.user_message = user_message
        self.context: Dict[str, Any] = dict(context or {})
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.error_type.value}: {self.message}: {self.cause}"
        return f"{self.error_type.value}: {self.message}"

    def __repr__(self) -> str:
        return f"AppError(error_type={self.error_type.value!r}, message={self.message!r})"

    def with_context(self, key: str, value: Any) -> "AppError":
        """Attach a context value and return self for chaining"""
        self.context[key] = value
        return self

    def get_user_message(self) -> str:
        """Short message suitable for display"""
        if self.user_message:
            return self.user_message
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "user_message": self.get_user_message(),
            "recoverable": self.recoverable,
            "context": {k: str(v) for k, v in self.context.items()},
            "cause": str(self.cause) if self.cause is not None else None,
        }


# Convenience constructors

def connection_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.CONNECTION,
        message,
        cause=cause,
        recoverable=True,
        user_message="Unable to connect to the database. Please check your connection settings.",
    )


def sql_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.SQL,
        message,
        cause=cause,
        user_message="SQL execution failed. Please check the SQL syntax and database state.",
    )


def schema_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.SCHEMA,
        message,
        cause=cause,
        user_message="Schema operation failed. Please verify the database schema.",
    )


def validation_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.VALIDATION,
        message,
        cause=cause,
        user_message=f"Validation failed: {message}",
    )


def permission_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.PERMISSION,
        message,
        cause=cause,
        user_message="Permission denied. Please check your database user privileges.",
    )


def timeout_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.TIMEOUT,
        message,
        cause=cause,
        recoverable=True,
        user_message="Operation timed out. The database may be busy or the operation is taking longer than expected.",
    )


def interruption_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.INTERRUPTION,
        message,
        cause=cause,
        user_message="Operation was interrupted.",
    )


def unknown_error(message: str, cause: Optional[BaseException] = None) -> AppError:
    return AppError(
        ErrorType.UNKNOWN,
        message,
        cause=cause,
        user_message="An unexpected error occurred.",
    )


class ErrorClassifier:
    """Maps raw exceptions onto the error taxonomy"""

    # MySQL server/client error code -> (kind, recoverable, message)
    MYSQL_ERROR_CODES = {
        constants.MYSQL_DB_ACCESS_DENIED: (ErrorType.PERMISSION, False, "database access denied"),
        constants.MYSQL_ACCESS_DENIED: (ErrorType.PERMISSION, False, "access denied"),
        constants.MYSQL_TABLE_ACCESS_DENIED: (ErrorType.PERMISSION, False, "command denied"),
        constants.MYSQL_UNKNOWN_DATABASE: (ErrorType.VALIDATION, False, "unknown database"),
        constants.MYSQL_NO_SUCH_TABLE: (ErrorType.SCHEMA, False, "table doesn't exist"),
        constants.MYSQL_UNKNOWN_COLUMN: (ErrorType.SCHEMA, False, "unknown column"),
        constants.MYSQL_DUPLICATE_ENTRY: (ErrorType.VALIDATION, False, "duplicate entry"),
        constants.MYSQL_SYNTAX_ERROR: (ErrorType.SQL, False, "SQL syntax error"),
        constants.MYSQL_LOCK_WAIT_TIMEOUT: (ErrorType.TIMEOUT, True, "lock wait timeout exceeded"),
        constants.MYSQL_CANT_CONNECT: (ErrorType.CONNECTION, True, "can't connect to MySQL server"),
        constants.MYSQL_SERVER_GONE: (ErrorType.CONNECTION, True, "MySQL server has gone away"),
        constants.MYSQL_SERVER_LOST: (ErrorType.CONNECTION, True, "lost connection to MySQL server"),
    }

    @classmethod
    def classify(cls, exc: BaseException) -> AppError:
        """Classify any exception into an AppError"""
        if isinstance(exc, AppError):
            return exc

        # SQLAlchemy wraps the DBAPI error
        raw = exc.orig if isinstance(exc, DBAPIError) and exc.orig is not None else exc

        if isinstance(raw, MySQLError):
            return cls._classify_mysql(raw, exc)

        if isinstance(raw, DeadlineExceeded):
            return timeout_error("operation timed out", exc)
        if isinstance(raw, (OperationCancelled, asyncio.CancelledError)):
            return interruption_error("operation was cancelled", exc)

        # Builtin OS errors: connection before timeout, both before files
        if isinstance(raw, ConnectionError):
            return connection_error("network connection failed", exc)
        if isinstance(raw, TimeoutError):
            return timeout_error("operation timed out", exc)
        if isinstance(raw, FileNotFoundError):
            return validation_error("file not found", exc)
        if isinstance(raw, PermissionError):
            return permission_error("file permission denied", exc)
        if isinstance(raw, OSError) and raw.errno == errno.ENOSPC:
            return validation_error("no space left on device", exc)

        message = str(raw)
        if constants.is_connection_error(message):
            return connection_error("database connection failed", exc)
        if constants.is_permission_error(message):
            return permission_error("access denied", exc)

        return unknown_error("unexpected error occurred", exc)

    @classmethod
    def _classify_mysql(cls, raw: MySQLError, exc: BaseException) -> AppError:
        code = raw.args[0] if raw.args and isinstance(raw.args[0], int) else None
        if code in cls.MYSQL_ERROR_CODES:
            error_type, recoverable, message = cls.MYSQL_ERROR_CODES[code]
            factory = _FACTORIES[error_type]
            error = factory(message, exc)
            error.recoverable = recoverable
        elif constants.is_connection_error(str(raw)):
            error = connection_error("database connection failed", exc)
        else:
            error = sql_error("MySQL error", exc)
        if code is not None:
            error.with_context("mysql_error_code", code)
        return error


_FACTORIES = {
    ErrorType.CONNECTION: connection_error,
    ErrorType.SQL: sql_error,
    ErrorType.SCHEMA: schema_error,
    ErrorType.VALIDATION: validation_error,
    ErrorType.PERMISSION: permission_error,
    ErrorType.TIMEOUT: timeout_error,
    ErrorType.INTERRUPTION: interruption_error,
    ErrorType.UNKNOWN: unknown_error,
}


def is_recoverable(exc: BaseException) -> bool:
    return ErrorClassifier.classify(exc).recoverable


def format_user_error(exc: Optional[BaseException]) -> str:
    """Format an error for display to the user"""
    if exc is None:
        return ""
    return ErrorClassifier.classify(exc).get_user_message()


TROUBLESHOOTING_GUIDANCE: Dict[ErrorType, List[str]] = {
    ErrorType.CONNECTION: [
        "Check if the MySQL server is running",
        "Verify the host and port are correct",
        "Check network connectivity",
        "Ensure firewall allows connections",
    ],
    ErrorType.PERMISSION: [
        "Verify username and password are correct",
        "Check if the user has necessary privileges",
        "Ensure the user can connect from this host",
    ],
    ErrorType.VALIDATION: [
        "Check command-line arguments and configuration",
        "Verify database names and connection parameters",
        "Ensure all required fields are provided",
    ],
    ErrorType.SCHEMA: [
        "Verify the database schema exists",
        "Check table and column names",
        "Ensure schema is accessible",
    ],
    ErrorType.SQL: [
        "Review the generated SQL statements",
        "Check for syntax errors",
        "Verify database state is consistent",
    ],
    ErrorType.TIMEOUT: [
        "Try increasing the timeout value",
        "Check database server performance",
        "Consider running during off-peak hours",
    ],
    ErrorType.INTERRUPTION: [
        "The operation was cancelled before it finished",
        "Re-run the synchronization to apply remaining changes",
    ],
}


def get_troubleshooting_guidance(error_type: ErrorType) -> List[str]:
    """Get troubleshooting hints for an error kind"""
    return list(TROUBLESHOOTING_GUIDANCE.get(error_type, []))
