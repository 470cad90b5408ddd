from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from schema_sync.core.config import get_settings
from schema_sync.core.retry import RetryConfig


class DatabaseConfig(BaseModel):
    """Database connection configuration"""
    host: str
    port: int = 3306
    user: str
    password: str = ""
    database: Optional[str] = None

    def describe(self) -> str:
        """Connection description without credentials"""
        return f"{self.user}@{self.host}:{self.port}/{self.database or ''}"


class ComparisonOptions(BaseModel):
    """Options for schema comparison"""
    compare_columns: bool = True
    compare_indexes: bool = True
    compare_constraints: bool = True

    included_tables: Optional[List[str]] = None
    excluded_tables: Optional[List[str]] = None

    ignore_auto_increment: bool = False

    def should_compare_table(self, table_name: str) -> bool:
        """Check if a table passes the include/exclude filters"""
        if self.included_tables and table_name not in self.included_tables:
            return False
        if self.excluded_tables and table_name in self.excluded_tables:
            return False
        return True


class SyncConfig(BaseModel):
    """Everything one synchronization run needs"""
    source: DatabaseConfig
    target: DatabaseConfig
    dry_run: bool = False
    # Unset fields fall back to the SCHEMA_SYNC_SYNC_* and SCHEMA_SYNC_RETRY_* settings
    timeout: Optional[float] = Field(default_factory=lambda: get_settings().SYNC_TIMEOUT)
    transactional: bool = Field(default_factory=lambda: get_settings().SYNC_TRANSACTIONAL)
    retry: RetryConfig = Field(default_factory=lambda: RetryConfig.from_settings(get_settings()))
    options: ComparisonOptions = Field(default_factory=ComparisonOptions)


class SyncProgress(BaseModel):
    """Phase transition update"""
    phase: Literal["connecting", "extracting", "comparing", "planning", "executing", "complete", "error"]
    current: int = 0
    total: int = 0
    message: Optional[str] = None
