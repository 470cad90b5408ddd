from abc import ABC, abstractmethod

from schema_sync.core.database import DatabaseConnection
from schema_sync.models.schema import Schema


class SchemaExtractor(ABC):
    """Reads a Schema snapshot out of a live database"""

    @abstractmethod
    async def extract_schema(self, conn: DatabaseConnection, database_name: str) -> Schema:
        """
        Extract the full schema of `database_name`.

        The returned Schema is expected to be internally consistent: every
        index and constraint column exists in its table.
        """
