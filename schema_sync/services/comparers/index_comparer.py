import logging

from .base_comparer import BaseComparer
from schema_sync.models.schema import Index, Table, TableDiff, SchemaDiff

logger = logging.getLogger(__name__)


class IndexComparer(BaseComparer):
    """Compare table indexes"""

    object_type = "index"

    def is_enabled(self) -> bool:
        return self.options.compare_indexes

    def compare_tables(
        self,
        source_table: Table,
        target_table: Table,
        table_diff: TableDiff,
        schema_diff: SchemaDiff
    ) -> None:
        source_indexes = self.index_by_name(source_table.indexes)
        target_indexes = self.index_by_name(target_table.indexes)
        added, removed, common = self.split_by_name(source_indexes, target_indexes)

        for name in added:
            schema_diff.added_indexes.append(source_indexes[name])

        for name in removed:
            schema_diff.removed_indexes.append(target_indexes[name])

        # Indexes cannot be altered in place: drop the old one, create the new one
        for name in common:
            source_index = source_indexes[name]
            target_index = target_indexes[name]
            if not self.indexes_equal(source_index, target_index):
                logger.debug(f"Index {source_table.name}.{name} changed, rebuild required")
                schema_diff.removed_indexes.append(target_index)
                schema_diff.added_indexes.append(source_index)

    @staticmethod
    def indexes_equal(source_index: Index, target_index: Index) -> bool:
        return (
            source_index.table_name == target_index.table_name
            and source_index.columns == target_index.columns
            and source_index.is_unique == target_index.is_unique
            and source_index.is_primary == target_index.is_primary
            and (source_index.index_type or "").upper() == (target_index.index_type or "").upper()
        )
