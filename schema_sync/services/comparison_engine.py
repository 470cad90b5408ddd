from typing import List, Dict, Optional
import logging
import time

from schema_sync.core.constants import RENAME_SIMILARITY_THRESHOLD, SHRINKING_TYPE_CHANGES
from schema_sync.core.errors import validation_error
from schema_sync.models.base import ComparisonOptions
from schema_sync.models.schema import (
    Schema, Table, SchemaDiff, TableDiff, ConstraintType, base_data_type
)
from schema_sync.services.comparers.base_comparer import BaseComparer
from schema_sync.services.comparers.column_comparer import ColumnComparer
from schema_sync.services.comparers.index_comparer import IndexComparer
from schema_sync.services.comparers.constraint_comparer import ConstraintComparer

logger = logging.getLogger(__name__)


class SchemaComparisonEngine:
    """Computes the structural differences between two schema snapshots"""

    def __init__(self, options: Optional[ComparisonOptions] = None):
        self.options = options or ComparisonOptions()
        self.comparers: List[BaseComparer] = [
            ColumnComparer(self.options),
            IndexComparer(self.options),
            ConstraintComparer(self.options),
        ]

    def compare(self, source: Optional[Schema], target: Optional[Schema]) -> SchemaDiff:
        """
        Compare source against target.

        Tables only in source are added, tables only in target are removed,
        and tables on both sides go through the comparer chain. Names are
        visited in sorted order so the result is deterministic.
        """
        if source is None:
            raise validation_error("source schema is nil")
        if target is None:
            raise validation_error("target schema is nil")

        start_time = time.time()
        diff = SchemaDiff()

        source_tables = self._filter_tables(source)
        target_tables = self._filter_tables(target)
        added, removed, common = BaseComparer.split_by_name(source_tables, target_tables)

        for name in added:
            diff.added_tables.append(source_tables[name])
        for name in removed:
            diff.removed_tables.append(target_tables[name])

        comparers = [comparer for comparer in self.comparers if comparer.is_enabled()]
        for name in common:
            table_diff = TableDiff(table_name=name)
            for comparer in comparers:
                comparer.compare_tables(source_tables[name], target_tables[name], table_diff, diff)
            if not table_diff.is_empty():
                diff.modified_tables.append(table_diff)

        logger.info(
            f"Compared schemas '{source.name}' vs '{target.name}': "
            f"{diff.change_count()} changes found ({time.time() - start_time:.2f}s)"
        )
        return diff

    def _filter_tables(self, schema: Schema) -> Dict[str, Table]:
        return {
            name: table
            for name, table in schema.tables.items()
            if self.options.should_compare_table(name)
        }

    @staticmethod
    def is_schema_diff_empty(diff: SchemaDiff) -> bool:
        """True iff the diff, and every nested table diff, has no entries"""
        return (
            not diff.added_tables
            and not diff.removed_tables
            and all(table_diff.is_empty() for table_diff in diff.modified_tables)
            and not diff.added_indexes
            and not diff.removed_indexes
            and not diff.added_constraints
            and not diff.removed_constraints
        )

    @staticmethod
    def get_schema_stats(schema: Schema) -> Dict[str, int]:
        """Table, column, index and constraint counts"""
        return {
            "tables": len(schema.tables),
            "columns": sum(len(table.columns) for table in schema.tables.values()),
            "indexes": sum(len(table.indexes) for table in schema.tables.values()),
            "constraints": sum(len(table.constraints) for table in schema.tables.values()),
        }

    def detect_renamed_tables(self, source: Schema, target: Schema) -> Dict[str, str]:
        """
        Guess renamed tables by column similarity.

        Returns a mapping of old (target) table name to new (source) table
        name for removed/added table pairs more than 80% alike.
        """
        added, removed, _ = BaseComparer.split_by_name(source.tables, target.tables)
        candidates = list(removed)
        renames: Dict[str, str] = {}

        for added_name in added:
            best_match = None
            best_score = 0.0
            for removed_name in candidates:
                score = self.calculate_table_similarity(
                    source.tables[added_name], target.tables[removed_name]
                )
                if score > best_score and score > RENAME_SIMILARITY_THRESHOLD:
                    best_score = score
                    best_match = removed_name

            if best_match is not None:
                renames[best_match] = added_name
                candidates.remove(best_match)

        return renames

    def calculate_table_similarity(self, first: Table, second: Table) -> float:
        """Share of identical columns, relative to the wider table"""
        if not first.columns and not second.columns:
            return 1.0
        if not first.columns or not second.columns:
            return 0.0

        column_comparer = ColumnComparer(self.options)
        matching = sum(
            1
            for name, column in first.columns.items()
            if name in second.columns and column_comparer.columns_equal(column, second.columns[name])
        )
        return matching / max(len(first.columns), len(second.columns))

    def detect_complex_modifications(self, diff: SchemaDiff) -> List[str]:
        """Warnings for changes that may lose data or need manual attention"""
        warnings = []

        for table in diff.removed_tables:
            warnings.append(f"Table '{table.name}' will be dropped - this will result in data loss")

        for table_diff in diff.modified_tables:
            table_name = table_diff.table_name
            for column in table_diff.removed_columns:
                warnings.append(
                    f"Column '{table_name}.{column.name}' will be dropped - this will result in data loss"
                )

            for column_diff in table_diff.modified_columns:
                old_column = column_diff.old_column
                new_column = column_diff.new_column
                if self.is_data_type_shrinking(old_column.data_type, new_column.data_type):
                    warnings.append(
                        f"Column '{table_name}.{column_diff.column_name}' data type change from "
                        f"{old_column.data_type} to {new_column.data_type} may cause data loss"
                    )

                if not old_column.is_nullable and new_column.is_nullable:
                    warnings.append(
                        f"Column '{table_name}.{column_diff.column_name}' is changing from NOT NULL to NULL"
                    )
                elif old_column.is_nullable and not new_column.is_nullable:
                    warnings.append(
                        f"Column '{table_name}.{column_diff.column_name}' is changing from NULL to NOT NULL "
                        f"- ensure no NULL values exist"
                    )

            for constraint in table_diff.removed_constraints:
                if constraint.constraint_type == ConstraintType.FOREIGN_KEY:
                    warnings.append(
                        f"Foreign key constraint '{constraint.name}' will be dropped from table '{table_name}'"
                    )

        return warnings

    @staticmethod
    def is_data_type_shrinking(old_type: str, new_type: str) -> bool:
        """Whether the base type narrows, e.g. BIGINT to INT or TEXT to VARCHAR"""
        old_base = base_data_type(old_type)
        new_base = base_data_type(new_type)
        return new_base in SHRINKING_TYPE_CHANGES.get(old_base, ())
