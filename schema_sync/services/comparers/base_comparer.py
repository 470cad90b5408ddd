from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Tuple, TypeVar
import logging

from schema_sync.models.base import ComparisonOptions
from schema_sync.models.schema import Table, TableDiff, SchemaDiff

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseComparer(ABC):
    """Base class for all table-level object comparers"""

    object_type: str

    def __init__(self, options: ComparisonOptions):
        self.options = options

    @abstractmethod
    def compare_tables(
        self,
        source_table: Table,
        target_table: Table,
        table_diff: TableDiff,
        schema_diff: SchemaDiff
    ) -> None:
        """Compare one table present on both sides, recording deltas in the diffs"""
        pass

    def is_enabled(self) -> bool:
        """Whether the comparison options turn this comparer on"""
        return True

    @staticmethod
    def split_by_name(
        source_objects: Dict[str, T],
        target_objects: Dict[str, T]
    ) -> Tuple[List[str], List[str], List[str]]:
        """
        Split object names into (source only, target only, both).

        Each list is sorted so comparison output is deterministic.
        """
        source_names = set(source_objects)
        target_names = set(target_objects)
        return (
            sorted(source_names - target_names),
            sorted(target_names - source_names),
            sorted(source_names & target_names),
        )

    @staticmethod
    def index_by_name(objects: Iterable[T]) -> Dict[str, T]:
        return {obj.name: obj for obj in objects}
