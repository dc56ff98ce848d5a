"""Schema drift detection, index reconciliation and collection migration."""

from migration.index import IndexDescriptor, IndexType, InvertedIndexAlgo, MetricType
from migration.index_reconciler import IndexAction, reconcile_indexes
from migration.migrator import MigrationResult, migrate
from migration.schema_diff import SchemaDiff, compare_schemas, diff_schemas

__all__ = [
    "IndexAction",
    "IndexDescriptor",
    "IndexType",
    "InvertedIndexAlgo",
    "MetricType",
    "MigrationResult",
    "SchemaDiff",
    "compare_schemas",
    "diff_schemas",
    "migrate",
    "reconcile_indexes",
]
