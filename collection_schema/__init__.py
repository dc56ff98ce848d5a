"""Field and collection schema definitions."""

from collection_schema.field import (
    Field,
    array,
    primary_key,
    scalar,
    sparse_vector,
    struct,
    varchar,
    vector,
)
from collection_schema.field_types import FieldKind
from collection_schema.function import Function, FunctionType, bm25
from collection_schema.schema import DYNAMIC_FIELD_NAME, CollectionSchema, build, try_build

__all__ = [
    "DYNAMIC_FIELD_NAME",
    "CollectionSchema",
    "Field",
    "FieldKind",
    "Function",
    "FunctionType",
    "array",
    "bm25",
    "build",
    "primary_key",
    "scalar",
    "sparse_vector",
    "struct",
    "try_build",
    "varchar",
    "vector",
]
