"""Compare a locally declared schema against the one deployed on the server."""

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import milvus_pb2

from collection_schema.field import Field
from collection_schema.schema import CollectionSchema
from common.errors import SchemaMismatchError
from rpc.invoker import Invoker, call

# Attributes that count as drift. Description and field order do not.
COMPARED_ATTRIBUTES = (
    "kind",
    "dimension",
    "max_length",
    "nullable",
    "is_partition_key",
    "is_clustering_key",
    "element_type",
    "max_capacity",
)


class FieldMismatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    expected: Field
    actual: Field

    def differing_attributes(self) -> list[str]:
        return [a for a in COMPARED_ATTRIBUTES if getattr(self.expected, a) != getattr(self.actual, a)]


class SchemaDiff(BaseModel):
    """Differences between an expected and an actual schema."""

    model_config = ConfigDict(frozen=True)

    missing: list[str] = []
    extra: list[str] = []
    mismatches: list[FieldMismatch] = []

    @property
    def is_empty(self) -> bool:
        return not (self.missing or self.extra or self.mismatches)

    def summary(self) -> str:
        parts = []
        if self.missing:
            parts.append(f"missing {self.missing}")
        if self.extra:
            parts.append(f"extra {self.extra}")
        for mismatch in self.mismatches:
            parts.append(f"'{mismatch.name}' differs on {mismatch.differing_attributes()}")
        return "; ".join(parts) or "no differences"


def diff_schemas(expected: CollectionSchema, actual: CollectionSchema) -> SchemaDiff:
    # Declared dynamic fields live in the metadata column, never as server fields
    expected_fields = {f.name: f for f in expected.fields if not f.is_dynamic}
    actual_fields = {f.name: f for f in actual.fields}

    missing = sorted(expected_fields.keys() - actual_fields.keys())
    extra = sorted(actual_fields.keys() - expected_fields.keys())
    mismatches = [
        FieldMismatch(name=name, expected=expected_fields[name], actual=actual_fields[name])
        for name in sorted(expected_fields.keys() & actual_fields.keys())
        if _fields_differ(expected_fields[name], actual_fields[name])
    ]
    return SchemaDiff(missing=missing, extra=extra, mismatches=mismatches)


def compare_schemas(
    expected: CollectionSchema,
    actual: CollectionSchema,
    strict: bool = False,
) -> SchemaDiff | None:
    """Return None when the schemas match, else the diff.

    In strict mode drift raises :class:`SchemaMismatchError` instead. The
    live schema is never modified.
    """
    diff = diff_schemas(expected, actual)
    if diff.is_empty:
        return None

    message = f"Schema drift on collection '{expected.name}': {diff.summary()}"
    if strict:
        raise SchemaMismatchError(expected.name, message, diff)

    logger.warning(message)
    return diff


def fetch_schema(invoker: Invoker, collection_name: str, db_name: str = "") -> CollectionSchema:
    """Read the deployed schema via ``DescribeCollection``."""
    request = milvus_pb2.DescribeCollectionRequest(db_name=db_name, collection_name=collection_name)
    response = call(invoker, "DescribeCollection", request)
    return CollectionSchema.from_wire(response.schema)


def verify_schema(
    invoker: Invoker,
    schema: CollectionSchema,
    strict: bool = False,
    db_name: str = "",
) -> SchemaDiff | None:
    actual = fetch_schema(invoker, schema.name, db_name)
    return compare_schemas(schema, actual, strict)


def _fields_differ(expected: Field, actual: Field) -> bool:
    return any(getattr(expected, a) != getattr(actual, a) for a in COMPARED_ATTRIBUTES)
