"""Column batches built from user rows or columns, ready for insert.

Example:
    data = Data.from_rows(
        [{"id": 1, "title": "Alien", "embedding": [0.1, 0.2]}],
        schema,
    )
    request = data.to_insert_request("movies")
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import milvus_pb2, schema_pb2

from collection_schema.field import Field
from collection_schema.field_types import FieldKind
from collection_schema.schema import DYNAMIC_FIELD_NAME, CollectionSchema
from common.errors import MilvusValidationError
from data_marshal import field_data
from data_marshal.vector_codec import normalize_sparse


class Data(BaseModel):
    """Column-oriented batch: field name to one value per row.

    The dynamic column, when present, holds one attribute map per row under
    the reserved ``$meta`` name.
    """

    model_config = ConfigDict(frozen=True)

    columns: dict[str, list[Any]]
    collection_schema: CollectionSchema
    num_rows: int

    @classmethod
    def try_from_rows(
        cls, rows: list[dict], schema: CollectionSchema
    ) -> "Data | MilvusValidationError":
        """Group rows into columns, checking key sets and required fields."""
        if not rows:
            return cls(columns={}, collection_schema=schema, num_rows=0)

        rows = [_normalize_keys(row) for row in rows]
        keys = set(rows[0])

        if any(set(row) != keys for row in rows):
            return MilvusValidationError("rows", "rows have different fields")

        error = _check_required(schema, keys, "rows")
        if error is not None:
            return error

        columns = {
            f.name: [_column_value(f, row[f.name]) for row in rows]
            for f in _stored_fields(schema)
            if f.name in keys
        }
        attributes = _route_dynamic(schema, keys, lambda name, i: rows[i][name], len(rows))
        if attributes is not None:
            columns[DYNAMIC_FIELD_NAME] = attributes

        return cls(columns=columns, collection_schema=schema, num_rows=len(rows))

    @classmethod
    def from_rows(cls, rows: list[dict], schema: CollectionSchema) -> "Data":
        result = cls.try_from_rows(rows, schema)
        if isinstance(result, MilvusValidationError):
            raise result
        return result

    @classmethod
    def try_from_columns(
        cls, columns: dict, schema: CollectionSchema
    ) -> "Data | MilvusValidationError":
        """Same rules as :meth:`try_from_rows` for pre-grouped columns."""
        if not columns:
            return cls(columns={}, collection_schema=schema, num_rows=0)

        columns = {str(name): list(values) for name, values in columns.items()}

        lengths = {len(values) for values in columns.values()}
        if len(lengths) > 1:
            return MilvusValidationError("columns", "columns must have the same length")
        num_rows = lengths.pop() if lengths else 0

        keys = set(columns)
        error = _check_required(schema, keys, "columns")
        if error is not None:
            return error

        result = {
            f.name: [_column_value(f, value) for value in columns[f.name]]
            for f in _stored_fields(schema)
            if f.name in keys
        }
        attributes = _route_dynamic(schema, keys, lambda name, i: columns[name][i], num_rows)
        if attributes is not None:
            result[DYNAMIC_FIELD_NAME] = attributes

        return cls(columns=result, collection_schema=schema, num_rows=num_rows)

    @classmethod
    def from_columns(cls, columns: dict, schema: CollectionSchema) -> "Data":
        result = cls.try_from_columns(columns, schema)
        if isinstance(result, MilvusValidationError):
            raise result
        return result

    # ── Accessors ────────────────────────────────────────────────

    def field_names(self) -> list[str]:
        return list(self.columns)

    def get_column(self, name: str) -> list[Any] | None:
        return self.columns.get(name)

    # ── Wire conversion ──────────────────────────────────────────

    def to_wire(self) -> list[schema_pb2.FieldData]:
        """One ``FieldData`` entry per column in schema order.

        Nullable fields absent from the batch are sent as all-null. The
        dynamic column is sent only when the schema enables dynamic fields.
        """
        entries = []
        for f in _stored_fields(self.collection_schema):
            if f.name in self.columns:
                entries.append(field_data.to_wire(f.name, self.columns[f.name], f))
            elif f.nullable:
                entries.append(field_data.to_wire(f.name, [None] * self.num_rows, f))

        if self.collection_schema.enable_dynamic_field and DYNAMIC_FIELD_NAME in self.columns:
            entries.append(field_data.dynamic_to_wire(self.columns[DYNAMIC_FIELD_NAME]))
        return entries

    def to_insert_request(
        self, collection_name: str, partition_name: str = "", db_name: str = ""
    ) -> milvus_pb2.InsertRequest:
        return milvus_pb2.InsertRequest(
            db_name=db_name,
            collection_name=collection_name,
            partition_name=partition_name,
            fields_data=self.to_wire(),
            num_rows=self.num_rows,
        )


def decode_field_data(entries) -> dict[str, list[Any]]:
    """Decode result ``FieldData`` entries into ``{field_name: values}``."""
    return dict(field_data.from_wire(entry) for entry in entries)


# ── Helpers ──────────────────────────────────────────────────────


def _normalize_keys(row: dict) -> dict[str, Any]:
    return {str(key): value for key, value in row.items()}


def _stored_fields(schema: CollectionSchema) -> list[Field]:
    """Fields that travel as their own column."""
    outputs = schema.function_output_names()
    return [
        f
        for f in schema.fields
        if not f.is_dynamic and not f.auto_id and f.name not in outputs
    ]


def _required_names(schema: CollectionSchema) -> list[str]:
    outputs = schema.function_output_names()
    return [
        f.name
        for f in schema.fields
        if not (f.auto_id or f.nullable or f.is_dynamic or f.name in outputs)
    ]


def _check_required(schema: CollectionSchema, keys: set[str], source: str) -> MilvusValidationError | None:
    missing = [name for name in _required_names(schema) if name not in keys]
    if missing:
        return MilvusValidationError(source, f"missing required fields: {', '.join(missing)}")
    return None


def _route_dynamic(schema: CollectionSchema, keys: set[str], value_at, num_rows: int) -> list[dict] | None:
    """Collect per-row dynamic attributes, or None when there are none.

    Declared dynamic fields always go to the metadata column. Undeclared
    keys go there only when the schema enables dynamic fields; otherwise
    they are dropped.
    """
    declared = [f.name for f in schema.dynamic_fields() if f.name in keys]

    undeclared = []
    if schema.enable_dynamic_field:
        known = set(schema.field_names())
        undeclared = sorted(k for k in keys if k not in known and k != DYNAMIC_FIELD_NAME)

    names = declared + undeclared
    if not names:
        return None
    return [{name: value_at(name, i) for name in names} for i in range(num_rows)]


def _column_value(field: Field, value: Any) -> Any:
    if field.kind == FieldKind.SPARSE_FLOAT_VECTOR and value is not None:
        return normalize_sparse(value)
    return value
