"""Field kinds and their Milvus wire codes."""

from enum import Enum

from pymilvus.grpc_gen import schema_pb2


class FieldKind(str, Enum):
    """Every data type a collection field can declare."""

    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DOUBLE = "double"
    VARCHAR = "varchar"
    JSON = "json"
    TEXT = "text"
    ARRAY = "array"
    STRUCT = "struct"
    ARRAY_OF_STRUCT = "array_of_struct"
    BINARY_VECTOR = "binary_vector"
    FLOAT_VECTOR = "float_vector"
    FLOAT16_VECTOR = "float16_vector"
    BFLOAT16_VECTOR = "bfloat16_vector"
    SPARSE_FLOAT_VECTOR = "sparse_float_vector"
    INT8_VECTOR = "int8_vector"


SCALAR_KINDS = frozenset({
    FieldKind.BOOL,
    FieldKind.INT8,
    FieldKind.INT16,
    FieldKind.INT32,
    FieldKind.INT64,
    FieldKind.FLOAT,
    FieldKind.DOUBLE,
    FieldKind.VARCHAR,
    FieldKind.JSON,
    FieldKind.TEXT,
})

VECTOR_KINDS = frozenset({
    FieldKind.BINARY_VECTOR,
    FieldKind.FLOAT_VECTOR,
    FieldKind.FLOAT16_VECTOR,
    FieldKind.BFLOAT16_VECTOR,
    FieldKind.SPARSE_FLOAT_VECTOR,
    FieldKind.INT8_VECTOR,
})

# Vector kinds that carry a fixed dimension (everything but sparse)
DENSE_VECTOR_KINDS = VECTOR_KINDS - {FieldKind.SPARSE_FLOAT_VECTOR}

TEXT_KINDS = frozenset({FieldKind.VARCHAR, FieldKind.TEXT})

PRIMARY_KEY_KINDS = frozenset({FieldKind.INT64, FieldKind.VARCHAR})


# ── Wire codes (milvus.proto.schema.DataType) ────────────────────

DataType = schema_pb2.DataType

WIRE_NONE = DataType.Value("None")
WIRE_ARRAY_OF_VECTOR = DataType.ArrayOfVector

_KIND_TO_WIRE: dict[FieldKind, int] = {
    FieldKind.BOOL: DataType.Bool,
    FieldKind.INT8: DataType.Int8,
    FieldKind.INT16: DataType.Int16,
    FieldKind.INT32: DataType.Int32,
    FieldKind.INT64: DataType.Int64,
    FieldKind.FLOAT: DataType.Float,
    FieldKind.DOUBLE: DataType.Double,
    FieldKind.VARCHAR: DataType.VarChar,
    FieldKind.ARRAY: DataType.Array,
    FieldKind.JSON: DataType.JSON,
    FieldKind.TEXT: DataType.Text,
    FieldKind.BINARY_VECTOR: DataType.BinaryVector,
    FieldKind.FLOAT_VECTOR: DataType.FloatVector,
    FieldKind.FLOAT16_VECTOR: DataType.Float16Vector,
    FieldKind.BFLOAT16_VECTOR: DataType.BFloat16Vector,
    FieldKind.SPARSE_FLOAT_VECTOR: DataType.SparseFloatVector,
    FieldKind.INT8_VECTOR: DataType.Int8Vector,
    FieldKind.ARRAY_OF_STRUCT: DataType.ArrayOfStruct,
    FieldKind.STRUCT: DataType.Struct,
}

_WIRE_TO_KIND: dict[int, FieldKind] = {code: kind for kind, code in _KIND_TO_WIRE.items()}


def to_wire(kind: FieldKind | None) -> int:
    """Return the wire code for a kind (``0`` for no kind)."""
    if kind is None:
        return WIRE_NONE
    return _KIND_TO_WIRE[FieldKind(kind)]


def from_wire(code: int) -> FieldKind | None:
    """Return the kind for a wire code, ``None`` for ``0`` or an unknown code."""
    return _WIRE_TO_KIND.get(int(code))
