"""Conversion between Python column values and Milvus ``FieldData`` entries."""

import json
from typing import Any

import numpy as np
from pymilvus.grpc_gen import schema_pb2

from collection_schema import field_types
from collection_schema.field import Field
from collection_schema.field_types import FieldKind
from collection_schema.schema import DYNAMIC_FIELD_NAME
from common.errors import MilvusValidationError
from data_marshal.vector_codec import (
    decode_sparse_row,
    encode_binary_vector,
    encode_sparse_row,
    sparse_row_dim,
)


def to_wire(field_name: str, values: list, field: Field) -> schema_pb2.FieldData:
    """Build one ``FieldData`` entry for a column, stamped with the field's kind.

    Nullable columns carry ``valid_data`` and only their non-null values.
    """
    if field.is_array_of_struct or field.kind == FieldKind.STRUCT:
        raise MilvusValidationError(
            field_name, f"{field.kind.value} columns cannot be sent as field data"
        )

    valid_data = None
    if field.nullable:
        valid_data = [value is not None for value in values]
        values = [value for value in values if value is not None]

    entry = schema_pb2.FieldData(field_name=field_name, type=field_types.to_wire(field.kind))
    if field.is_vector:
        entry.vectors.CopyFrom(build_vector_field(field.kind, values, field.dimension))
    else:
        entry.scalars.CopyFrom(build_scalar_field(field.kind, values, field.element_type))

    if valid_data is not None:
        entry.valid_data.extend(valid_data)
    return entry


def dynamic_to_wire(attributes: list[dict[str, Any]]) -> schema_pb2.FieldData:
    """The reserved metadata column: one JSON object per row."""
    entry = schema_pb2.FieldData(
        field_name=DYNAMIC_FIELD_NAME,
        type=field_types.to_wire(FieldKind.JSON),
        is_dynamic=True,
    )
    entry.scalars.CopyFrom(build_scalar_field(FieldKind.JSON, attributes))
    return entry


def build_scalar_field(
    kind: FieldKind, values: list, element_type: FieldKind | None = None
) -> schema_pb2.ScalarField:
    if kind == FieldKind.BOOL:
        return schema_pb2.ScalarField(bool_data=schema_pb2.BoolArray(data=values))
    if kind in (FieldKind.INT8, FieldKind.INT16, FieldKind.INT32):
        return schema_pb2.ScalarField(int_data=schema_pb2.IntArray(data=values))
    if kind == FieldKind.INT64:
        return schema_pb2.ScalarField(long_data=schema_pb2.LongArray(data=values))
    if kind == FieldKind.FLOAT:
        return schema_pb2.ScalarField(float_data=schema_pb2.FloatArray(data=values))
    if kind == FieldKind.DOUBLE:
        return schema_pb2.ScalarField(double_data=schema_pb2.DoubleArray(data=values))
    if kind in (FieldKind.VARCHAR, FieldKind.TEXT):
        return schema_pb2.ScalarField(string_data=schema_pb2.StringArray(data=values))
    if kind == FieldKind.JSON:
        encoded = [_encode_json(value) for value in values]
        return schema_pb2.ScalarField(json_data=schema_pb2.JSONArray(data=encoded))
    if kind == FieldKind.ARRAY:
        rows = [build_scalar_field(element_type, list(row)) for row in values]
        return schema_pb2.ScalarField(
            array_data=schema_pb2.ArrayArray(data=rows, element_type=field_types.to_wire(element_type))
        )
    raise MilvusValidationError("kind", f"{kind.value} is not a scalar kind")


def build_vector_field(kind: FieldKind, values: list, dimension: int | None) -> schema_pb2.VectorField:
    """Pack a column of vectors.

    Dense float vectors are flattened; binary vectors may be given as raw
    bytes or as lists of bits; sparse vectors as ``{index: weight}`` or
    ``(index, weight)`` pairs.
    """
    if kind == FieldKind.FLOAT_VECTOR:
        flat = [float(x) for vector in values for x in vector]
        return schema_pb2.VectorField(dim=dimension, float_vector=schema_pb2.FloatArray(data=flat))

    if kind == FieldKind.BINARY_VECTOR:
        packed = b"".join(_pack_binary(vector, dimension) for vector in values)
        return schema_pb2.VectorField(dim=dimension, binary_vector=packed)

    if kind == FieldKind.FLOAT16_VECTOR:
        packed = b"".join(np.asarray(v, dtype="<f2").tobytes() for v in values)
        return schema_pb2.VectorField(dim=dimension, float16_vector=packed)

    if kind == FieldKind.BFLOAT16_VECTOR:
        packed = b"".join(_to_bfloat16(v) for v in values)
        return schema_pb2.VectorField(dim=dimension, bfloat16_vector=packed)

    if kind == FieldKind.INT8_VECTOR:
        packed = b"".join(np.asarray(v, dtype=np.int8).tobytes() for v in values)
        return schema_pb2.VectorField(dim=dimension, int8_vector=packed)

    if kind == FieldKind.SPARSE_FLOAT_VECTOR:
        contents = [encode_sparse_row(v) for v in values]
        max_dim = max((sparse_row_dim(v) for v in values), default=0)
        return schema_pb2.VectorField(
            sparse_float_vector=schema_pb2.SparseFloatArray(contents=contents, dim=max_dim)
        )

    raise MilvusValidationError("kind", f"{kind.value} is not a vector kind")


def from_wire(entry: schema_pb2.FieldData) -> tuple[str, list]:
    """Return ``(field_name, values)`` for one ``FieldData`` entry.

    Rows marked invalid in ``valid_data`` come back as ``None``.
    """
    slot = entry.WhichOneof("field")
    if slot == "scalars":
        values = extract_scalar_values(entry.scalars)
    elif slot == "vectors":
        values = extract_vector_values(entry.vectors)
    else:
        values = []

    if entry.valid_data:
        values = _apply_valid_data(values, list(entry.valid_data))
    return entry.field_name, values


def extract_scalar_values(scalars: schema_pb2.ScalarField) -> list:
    slot = scalars.WhichOneof("data")
    if slot is None:
        return []
    if slot == "json_data":
        return [_decode_json(raw) for raw in scalars.json_data.data]
    if slot == "array_data":
        return [extract_scalar_values(row) for row in scalars.array_data.data]
    return list(getattr(scalars, slot).data)


def extract_vector_values(vectors: schema_pb2.VectorField) -> list:
    slot = vectors.WhichOneof("data")
    dim = vectors.dim

    if slot == "float_vector":
        flat = list(vectors.float_vector.data)
        return [flat[i : i + dim] for i in range(0, len(flat), dim)] if dim else [flat]
    if slot == "binary_vector":
        return _unpack_binary(vectors.binary_vector, dim)
    if slot == "float16_vector":
        return np.frombuffer(vectors.float16_vector, dtype="<f2").astype(np.float32).reshape(-1, dim).tolist()
    if slot == "bfloat16_vector":
        return _from_bfloat16(vectors.bfloat16_vector, dim)
    if slot == "int8_vector":
        return np.frombuffer(vectors.int8_vector, dtype=np.int8).reshape(-1, dim).tolist()
    if slot == "sparse_float_vector":
        return [decode_sparse_row(row) for row in vectors.sparse_float_vector.contents]
    return []


# ── Helpers ──────────────────────────────────────────────────────


def _encode_json(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value).encode("utf-8")


def _decode_json(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _pack_binary(vector, dimension: int | None) -> bytes:
    if isinstance(vector, (bytes, bytearray)):
        return bytes(vector)
    bits = list(vector)
    if dimension is None or len(bits) != dimension:
        return encode_binary_vector(bits)
    return np.packbits(np.asarray(bits, dtype=np.uint8)).tobytes()


def _unpack_binary(data: bytes, dim: int) -> list[list[int]]:
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
    return bits.reshape(-1, dim).tolist() if dim else [bits.tolist()]


def _to_bfloat16(vector) -> bytes:
    # bfloat16 keeps the upper 16 bits of a float32
    words = np.asarray(vector, dtype="<f4").view("<u4")
    return (words >> 16).astype("<u2").tobytes()


def _from_bfloat16(data: bytes, dim: int) -> list[list[float]]:
    words = np.frombuffer(data, dtype="<u2").astype("<u4") << 16
    return words.view("<f4").reshape(-1, dim).tolist()


def _apply_valid_data(values: list, valid_data: list[bool]) -> list:
    if len(values) == len(valid_data):
        return [value if valid else None for value, valid in zip(values, valid_data)]

    remaining = iter(values)
    return [next(remaining) if valid else None for valid in valid_data]
