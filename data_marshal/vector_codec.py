"""Byte layouts for vectors and the search placeholder group."""

import struct
from collections.abc import Iterable, Mapping

from pymilvus.grpc_gen import common_pb2

from collection_schema.field_types import DENSE_VECTOR_KINDS, FieldKind
from common.errors import MilvusValidationError

PLACEHOLDER_TAG = "$0"

# milvus.proto.common.PlaceholderType
_PLACEHOLDER_TYPES: dict[FieldKind, int] = {
    FieldKind.BINARY_VECTOR: common_pb2.PlaceholderType.BinaryVector,
    FieldKind.FLOAT_VECTOR: common_pb2.PlaceholderType.FloatVector,
    FieldKind.FLOAT16_VECTOR: common_pb2.PlaceholderType.Float16Vector,
    FieldKind.BFLOAT16_VECTOR: common_pb2.PlaceholderType.BFloat16Vector,
    FieldKind.SPARSE_FLOAT_VECTOR: common_pb2.PlaceholderType.SparseFloatVector,
    FieldKind.INT8_VECTOR: common_pb2.PlaceholderType.Int8Vector,
}
PLACEHOLDER_VARCHAR = common_pb2.PlaceholderType.VarChar


def placeholder_type(kind: FieldKind) -> int:
    """Placeholder type tag for a vector kind (float vector for anything else)."""
    return _PLACEHOLDER_TYPES.get(kind, _PLACEHOLDER_TYPES[FieldKind.FLOAT_VECTOR])


def normalize_sparse(vector: Mapping[int, float] | Iterable) -> list[tuple[int, float]]:
    """Return a sparse vector as ``(index, weight)`` pairs ordered by index."""
    pairs = vector.items() if isinstance(vector, Mapping) else vector
    return sorted((int(index), float(weight)) for index, weight in pairs)


def encode_float_vector(vector: Iterable[float]) -> bytes:
    """Little-endian float32 per component; integers are promoted to float."""
    components = [float(x) for x in vector]
    return struct.pack(f"<{len(components)}f", *components)


def encode_binary_vector(vector: bytes | bytearray | Iterable[int]) -> bytes:
    """Already bit-packed bytes, 8 dimensions per byte."""
    return bytes(vector)


def encode_sparse_row(vector: Mapping[int, float] | Iterable) -> bytes:
    """``<uint32 index, float32 weight>`` per non-zero entry, sorted by index."""
    return b"".join(struct.pack("<If", index, weight) for index, weight in normalize_sparse(vector))


def sparse_row_dim(vector: Mapping[int, float] | Iterable) -> int:
    pairs = normalize_sparse(vector)
    return pairs[-1][0] + 1 if pairs else 0


def decode_sparse_row(data: bytes) -> list[tuple[int, float]]:
    return list(struct.iter_unpack("<If", data))


def encode_query_vector(vector, kind: FieldKind, dimension: int | None = None) -> bytes:
    """Encode one query vector for the placeholder group.

    The float family and int8 vectors all travel as float32 components
    regardless of their declared element width.
    """
    if kind == FieldKind.BINARY_VECTOR:
        encoded = encode_binary_vector(vector)
        if dimension is not None and len(encoded) * 8 != dimension:
            raise ValueError(f"binary vector has {len(encoded) * 8} bits, expected {dimension}")
        return encoded

    if kind == FieldKind.SPARSE_FLOAT_VECTOR:
        return encode_sparse_row(vector)

    encoded = encode_float_vector(vector)
    if dimension is not None and kind in DENSE_VECTOR_KINDS and len(encoded) // 4 != dimension:
        raise ValueError(f"vector has {len(encoded) // 4} components, expected {dimension}")
    return encoded


def try_encode_query_vectors(
    vectors: list, kind: FieldKind, dimension: int | None = None
) -> bytes | MilvusValidationError:
    """Serialize a ``PlaceholderGroup`` holding every query vector.

    Text queries against a sparse (BM25) field are sent as VarChar
    placeholders. Returns a validation error on ``vectors`` if any vector
    cannot be encoded.
    """
    kind = FieldKind(kind)
    try:
        if kind == FieldKind.SPARSE_FLOAT_VECTOR and vectors and all(isinstance(v, str) for v in vectors):
            tag_type = PLACEHOLDER_VARCHAR
            values = [v.encode("utf-8") for v in vectors]
        else:
            tag_type = placeholder_type(kind)
            values = [encode_query_vector(v, kind, dimension) for v in vectors]
    except (TypeError, ValueError, OverflowError, struct.error) as exc:
        return MilvusValidationError("vectors", f"Failed to encode vectors: {exc}")

    group = common_pb2.PlaceholderGroup(
        placeholders=[common_pb2.PlaceholderValue(tag=PLACEHOLDER_TAG, type=tag_type, values=values)]
    )
    return group.SerializeToString()


def encode_query_vectors(vectors: list, kind: FieldKind, dimension: int | None = None) -> bytes:
    result = try_encode_query_vectors(vectors, kind, dimension)
    if isinstance(result, MilvusValidationError):
        raise result
    return result
